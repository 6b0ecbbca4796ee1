"""
Supported Languages.

A closed enumeration of the languages the assistant converses in, plus a
lookup table of display metadata. The table is checked against the enum at
import time so a missing entry fails loudly instead of silently defaulting.
"""

from enum import Enum

from triage.errors import UnsupportedLanguageError


class Language(Enum):
    """ISO 639-1 codes of the supported conversation languages."""

    ENGLISH = "en"
    HINDI = "hi"
    TELUGU = "te"
    TAMIL = "ta"
    BENGALI = "bn"
    MARATHI = "mr"
    GUJARATI = "gu"
    KANNADA = "kn"
    MALAYALAM = "ml"
    PUNJABI = "pa"
    URDU = "ur"

    @classmethod
    def from_code(cls, code) -> "Language":
        """Resolve an ISO code (or a Language) and fail fast on anything else."""
        if isinstance(code, Language):
            return code
        if isinstance(code, str):
            normalized = code.strip().lower()
            for member in cls:
                if member.value == normalized or member.name.lower() == normalized:
                    return member
        raise UnsupportedLanguageError(code)

    @property
    def display_name(self) -> str:
        return LANGUAGE_INFO[self]["name"]

    @property
    def native_name(self) -> str:
        return LANGUAGE_INFO[self]["native"]

    @property
    def is_rtl(self) -> bool:
        return LANGUAGE_INFO[self]["direction"] == "rtl"


# Working language for classification and template banks
WORKING_LANGUAGE = Language.ENGLISH

LANGUAGE_INFO: dict[Language, dict[str, str]] = {
    Language.ENGLISH: {"name": "English", "native": "English", "direction": "ltr"},
    Language.HINDI: {"name": "Hindi", "native": "हिंदी", "direction": "ltr"},
    Language.TELUGU: {"name": "Telugu", "native": "తెలుగు", "direction": "ltr"},
    Language.TAMIL: {"name": "Tamil", "native": "தமிழ்", "direction": "ltr"},
    Language.BENGALI: {"name": "Bengali", "native": "বাংলা", "direction": "ltr"},
    Language.MARATHI: {"name": "Marathi", "native": "मराठी", "direction": "ltr"},
    Language.GUJARATI: {"name": "Gujarati", "native": "ગુજરાતી", "direction": "ltr"},
    Language.KANNADA: {"name": "Kannada", "native": "ಕನ್ನಡ", "direction": "ltr"},
    Language.MALAYALAM: {"name": "Malayalam", "native": "മലയാളം", "direction": "ltr"},
    Language.PUNJABI: {"name": "Punjabi", "native": "ਪੰਜਾਬੀ", "direction": "ltr"},
    Language.URDU: {"name": "Urdu", "native": "اردو", "direction": "rtl"},
}


# ── Script Ranges ─────────────────────────────────────────────────────────
# Checked in order; the first range containing a character of the text wins.

SCRIPT_RANGES: list[tuple[Language, int, int]] = [
    (Language.HINDI, 0x0900, 0x097F),       # Devanagari (Marathi refined below)
    (Language.BENGALI, 0x0980, 0x09FF),
    (Language.PUNJABI, 0x0A00, 0x0A7F),     # Gurmukhi
    (Language.GUJARATI, 0x0A80, 0x0AFF),
    (Language.TAMIL, 0x0B80, 0x0BFF),
    (Language.TELUGU, 0x0C00, 0x0C7F),
    (Language.KANNADA, 0x0C80, 0x0CFF),
    (Language.MALAYALAM, 0x0D00, 0x0D7F),
    (Language.URDU, 0x0600, 0x06FF),        # Arabic script
]

# Devanagari letters far more common in Marathi than Hindi (ळ, ऱ)
MARATHI_MARKERS = frozenset({"ळ", "ऱ"})


def _validate_tables() -> None:
    missing = [lang for lang in Language if lang not in LANGUAGE_INFO]
    if missing:
        raise RuntimeError(f"LANGUAGE_INFO is missing entries for: {missing}")
    for lang, info in LANGUAGE_INFO.items():
        if info.get("direction") not in ("ltr", "rtl"):
            raise RuntimeError(f"Invalid text direction for {lang}: {info.get('direction')!r}")


_validate_tables()
