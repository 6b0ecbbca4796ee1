"""
Language Service — detection and translation.

Detection is deterministic and local (Unicode script ranges). Translation is
delegated to the model gateway. Both are best-effort: callers catch
``TranslationError`` and continue with the untranslated text.
"""

import logging
import threading
from collections import OrderedDict
from typing import Protocol

import config
from triage.errors import ModelGatewayError, TranslationError
from triage.languages import MARATHI_MARKERS, SCRIPT_RANGES, Language
from triage.model_gateway import GenerationOptions, ModelGateway, Prompt

logger = logging.getLogger(__name__)


class LanguageService(Protocol):
    def detect(self, text: str) -> Language:
        ...

    def translate(self, text: str, source: Language, target: Language) -> str:
        ...


def detect_by_script(text: str, default: Language | None = None) -> Language:
    """Guess the language of ``text`` from the first non-Latin script it contains."""
    for char in text:
        point = ord(char)
        for language, low, high in SCRIPT_RANGES:
            if low <= point <= high:
                if language is Language.HINDI and any(m in text for m in MARATHI_MARKERS):
                    return Language.MARATHI
                return language
    return default or Language.from_code(config.DEFAULT_LANGUAGE)


class PassthroughLanguageService:
    """English-only deployments: detect by script, never translate."""

    def detect(self, text: str) -> Language:
        return detect_by_script(text)

    def translate(self, text: str, source: Language, target: Language) -> str:
        return text


TRANSLATION_PROMPT = """Translate the following text from {source} to {target}.
Keep medical terms accurate, keep any markdown formatting and emoji unchanged,
and reply with the translation only.

Text:
{text}"""


class GeminiLanguageService:
    """Translates through the model gateway, caching repeated phrases."""

    def __init__(self, gateway: ModelGateway, cache_size: int = 512):
        self.gateway = gateway
        self.cache_size = cache_size
        self._cache: OrderedDict = OrderedDict()
        self._lock = threading.Lock()

    def detect(self, text: str) -> Language:
        return detect_by_script(text)

    def translate(self, text: str, source: Language, target: Language) -> str:
        if source == target or not text.strip():
            return text

        key = (text, source, target)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]

        prompt = TRANSLATION_PROMPT.format(
            source=source.display_name, target=target.display_name, text=text
        )
        try:
            result = self.gateway.generate(Prompt(text=prompt), GenerationOptions(temperature=0.0))
        except ModelGatewayError as error:
            raise TranslationError(
                f"Could not translate {source.value}->{target.value}: {error}"
            ) from error

        translated = result.text.strip()
        with self._lock:
            self._cache[key] = translated
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return translated
