"""
Tests for the supported-language table, its canned messages and script detection.
"""

import pytest

from conftest import FakeProvider, ProviderError
from triage.errors import TranslationError, UnsupportedLanguageError
from triage.language_service import GeminiLanguageService, PassthroughLanguageService, detect_by_script
from triage.languages import LANGUAGE_INFO, Language
from triage.model_gateway import ModelGateway
from triage.responses import LOCALIZED_ESCALATION, LOCALIZED_FALLBACK, escalation_message, fallback_message


class TestLanguage:
    """Tests for the closed Language enumeration."""

    @pytest.mark.parametrize("code, expected", [
        ("en", Language.ENGLISH),
        ("HI", Language.HINDI),
        (" te ", Language.TELUGU),
        ("tamil", Language.TAMIL),
        (Language.URDU, Language.URDU),
    ])
    def test_from_code(self, code, expected):
        assert Language.from_code(code) is expected

    @pytest.mark.parametrize("code", ["xx", "", None, 42, "english-uk"])
    def test_unsupported_code_fails_fast(self, code):
        with pytest.raises(UnsupportedLanguageError) as exc_info:
            Language.from_code(code)
        assert exc_info.value.code == code

    def test_unsupported_is_a_value_error(self):
        with pytest.raises(ValueError):
            Language.from_code("fr")

    def test_every_language_has_display_info(self):
        assert set(LANGUAGE_INFO) == set(Language)
        assert Language.HINDI.native_name == "हिंदी"
        assert Language.URDU.is_rtl
        assert not Language.ENGLISH.is_rtl

    def test_every_language_has_native_canned_messages(self):
        assert set(LOCALIZED_FALLBACK) == set(Language)
        assert set(LOCALIZED_ESCALATION) == set(Language)

    @pytest.mark.parametrize("language", list(Language))
    def test_escalation_message(self, language):
        with_worker, without_worker = LOCALIZED_ESCALATION[language]
        assert escalation_message(language, "Asha") == with_worker.format(name="Asha")
        assert "Asha" in escalation_message(language, "Asha")
        assert escalation_message(language, None) == without_worker
        assert fallback_message(language) == LOCALIZED_FALLBACK[language]


class TestScriptDetection:
    """Tests for Unicode-script based detection."""

    @pytest.mark.parametrize("text, expected", [
        ("मुझे बुखार है", Language.HINDI),
        ("माझे डोळे जळतात", Language.MARATHI),
        ("నాకు జ్వరం ఉంది", Language.TELUGU),
        ("எனக்கு காய்ச்சல்", Language.TAMIL),
        ("আমার জ্বর", Language.BENGALI),
        ("مجھے بخار ہے", Language.URDU),
        ("I have a fever", Language.ENGLISH),
    ])
    def test_detect(self, text, expected):
        assert detect_by_script(text) is expected

    def test_default_for_latin_text(self):
        assert detect_by_script("mujhe bukhar hai", default=Language.HINDI) is Language.HINDI

    def test_passthrough_never_translates(self):
        service = PassthroughLanguageService()
        assert service.translate("hello", Language.ENGLISH, Language.HINDI) == "hello"
        assert service.detect("నమస్తే") is Language.TELUGU


class TestGeminiLanguageService:
    """Tests for translation through the model gateway."""

    @pytest.fixture
    def make_service(self):
        gateways = []

        def _make(provider):
            gw = ModelGateway(provider, models=["m"], preferred_model="m", retry_delay=0, sleep=lambda s: None)
            gateways.append(gw)
            return GeminiLanguageService(gw, cache_size=2), provider

        yield _make
        for gw in gateways:
            gw.close()

    def test_translation_is_cached(self, make_service):
        service, provider = make_service(FakeProvider(default="  I have a fever \n"))
        first = service.translate("मुझे बुखार है", Language.HINDI, Language.ENGLISH)
        second = service.translate("मुझे बुखार है", Language.HINDI, Language.ENGLISH)
        assert first == second == "I have a fever"
        assert len(provider.calls) == 1
        assert "from Hindi to English" in provider.calls[0][1].text

    def test_cache_is_bounded(self, make_service):
        service, provider = make_service(FakeProvider(default="x"))
        for text in ("a", "b", "c", "a"):
            service.translate(text, Language.HINDI, Language.ENGLISH)
        # "a" was evicted by "c" and had to be translated again
        assert len(provider.calls) == 4

    def test_same_language_is_not_sent(self, make_service):
        service, provider = make_service(FakeProvider())
        assert service.translate("hello", Language.ENGLISH, Language.ENGLISH) == "hello"
        assert provider.calls == []

    def test_gateway_exhaustion_becomes_translation_error(self, make_service):
        service, _ = make_service(FakeProvider(default=ProviderError("down", code=500)))
        with pytest.raises(TranslationError):
            service.translate("hello", Language.ENGLISH, Language.TELUGU)
