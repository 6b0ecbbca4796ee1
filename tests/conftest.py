"""
Pytest Configuration and Shared Fixtures

Stub collaborators so the triage core can be exercised without a Gemini
API key or a MongoDB server.
"""

import threading

import pytest

from database.session_store import SessionStore
from triage.assessment import SymptomAssessmentMachine
from triage.classifier import IntentClassifier
from triage.errors import TranslationError
from triage.escalation import EscalationEngine
from triage.language_service import detect_by_script
from triage.languages import WORKING_LANGUAGE
from triage.llm_engine import LLMEngine
from triage.model_gateway import ModelGateway
from triage.session_manager import SessionManager
from triage.workers import WorkerDirectory

MODELS = ["model-a", "model-b", "model-c"]

DEFAULT_REPLY = (
    '{"response": "Drink plenty of clean water and rest.", '
    '"follow_up_question": null, "is_emergency": false, "topics": ["hydration"]}'
)

HINDI_TO_ENGLISH = {
    "मुझे सीने में दर्द और सांस लेने में कठिनाई है": "I have chest pain and difficulty breathing",
    "नमस्ते": "hello",
}


class ProviderError(Exception):
    """Mimics an SDK error carrying an HTTP status code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeProvider:
    """Scripted model provider.

    ``script`` maps a model name to a list of outcomes consumed in order; an
    outcome that is an exception is raised, anything else is returned. Once
    a model's script is used up ``default`` applies.
    """

    def __init__(self, script=None, default=DEFAULT_REPLY):
        self.script = {model: list(outcomes) for model, outcomes in (script or {}).items()}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, model, prompt, options):
        with self._lock:
            self.calls.append((model, prompt, options))
            queue = self.script.get(model)
            outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeLanguageService:
    """Script-based detection with a fixed phrase book for translation."""

    def __init__(self, phrase_book=None, fail=False):
        self.phrase_book = dict(HINDI_TO_ENGLISH if phrase_book is None else phrase_book)
        self.fail = fail
        self.translations = []

    def detect(self, text):
        return detect_by_script(text)

    def translate(self, text, source, target):
        self.translations.append((text, source, target))
        if self.fail:
            raise TranslationError(f"translation {source.value}->{target.value} unavailable")
        if source == target:
            return text
        if target == WORKING_LANGUAGE:
            return self.phrase_book.get(text, text)
        return f"[{target.value}] {text}"


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def gateway(provider, sleeps):
    gw = ModelGateway(
        provider,
        models=MODELS,
        preferred_model="model-a",
        retry_attempts=3,
        retry_delay=1.0,
        max_backoff=10.0,
        request_timeout=5.0,
        reset_interval=3600,
        sleep=sleeps.append,
    )
    yield gw
    gw.close()


@pytest.fixture
def language_service():
    return FakeLanguageService()


@pytest.fixture
def store():
    return SessionStore(uri="")


@pytest.fixture
def directory():
    return WorkerDirectory()


@pytest.fixture
def make_manager(gateway, language_service, store, directory):
    """Factory so tests can override individual collaborators or limits."""

    def _make(**overrides):
        services = dict(
            classifier=IntentClassifier(overrides.pop("classifier_language_service", language_service)),
            assessment=SymptomAssessmentMachine(),
            escalation=EscalationEngine(directory),
            llm=LLMEngine(gateway),
            language_service=language_service,
            store=store,
        )
        services.update(overrides)
        return SessionManager(**services)

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()
