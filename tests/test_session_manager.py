"""
Tests for the Session Manager - end-to-end turn handling.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from conftest import MODELS, FakeProvider, ProviderError
from triage.errors import SessionClosedError, SessionNotFoundError, UnsupportedLanguageError
from triage.escalation import CRITICAL_URGENCY, LOW_CONFIDENCE, USER_REQUEST
from triage.languages import Language
from triage.llm_engine import LLMEngine, Reply
from triage.model_gateway import ModelGateway
from triage.models import CareUrgency, MessageKind, Role
from triage.responses import (
    EMERGENCY_NOTICE,
    INTENT_RESPONSES,
    LOCALIZED_ESCALATION,
    LOCALIZED_FALLBACK,
)
from triage.session_manager import ASSESSMENT_ANSWER_INTENT, TRUNCATION_SUFFIX
from triage.states import SessionStatus

FEVER_OPENING = "I have had a fever for 2 days, feeling very hot with chills"
FEVER_ANSWERS = ["2 days", "very high, around 104", "chills and body aches", "no travel"]


@pytest.fixture
def failing_gateway():
    gw = ModelGateway(
        FakeProvider(default=ProviderError("down", code=500)),
        models=MODELS, retry_delay=0, sleep=lambda s: None,
    )
    yield gw
    gw.close()


class TestGreeting:
    """Tests for template replies."""

    def test_hi_gets_greeting_template(self, manager):
        response = manager.handle_turn(None, "user-1", "hi")
        session = response.session

        assert response.turn.content == INTENT_RESPONSES["greeting"]["text"]
        assert response.quick_replies == INTENT_RESPONSES["greeting"]["quick_replies"]
        assert response.classification.intent == "greeting"
        assert not response.escalated
        assert session.status is SessionStatus.ACTIVE
        assert [t.role for t in session.turns] == [Role.USER, Role.ASSISTANT]

    def test_session_is_persisted(self, manager):
        response = manager.handle_turn(None, "user-1", "hi")
        stored = manager.get_session(response.session.id)
        assert len(stored.turns) == 2
        assert stored.context.current_intent == "greeting"

    def test_turns_are_append_only(self, manager):
        first = manager.handle_turn(None, "user-1", "hi")
        snapshot = [(t.id, t.content) for t in first.session.turns]
        second = manager.handle_turn(first.session.id, "user-1", "thank you")
        assert [(t.id, t.content) for t in second.session.turns[:2]] == snapshot
        assert len(second.session.turns) == 4


class TestSymptomAssessmentFlow:
    """Tests for the assessment driven through conversation turns."""

    def test_fever_assessment_end_to_end(self, manager):
        opening = manager.handle_turn(None, "user-1", FEVER_OPENING)
        session_id = opening.session.id
        assert opening.turn.kind is MessageKind.ASSESSMENT
        assert opening.turn.metadata["assessment_step"] == 0
        assert "Since when" in opening.turn.content

        response = None
        for answer in FEVER_ANSWERS:
            response = manager.handle_turn(session_id, "user-1", answer)
            assert response.classification.intent == ASSESSMENT_ANSWER_INTENT
            assert not response.escalated

        assert response.assessment_complete
        result = response.assessment_result
        assert result.primary_symptom == "fever"
        assert result.urgency is CareUrgency.IMMEDIATE
        assert result.red_flags
        assert result.recommendations.home_remedies is None
        assert "Possible Conditions" in response.turn.content

        stored = manager.get_session(session_id)
        assert stored.context.assessment is None
        assert stored.turns[-1].metadata["assessment_result"]["urgency"] == "immediate"

    def test_in_progress_assessment_is_persisted(self, manager):
        opening = manager.handle_turn(None, "user-1", "I have a cough")
        manager.handle_turn(opening.session.id, "user-1", "3 days")
        stored = manager.get_session(opening.session.id)
        assert stored.context.assessment.step == 1
        assert stored.context.assessment.answers[0].answer == "3 days"

    def test_cancel_discards_assessment(self, manager):
        opening = manager.handle_turn(None, "user-1", "I have a fever")
        response = manager.handle_turn(opening.session.id, "user-1", "cancel")
        assert response.turn.content == INTENT_RESPONSES["cancel_assessment"]["text"]
        assert manager.get_session(opening.session.id).context.assessment is None

    def test_idle_assessment_is_abandoned(self, make_manager):
        now = [datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)]
        manager = make_manager(clock=lambda: now[0], idle_timeout_minutes=30)

        opening = manager.handle_turn(None, "user-1", "I have a fever")
        now[0] += timedelta(minutes=31)
        response = manager.handle_turn(opening.session.id, "user-1", "2 days")

        assert response.turn.kind is MessageKind.TEXT
        assert response.classification.intent != ASSESSMENT_ANSWER_INTENT
        assert manager.get_session(opening.session.id).context.assessment is None

    def test_assessment_answers_do_not_trip_low_confidence(self, manager):
        opening = manager.handle_turn(None, "user-1", "I have a fever")
        for answer in ("xyz", "abc", "qrs"):
            response = manager.handle_turn(opening.session.id, "user-1", answer)
            assert not response.escalated


class TestLLMReplies:
    """Tests for free-form replies through the model gateway."""

    def test_unknown_intent_goes_to_llm(self, manager, provider):
        response = manager.handle_turn(None, "user-1", "what should I eat to stay healthy")
        assert response.turn.content == "Drink plenty of clean water and rest."
        assert response.turn.metadata["model"] == "model-a"
        assert response.turn.metadata["structured"] is True
        assert len(provider.calls) == 1
        assert "what should I eat" in provider.calls[0][1].text

    def test_gateway_exhaustion_returns_localized_fallback(self, make_manager, failing_gateway):
        manager = make_manager(llm=LLMEngine(failing_gateway))
        response = manager.handle_turn(None, "user-1", "मुझे क्या खाना चाहिए")

        assert response.session.language is Language.HINDI
        assert response.turn.content == LOCALIZED_FALLBACK[Language.HINDI]
        assert response.turn.metadata["fallback"] is True
        assert manager.get_session(response.session.id).is_open

    def test_reply_is_translated_for_the_session_language(self, manager):
        response = manager.handle_turn(None, "user-1", "what should I eat", language="te")
        assert response.session.language is Language.TELUGU
        assert response.turn.content == "[te] Drink plenty of clean water and rest."

    def test_fallback_is_sent_untranslated(self, make_manager, failing_gateway, language_service):
        manager = make_manager(llm=LLMEngine(failing_gateway))
        response = manager.handle_turn(None, "user-1", "what should I eat", language="ta")

        assert response.turn.content == LOCALIZED_FALLBACK[Language.TAMIL]
        assert LOCALIZED_FALLBACK[Language.ENGLISH] not in [t[0] for t in language_service.translations]


class TestIdempotency:
    """Tests for duplicate turn submission."""

    def test_duplicate_turn_replays_stored_reply(self, manager, provider):
        session = manager.create_session("user-1")
        first = manager.handle_turn(session.id, "user-1", "what should I eat", turn_id="turn-1")
        calls = len(provider.calls)

        again = manager.handle_turn(session.id, "user-1", "what should I eat", turn_id="turn-1")

        assert again.duplicate
        assert again.turn.id == first.turn.id
        assert again.turn.content == first.turn.content
        assert len(provider.calls) == calls
        assert len(manager.get_session(session.id).turns) == 2

    def test_duplicate_assessment_answer_is_not_recorded_twice(self, manager):
        opening = manager.handle_turn(None, "user-1", "I have a fever")
        session_id = opening.session.id
        first = manager.handle_turn(session_id, "user-1", "2 days", turn_id="answer-1")

        again = manager.handle_turn(session_id, "user-1", "2 days", turn_id="answer-1")

        assert again.duplicate
        assert again.turn.id == first.turn.id
        assert again.turn.metadata["assessment_step"] == first.turn.metadata["assessment_step"]
        stored = manager.get_session(session_id)
        assert stored.context.assessment.step == 1
        assert [a.answer for a in stored.context.assessment.answers] == ["2 days"]
        assert len(stored.user_turns()) == 2

    def test_distinct_turn_ids_are_processed(self, manager):
        session = manager.create_session("user-1")
        manager.handle_turn(session.id, "user-1", "hi", turn_id="turn-1")
        response = manager.handle_turn(session.id, "user-1", "hi", turn_id="turn-2")
        assert not response.duplicate
        assert len(response.session.turns) == 4


class TestLifecycle:
    """Tests for session status and closing rules."""

    def test_unknown_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.handle_turn("missing", "user-1", "hi")

    def test_ended_session_rejects_turns(self, manager):
        response = manager.handle_turn(None, "user-1", "hi")
        ended = manager.end_session(response.session.id)
        assert ended.status is SessionStatus.COMPLETED
        assert ended.ended_at is not None

        with pytest.raises(SessionClosedError) as exc_info:
            manager.handle_turn(response.session.id, "user-1", "hello")
        assert exc_info.value.status == "completed"

    def test_end_session_is_idempotent(self, manager):
        session = manager.create_session("user-1")
        manager.end_session(session.id)
        assert manager.end_session(session.id).status is SessionStatus.COMPLETED

    def test_active_sessions(self, manager):
        kept = manager.create_session("user-1")
        ended = manager.create_session("user-2")
        manager.end_session(ended.id)
        assert [s.id for s in manager.active_sessions()] == [kept.id]

    def test_commit_discarded_when_session_ends_mid_turn(self, make_manager):
        class EndingLLM:
            manager = None

            def generate(self, session, message):
                self.manager.end_session(session.id)
                return Reply(text="too late")

        llm = EndingLLM()
        manager = make_manager(llm=llm)
        llm.manager = manager
        session = manager.create_session("user-1")

        with pytest.raises(SessionClosedError):
            manager.handle_turn(session.id, "user-1", "what should I eat")

        stored = manager.get_session(session.id)
        assert stored.status is SessionStatus.COMPLETED
        assert stored.turns == []

    def test_turn_limit(self, make_manager):
        manager = make_manager(max_turns=2)
        session = manager.create_session("user-1")
        manager.handle_turn(session.id, "user-1", "hi")
        manager.handle_turn(session.id, "user-1", "hi")

        response = manager.handle_turn(session.id, "user-1", "hi")

        assert response.turn.metadata["turn_limit"] is True
        assert "maximum number of turns" in response.turn.content
        assert len(manager.get_session(session.id).turns) == 4

    def test_long_messages_are_truncated(self, make_manager):
        manager = make_manager(max_message_chars=10)
        response = manager.handle_turn(None, "user-1", "hello there my friend, how are you")
        assert response.session.turns[0].content == "hello ther" + TRUNCATION_SUFFIX

    def test_unsupported_language_rejected(self, manager):
        with pytest.raises(UnsupportedLanguageError):
            manager.handle_turn(None, "user-1", "hi", language="xx")

    def test_empty_message_rejected(self, manager):
        with pytest.raises(ValueError):
            manager.handle_turn(None, "user-1", "   ")

    def test_concurrent_turns_are_serialized(self, manager):
        session = manager.create_session("user-1")
        errors = []

        def send():
            try:
                manager.handle_turn(session.id, "user-1", "hi")
            except Exception as error:  # surfaced below
                errors.append(error)

        threads = [threading.Thread(target=send) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        stored = manager.get_session(session.id)
        assert len(stored.turns) == 16
        assert [t.role for t in stored.turns] == [Role.USER, Role.ASSISTANT] * 8


class TestEscalationFlow:
    """Tests for hand-off to a health worker."""

    def test_critical_message_escalates(self, manager):
        response = manager.handle_turn(None, "user-1", "I have chest pain and difficulty breathing")
        session = response.session

        assert response.escalated
        assert session.status is SessionStatus.ESCALATED
        assert session.escalation_reason == CRITICAL_URGENCY
        assert session.worker_id == "1"
        assert response.turn.role is Role.SYSTEM
        assert response.turn.kind is MessageKind.ESCALATION
        assert "Dr. Priya Sharma" in response.turn.content
        assert EMERGENCY_NOTICE in response.turn.content
        assert response.turn.metadata["emergency_keywords"] == ["chest pain", "difficulty breathing"]

    def test_hindi_critical_message_escalates(self, manager):
        response = manager.handle_turn(None, "user-1", "मुझे सीने में दर्द और सांस लेने में कठिनाई है")
        assert response.session.language is Language.HINDI
        assert response.escalated
        assert response.session.escalation_reason == CRITICAL_URGENCY
        assert response.session.worker_id == "1"

    def test_critical_during_assessment_escalates(self, manager):
        opening = manager.handle_turn(None, "user-1", "I have a fever")
        response = manager.handle_turn(opening.session.id, "user-1", "now I have chest pain too")
        assert response.escalated
        assert response.session.context.assessment is None

    def test_user_request(self, manager):
        response = manager.handle_turn(None, "user-1", "can I talk to a nurse please")
        assert response.escalated
        assert response.session.escalation_reason == USER_REQUEST

    @pytest.mark.parametrize("text", ["Which agent causes malaria?", "the nurse told me to drink water"])
    def test_question_mentioning_staff_is_answered(self, manager, text):
        response = manager.handle_turn(None, "user-1", text)
        assert not response.escalated
        assert response.session.is_open

    def test_low_confidence_deep_in_session(self, manager):
        session = manager.create_session("user-1")
        manager.handle_turn(session.id, "user-1", "qwerty")
        second = manager.handle_turn(session.id, "user-1", "asdf")
        assert not second.escalated

        third = manager.handle_turn(session.id, "user-1", "zxcv")
        assert third.escalated
        assert third.session.escalation_reason == LOW_CONFIDENCE

    def test_escalated_session_rejects_turns_until_reset(self, manager):
        response = manager.handle_turn(None, "user-1", "I have chest pain")
        session_id = response.session.id

        with pytest.raises(SessionClosedError):
            manager.handle_turn(session_id, "user-1", "hello?")

        reset = manager.reset_escalation(session_id)
        assert reset.status is SessionStatus.COMPLETED
        assert reset.turns[-1].role is Role.SYSTEM
        assert reset.turns[-1].metadata["operator_reset"] is True

    def test_escalation_message_is_native_without_worker(self, manager, language_service):
        response = manager.handle_turn(None, "user-1", "I have chest pain", language="ta")

        assert response.escalated
        assert response.session.worker_id is None
        assert response.turn.content.startswith(LOCALIZED_ESCALATION[Language.TAMIL][1])
        translated = [t[0] for t in language_service.translations]
        assert LOCALIZED_ESCALATION[Language.ENGLISH][1] not in translated

    def test_closed_sessions_release_their_locks(self, manager):
        escalated = manager.handle_turn(None, "user-1", "I have chest pain").session.id
        assert escalated not in manager._locks

        with pytest.raises(SessionClosedError):
            manager.handle_turn(escalated, "user-1", "hello?")
        assert escalated not in manager._locks

        manager.reset_escalation(escalated)
        assert escalated not in manager._locks

        open_id = manager.handle_turn(None, "user-1", "hi").session.id
        assert open_id in manager._locks
        manager.end_session(open_id)
        assert open_id not in manager._locks

    def test_unknown_session_leaves_no_lock(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.handle_turn("missing", "user-1", "hi")
        assert "missing" not in manager._locks

    def test_reset_requires_escalated_session(self, manager):
        session = manager.create_session("user-1")
        with pytest.raises(SessionClosedError):
            manager.reset_escalation(session.id)
