"""
Tests for the session data model and lifecycle states.
"""

import pytest

from triage.assessment import SymptomAssessmentMachine
from triage.languages import Language
from triage.models import Entity, MessageKind, Platform, Role, Session, Turn
from triage.states import SessionStatus, is_valid_transition


class TestTransitions:
    """Tests for the forward-only session lifecycle."""

    @pytest.mark.parametrize("current, target, valid", [
        (SessionStatus.ACTIVE, SessionStatus.ESCALATED, True),
        (SessionStatus.ACTIVE, SessionStatus.COMPLETED, True),
        (SessionStatus.ESCALATED, SessionStatus.COMPLETED, True),
        (SessionStatus.ESCALATED, SessionStatus.ACTIVE, False),
        (SessionStatus.COMPLETED, SessionStatus.ACTIVE, False),
        (SessionStatus.COMPLETED, SessionStatus.ESCALATED, False),
    ])
    def test_table(self, current, target, valid):
        assert is_valid_transition(current, target) is valid

    def test_backward_transition_raises(self):
        session = Session(user_id="user-1")
        session.transition_to(SessionStatus.COMPLETED)
        with pytest.raises(ValueError):
            session.transition_to(SessionStatus.ACTIVE)
        assert session.status is SessionStatus.COMPLETED

    def test_only_active_sessions_are_open(self):
        session = Session(user_id="user-1")
        assert session.is_open
        session.transition_to(SessionStatus.ESCALATED)
        assert not session.is_open


class TestSession:
    """Tests for turn bookkeeping and document mapping."""

    def test_turn_must_belong_to_session(self):
        session = Session(user_id="user-1")
        with pytest.raises(ValueError):
            session.append_turn(Turn("other", Role.USER, "hi", Language.ENGLISH))

    def test_document_round_trip(self):
        session = Session(user_id="user-1", platform=Platform.MESSAGING, language=Language.TELUGU)
        session.append_turn(Turn(session.id, Role.USER, "నాకు జ్వరం", Language.TELUGU, id="t-1"))
        session.append_turn(Turn(
            session.id, Role.ASSISTANT, "How long?", Language.TELUGU,
            kind=MessageKind.ASSESSMENT, metadata={"assessment_step": 0},
        ))
        session.context.remember("symptom_check", [Entity("symptom", "fever", 0.9, 0, 5)], 5)
        session.context.assessment = SymptomAssessmentMachine().start("I have a fever").context

        document = session.to_dict()
        restored = Session.from_dict(document)

        assert document["_id"] == session.id
        assert restored.to_dict() == document
        assert restored.find_user_turn("t-1") == 0
        assert restored.context.assessment.primary_symptom == "fever"
