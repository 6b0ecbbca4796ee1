"""
Session and Assessment States.

Defines the lifecycle states of a session and of a symptom assessment,
together with the valid transitions between them.

Session lifecycle (forward only):

  ACTIVE ──▶ ESCALATED ──▶ COMPLETED
     │                        ▲
     └────────────────────────┘

Assessment lifecycle:

  IDLE ──▶ COLLECTING(step 0..N-1) ──▶ COMPLETE
"""

from enum import Enum


class SessionStatus(Enum):
    """Lifecycle states of a conversation session."""

    ACTIVE = "active"
    ESCALATED = "escalated"
    COMPLETED = "completed"


class AssessmentPhase(Enum):
    """Phases of the symptom assessment state machine."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETE = "complete"


# ── Valid State Transitions ────────────────────────────────────────────────
# A session never moves backwards; COMPLETED is terminal.

VALID_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.ACTIVE: {
        SessionStatus.ESCALATED,
        SessionStatus.COMPLETED,
    },
    SessionStatus.ESCALATED: {
        SessionStatus.COMPLETED,
    },
    SessionStatus.COMPLETED: set(),
}


def is_valid_transition(current: SessionStatus, next_status: SessionStatus) -> bool:
    """Check if a session status transition is valid."""
    return next_status in VALID_TRANSITIONS.get(current, set())


# ── State Display Labels ──────────────────────────────────────────────────

STATUS_LABELS: dict[SessionStatus, str] = {
    SessionStatus.ACTIVE: "💬 Active",
    SessionStatus.ESCALATED: "🧑‍⚕️ Handed to Health Worker",
    SessionStatus.COMPLETED: "✅ Completed",
}

PHASE_LABELS: dict[AssessmentPhase, str] = {
    AssessmentPhase.IDLE: "👋 Listening",
    AssessmentPhase.COLLECTING: "🔍 Asking Follow-up Questions",
    AssessmentPhase.COMPLETE: "📋 Assessment Ready",
}
