"""
Escalation Engine.

Decides when a conversation must be handed to a human health worker and
which worker should take it. The rules are evaluated in priority order and
the first match wins:

  1. critical_urgency  - the classifier rated the turn critical
  2. user_request      - the user explicitly asked for a person
  3. low_confidence    - very low intent confidence deep into a session
  4. repeated_unknown  - the last few intents were all unrecognized

The engine only decides; the session manager applies the hand-off.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import config
from triage.classifier import UNKNOWN_INTENT
from triage.languages import Language
from triage.medical_knowledge import HUMAN_REQUEST_KEYWORDS, contains_any
from triage.models import Classification, Session, Urgency
from triage.workers import HealthWorker, WorkerDirectory

logger = logging.getLogger(__name__)

CRITICAL_URGENCY = "critical_urgency"
USER_REQUEST = "user_request"
LOW_CONFIDENCE = "low_confidence"
REPEATED_UNKNOWN = "repeated_unknown"


@dataclass(frozen=True)
class EscalationDecision:
    escalate: bool
    reason: Optional[str] = None


NO_ESCALATION = EscalationDecision(False)


class EscalationEngine:
    def __init__(
        self,
        directory: WorkerDirectory | None = None,
        low_confidence_threshold: float = config.LOW_CONFIDENCE_THRESHOLD,
        low_confidence_min_turns: int = config.LOW_CONFIDENCE_MIN_TURNS,
        unknown_window: int = config.REPEATED_UNKNOWN_WINDOW,
    ):
        self.directory = directory or WorkerDirectory()
        self.low_confidence_threshold = low_confidence_threshold
        self.low_confidence_min_turns = low_confidence_min_turns
        self.unknown_window = unknown_window

    def should_escalate(self, classification: Classification, session: Session) -> EscalationDecision:
        """Evaluate the rules against the turn just classified.

        ``session`` must already contain the user's turn and have the turn's
        intent recorded in its context.
        """
        if classification.urgency == Urgency.CRITICAL:
            return EscalationDecision(True, CRITICAL_URGENCY)

        user_turns = session.user_turns()
        if user_turns:
            last = user_turns[-1]
            text = classification.normalized_text or last.content
            if contains_any(text, HUMAN_REQUEST_KEYWORDS):
                return EscalationDecision(True, USER_REQUEST)

        if (
            classification.confidence < self.low_confidence_threshold
            and len(session.turns) > self.low_confidence_min_turns
        ):
            return EscalationDecision(True, LOW_CONFIDENCE)

        recent = session.context.recent_intents[-self.unknown_window:]
        if len(recent) == self.unknown_window and all(i == UNKNOWN_INTENT for i in recent):
            return EscalationDecision(True, REPEATED_UNKNOWN)

        return NO_ESCALATION

    def select_worker(self, language: Language) -> Optional[HealthWorker]:
        worker = self.directory.find_available(language)
        if worker is None:
            logger.warning("[Escalation] No online worker available for %s", language.value)
        return worker
