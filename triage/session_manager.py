"""
Session Manager — Conversation Orchestrator.

Owns the lifecycle of a session and runs every inbound turn through the
pipeline:

  1. Load (or create) the session and take its lock
  2. Classify the language-normalized text
  3. Let an in-progress symptom assessment consume the turn
  4. Ask the escalation engine whether to hand off to a human
  5. Otherwise reply from the assessment flow, a template or the LLM
  6. Append the user and reply turns and commit the session

All work for a turn happens on a private copy of the session. The copy is
committed only after the whole turn succeeded, so a failure never leaves a
half-updated context behind.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

import config
from database.session_store import SessionStore
from triage.assessment import AssessmentStep, SymptomAssessmentMachine
from triage.classifier import UNKNOWN_INTENT, IntentClassifier, detect_symptom_mention
from triage.errors import (
    ModelGatewayExhausted,
    SessionClosedError,
    SessionNotFoundError,
    TranslationError,
)
from triage.escalation import CRITICAL_URGENCY, EscalationEngine
from triage.language_service import LanguageService
from triage.languages import WORKING_LANGUAGE, Language
from triage.llm_engine import LLMEngine
from triage.medical_knowledge import check_emergency_keywords
from triage.models import (
    AssessmentResult,
    Classification,
    MessageKind,
    Platform,
    Role,
    Session,
    Turn,
    new_id,
    utcnow,
)
from triage.responses import (
    EMERGENCY_NOTICE,
    INTENT_RESPONSES,
    TURN_LIMIT_RESPONSE,
    escalation_message,
    fallback_message,
)
from triage.states import SessionStatus

logger = logging.getLogger(__name__)

ASSESSMENT_ANSWER_INTENT = "assessment_answer"
CANCEL_INTENT = "cancel_assessment"
TRUNCATION_SUFFIX = "... (truncated)"


@dataclass
class TurnResponse:
    """What a caller gets back for one submitted turn."""
    session: Session
    turn: Turn
    escalated: bool = False
    assessment_complete: bool = False
    assessment_result: Optional[AssessmentResult] = None
    classification: Optional[Classification] = None
    quick_replies: list = field(default_factory=list)
    duplicate: bool = False


class SessionManager:
    """Entry point for conversation turns; safe to share across request threads."""

    def __init__(
        self,
        classifier: IntentClassifier,
        assessment: SymptomAssessmentMachine,
        escalation: EscalationEngine,
        llm: LLMEngine,
        language_service: LanguageService,
        store: SessionStore,
        clock: Callable[[], datetime] = utcnow,
        max_turns: int = config.MAX_CONVERSATION_TURNS,
        max_message_chars: int = config.MAX_MESSAGE_CHARS,
        idle_timeout_minutes: float = config.ASSESSMENT_IDLE_TIMEOUT_MINUTES,
        intent_history_size: int = config.INTENT_HISTORY_SIZE,
    ):
        self.classifier = classifier
        self.assessment = assessment
        self.escalation = escalation
        self.llm = llm
        self.language_service = language_service
        self.store = store
        self._clock = clock
        self.max_turns = max_turns
        self.max_message_chars = max_message_chars
        self.idle_timeout = timedelta(minutes=idle_timeout_minutes)
        self.intent_history_size = intent_history_size

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # Serializes the final "still open?" check + save against end_session
        self._commit_lock = threading.Lock()

    # ── Locks ──────────────────────────────────────────────────────────

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def _drop_lock(self, session_id: str) -> None:
        # Closed sessions take no more turns
        with self._locks_guard:
            self._locks.pop(session_id, None)

    # ── Lifecycle ──────────────────────────────────────────────────────

    def _load(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def create_session(
        self,
        user_id: str,
        platform: Platform = Platform.WEB,
        language: Language | str | None = None,
    ) -> Session:
        if language is not None and not isinstance(language, Language):
            language = Language.from_code(language)
        session = Session(user_id=user_id, platform=platform, language=language or WORKING_LANGUAGE)
        self.store.save(session)
        logger.info("[Session] Created %s for user %s (%s)", session.id, user_id, session.language.value)
        return session

    def get_session(self, session_id: str) -> Session:
        return self._load(session_id)

    def active_sessions(self) -> list[Session]:
        return self.store.list_by_status(SessionStatus.ACTIVE)

    def end_session(self, session_id: str) -> Session:
        """Close a session. Turns already in flight finish but are not committed."""
        with self._commit_lock:
            session = self._load(session_id)
            if session.status != SessionStatus.COMPLETED:
                session.transition_to(SessionStatus.COMPLETED)
                self.store.save(session)
                logger.info("[Session] Ended %s", session_id)
        self._drop_lock(session_id)
        return session

    def reset_escalation(self, session_id: str) -> Session:
        """Operator reset of a handed-off session. Status never moves backward, so it completes."""
        with self._commit_lock:
            session = self._load(session_id)
            if session.status != SessionStatus.ESCALATED:
                raise SessionClosedError(session_id, session.status.value)
            session.append_turn(Turn(
                session_id=session.id,
                role=Role.SYSTEM,
                content="This conversation was closed by a health worker.",
                language=session.language,
                kind=MessageKind.ESCALATION,
                metadata={"operator_reset": True, "worker_id": session.worker_id},
                timestamp=self._clock(),
            ))
            session.transition_to(SessionStatus.COMPLETED)
            self.store.save(session)
        self._drop_lock(session_id)
        logger.info("[Session] Operator reset of escalated session %s", session_id)
        return session

    # ── Turn handling ──────────────────────────────────────────────────

    def handle_turn(
        self,
        session_id: str | None,
        user_id: str,
        text: str,
        language: Language | str | None = None,
        platform: Platform = Platform.WEB,
        turn_id: str | None = None,
        age: int | None = None,
        gender: str | None = None,
    ) -> TurnResponse:
        """
        Process one user message.

        Args:
            session_id: Existing session, or None to start a new one.
            user_id: Caller-supplied user identifier.
            text: The user's message, in any supported language.
            language: Explicit language (enum or code); detected when omitted.
            platform: Channel the message arrived on.
            turn_id: Optional idempotency token; a repeat returns the stored reply.
            age, gender: Optional demographics for the symptom assessment.

        Raises:
            UnsupportedLanguageError: ``language`` is not a supported code.
            SessionNotFoundError: ``session_id`` is unknown.
            SessionClosedError: the session is completed or escalated.
        """
        if language is not None and not isinstance(language, Language):
            language = Language.from_code(language)

        text = text.strip()
        if not text:
            raise ValueError("Message text must not be empty")
        if len(text) > self.max_message_chars:
            text = text[: self.max_message_chars] + TRUNCATION_SUFFIX

        if session_id is None:
            detected = language or self.language_service.detect(text)
            session_id = self.create_session(user_id, platform, detected).id

        try:
            with self._lock_for(session_id):
                response = self._handle_locked(session_id, text, language, turn_id, age, gender)
        except (SessionClosedError, SessionNotFoundError):
            self._drop_lock(session_id)
            raise
        if not response.session.is_open:
            self._drop_lock(session_id)
        return response

    def _handle_locked(
        self,
        session_id: str,
        text: str,
        language: Language | None,
        turn_id: str | None,
        age: int | None,
        gender: str | None,
    ) -> TurnResponse:
        stored = self._load(session_id)

        if turn_id is not None:
            duplicate = self._replay(stored, turn_id)
            if duplicate is not None:
                return duplicate

        if not stored.is_open:
            raise SessionClosedError(session_id, stored.status.value)

        if len(stored.user_turns()) >= self.max_turns:
            logger.info("[Session] %s reached the turn limit", session_id)
            notice = Turn(
                session_id=session_id,
                role=Role.ASSISTANT,
                content=self._localize(TURN_LIMIT_RESPONSE, stored.language),
                language=stored.language,
                metadata={"turn_limit": True},
                timestamp=self._clock(),
            )
            return TurnResponse(session=stored, turn=notice)

        working = copy.deepcopy(stored)
        if language is not None:
            working.language = language
        else:
            detected = self.language_service.detect(text)
            if detected != WORKING_LANGUAGE:
                working.language = detected

        response = self._process(working, text, turn_id, age, gender)
        self._commit(working)
        return response

    def _replay(self, session: Session, turn_id: str) -> TurnResponse | None:
        index = session.find_user_turn(turn_id)
        if index is None:
            return None
        reply = session.turns[index + 1] if index + 1 < len(session.turns) else session.turns[-1]
        logger.info("[Session] Duplicate turn %s on %s, replaying stored reply", turn_id, session.id)
        return TurnResponse(
            session=session,
            turn=reply,
            escalated=reply.kind == MessageKind.ESCALATION,
            assessment_complete=bool(reply.metadata.get("assessment_complete")),
            quick_replies=list(reply.metadata.get("quick_replies", [])),
            duplicate=True,
        )

    def _commit(self, working: Session) -> None:
        with self._commit_lock:
            current = self.store.get(working.id)
            if current is None or current.status == SessionStatus.COMPLETED:
                logger.warning("[Session] %s was closed during the turn; discarding its result", working.id)
                raise SessionClosedError(working.id, SessionStatus.COMPLETED.value)
            self.store.save(working)

    def _process(
        self,
        session: Session,
        text: str,
        turn_id: str | None,
        age: int | None,
        gender: str | None,
    ) -> TurnResponse:
        now = self._clock()
        session.append_turn(Turn(
            session_id=session.id,
            role=Role.USER,
            content=text,
            language=session.language,
            id=turn_id or new_id(),
            timestamp=now,
        ))

        context = session.context
        classification = self.classifier.classify(text, session.language, context)
        normalized = classification.normalized_text or text

        # ── Abandonment of an in-progress assessment ───────────────────
        cancelled = False
        if context.assessment is not None:
            if classification.intent == CANCEL_INTENT:
                logger.info("[Session] %s cancelled its %s assessment", session.id, context.assessment.primary_symptom)
                context.assessment = None
                cancelled = True
            elif self.assessment.is_abandoned(context.assessment, now, self.idle_timeout):
                logger.info("[Session] %s assessment idle too long, discarding", session.id)
                context.assessment = None

        # ── Assessment consumes the turn ───────────────────────────────
        step: AssessmentStep | None = None
        if context.assessment is not None:
            step = self.assessment.answer(context.assessment, normalized, now=now)
            classification = replace(classification, intent=ASSESSMENT_ANSWER_INTENT, confidence=1.0)

        context.remember(classification.intent, classification.entities, self.intent_history_size)

        # ── Escalation ─────────────────────────────────────────────────
        decision = self.escalation.should_escalate(classification, session)
        if decision.escalate:
            return self._escalate(session, classification, decision.reason, now)

        # ── Reply ──────────────────────────────────────────────────────
        if step is not None:
            if step.complete:
                context.assessment = None
            return self._reply_from_step(session, classification, step, now)

        if cancelled:
            return self._reply_from_template(session, classification, CANCEL_INTENT, now)

        if classification.intent == "symptom_check" or (
            classification.intent == UNKNOWN_INTENT and detect_symptom_mention(normalized)
        ):
            age, gender = self._demographics(classification, age, gender)
            step = self.assessment.start(normalized, session.language, age, gender, now=now)
            context.assessment = step.context
            return self._reply_from_step(session, classification, step, now)

        if (
            classification.intent in INTENT_RESPONSES
            and classification.confidence >= self.classifier.threshold
        ):
            return self._reply_from_template(session, classification, classification.intent, now)

        return self._reply_from_llm(session, classification, normalized, now)

    # ── Reply builders ─────────────────────────────────────────────────

    def _localize(self, text: str, language: Language) -> str:
        if language == WORKING_LANGUAGE:
            return text
        try:
            return self.language_service.translate(text, WORKING_LANGUAGE, language)
        except TranslationError as error:
            logger.warning("[Session] Reply translation to %s failed, sending English: %s", language.value, error)
            return text

    def _reply(
        self,
        session: Session,
        classification: Classification,
        content: str,
        now: datetime,
        kind: MessageKind = MessageKind.TEXT,
        role: Role = Role.ASSISTANT,
        extra: dict | None = None,
    ) -> Turn:
        metadata = classification.to_metadata()
        metadata.update(extra or {})
        turn = Turn(
            session_id=session.id,
            role=role,
            content=content,
            language=session.language,
            kind=kind,
            metadata=metadata,
            timestamp=now,
        )
        return session.append_turn(turn)

    def _reply_from_step(
        self, session: Session, classification: Classification, step: AssessmentStep, now: datetime
    ) -> TurnResponse:
        if step.complete:
            body = self.assessment.render_result(step.result)
        else:
            body = step.question
        opener = step.empathy or step.acknowledgement
        content = self._localize(f"{opener}\n\n{body}" if opener else body, session.language)

        extra = {
            "assessment_step": step.context.step,
            "assessment_symptom": step.context.primary_symptom,
            "assessment_complete": step.complete,
        }
        if step.complete:
            extra["assessment_result"] = step.result.to_dict()
        turn = self._reply(session, classification, content, now, kind=MessageKind.ASSESSMENT, extra=extra)
        return TurnResponse(
            session=session,
            turn=turn,
            assessment_complete=step.complete,
            assessment_result=step.result,
            classification=classification,
        )

    def _reply_from_template(
        self, session: Session, classification: Classification, intent: str, now: datetime
    ) -> TurnResponse:
        template = INTENT_RESPONSES[intent]
        content = self._localize(template["text"], session.language)
        quick_replies = [self._localize(q, session.language) for q in template.get("quick_replies", [])]
        turn = self._reply(session, classification, content, now, extra={"quick_replies": quick_replies})
        return TurnResponse(session=session, turn=turn, classification=classification, quick_replies=quick_replies)

    def _reply_from_llm(
        self, session: Session, classification: Classification, normalized: str, now: datetime
    ) -> TurnResponse:
        try:
            reply = self.llm.generate(session, normalized)
        except ModelGatewayExhausted as error:
            logger.error("[Session] No model available for %s: %s", session.id, error.reason or "all attempts failed")
            content = fallback_message(session.language)
            turn = self._reply(session, classification, content, now, extra={"fallback": True})
            return TurnResponse(session=session, turn=turn, classification=classification)

        content = self._localize(reply.text, session.language)
        turn = self._reply(
            session, classification, content, now,
            extra={"model": reply.model_used, "structured": reply.structured},
        )
        return TurnResponse(session=session, turn=turn, classification=classification)

    def _escalate(
        self, session: Session, classification: Classification, reason: str, now: datetime
    ) -> TurnResponse:
        worker = self.escalation.select_worker(session.language)
        session.context.assessment = None
        session.transition_to(SessionStatus.ESCALATED)
        session.escalation_reason = reason
        session.worker_id = worker.id if worker else None

        worker_name = worker.name if worker else None
        content = escalation_message(session.language, worker_name)
        if reason == CRITICAL_URGENCY:
            content = f"{content}\n\n{self._localize(EMERGENCY_NOTICE, session.language)}"

        turn = self._reply(
            session, classification, content, now,
            kind=MessageKind.ESCALATION,
            role=Role.SYSTEM,
            extra={
                "escalation_reason": reason,
                "worker_id": session.worker_id,
                "emergency_keywords": check_emergency_keywords(classification.normalized_text),
            },
        )
        logger.warning(
            "[Escalation] Session %s escalated (%s), worker=%s", session.id, reason, session.worker_id
        )
        return TurnResponse(session=session, turn=turn, escalated=True, classification=classification)

    @staticmethod
    def _demographics(
        classification: Classification, age: int | None, gender: str | None
    ) -> tuple[int | None, str | None]:
        for entity in classification.entities:
            if age is None and entity.type == "age" and entity.value.endswith("years"):
                age = int(entity.value.split()[0])
            elif gender is None and entity.type == "gender":
                gender = entity.value
        return age, gender
