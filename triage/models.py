"""
Conversation Data Model.

Sessions, turns, conversational context, symptom assessment state and the
derived assessment result. Everything that is persisted converts to and from
plain dicts so a whole session can be stored as a single document.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from triage.errors import AssessmentError
from triage.languages import Language
from triage.states import SessionStatus, is_valid_transition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_time(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageKind(Enum):
    TEXT = "text"
    ASSESSMENT = "assessment"
    ESCALATION = "escalation"


class Platform(Enum):
    WEB = "web"
    VOICE = "voice"
    MESSAGING = "messaging"


class Urgency(Enum):
    """Coarse triage priority derived from a single utterance."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Sentiment(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Severity(Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.MILD: 0, Severity.MODERATE: 1, Severity.SEVERE: 2}


class CareUrgency(Enum):
    """Urgency tier of a completed assessment."""

    IMMEDIATE = "immediate"
    SAME_DAY = "same_day"
    FEW_DAYS = "few_days"
    HOME_CARE = "home_care"


class Likelihood(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ── Classification ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Entity:
    """A structured value extracted from text."""
    type: str
    value: str
    confidence: float
    start: int
    end: int
    extractor: str = "keyword_matcher"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "confidence": self.confidence,
            "start": self.start,
            "end": self.end,
            "extractor": self.extractor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        return cls(
            type=data["type"],
            value=data["value"],
            confidence=float(data["confidence"]),
            start=int(data["start"]),
            end=int(data["end"]),
            extractor=data.get("extractor", "keyword_matcher"),
        )


@dataclass
class Classification:
    """Result of classifying one user utterance."""
    intent: str
    confidence: float
    entities: List[Entity] = field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: Urgency = Urgency.LOW
    normalized_text: str = ""

    @property
    def symptoms(self) -> List[str]:
        return [e.value for e in self.entities if e.type == "symptom"]

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": round(self.confidence, 3),
            "entities": [e.to_dict() for e in self.entities],
            "sentiment": self.sentiment.value,
            "urgency": self.urgency.value,
        }


# ── Turns ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Turn:
    """One immutable message within a session."""
    session_id: str
    role: Role
    content: str
    language: Language
    kind: MessageKind = MessageKind.TEXT
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "language": self.language.value,
            "kind": self.kind.value,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            role=Role(data["role"]),
            content=data["content"],
            language=Language.from_code(data["language"]),
            kind=MessageKind(data.get("kind", "text")),
            metadata=dict(data.get("metadata") or {}),
            timestamp=_parse_time(data["timestamp"]),
        )


# ── Symptom Assessment ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class AnswerRecord:
    question_type: str
    answer: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_type": self.question_type,
            "answer": self.answer,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnswerRecord":
        return cls(
            question_type=data["question_type"],
            answer=data["answer"],
            timestamp=_parse_time(data["timestamp"]),
        )


@dataclass
class SymptomAssessmentContext:
    """In-progress follow-up questioning for one primary symptom."""
    primary_symptom: str
    flow_length: int
    duration: str = ""
    severity: Severity = Severity.MILD
    associated_symptoms: List[str] = field(default_factory=list)
    patient_age: Optional[int] = None
    patient_gender: Optional[str] = None
    step: int = 0
    answers: List[AnswerRecord] = field(default_factory=list)
    complete: bool = False
    updated_at: datetime = field(default_factory=utcnow)

    def advance(self) -> None:
        """Move to the next question; completion is reached exactly at flow_length."""
        if self.complete or self.step >= self.flow_length:
            raise AssessmentError(
                f"Assessment for {self.primary_symptom} is already complete"
            )
        self.step += 1
        if self.step == self.flow_length:
            self.complete = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_symptom": self.primary_symptom,
            "flow_length": self.flow_length,
            "duration": self.duration,
            "severity": self.severity.value,
            "associated_symptoms": list(self.associated_symptoms),
            "patient_age": self.patient_age,
            "patient_gender": self.patient_gender,
            "step": self.step,
            "answers": [a.to_dict() for a in self.answers],
            "complete": self.complete,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SymptomAssessmentContext":
        return cls(
            primary_symptom=data["primary_symptom"],
            flow_length=int(data["flow_length"]),
            duration=data.get("duration", ""),
            severity=Severity(data.get("severity", "mild")),
            associated_symptoms=list(data.get("associated_symptoms", [])),
            patient_age=data.get("patient_age"),
            patient_gender=data.get("patient_gender"),
            step=int(data.get("step", 0)),
            answers=[AnswerRecord.from_dict(a) for a in data.get("answers", [])],
            complete=bool(data.get("complete", False)),
            updated_at=_parse_time(data["updated_at"]) if data.get("updated_at") else utcnow(),
        )


@dataclass(frozen=True)
class ConditionCandidate:
    condition: str
    likelihood: Likelihood
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition,
            "likelihood": self.likelihood.value,
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class Recommendations:
    immediate_actions: tuple
    preventive_measures: tuple
    when_to_see_doctor: str
    home_remedies: Optional[tuple] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "immediate_actions": list(self.immediate_actions),
            "preventive_measures": list(self.preventive_measures),
            "when_to_see_doctor": self.when_to_see_doctor,
            "home_remedies": list(self.home_remedies) if self.home_remedies else None,
        }


@dataclass(frozen=True)
class AssessmentResult:
    """Advisory outcome of a completed symptom assessment."""
    primary_symptom: str
    conditions: tuple
    urgency: CareUrgency
    recommendations: Recommendations
    red_flags: tuple

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_symptom": self.primary_symptom,
            "conditions": [c.to_dict() for c in self.conditions],
            "urgency": self.urgency.value,
            "recommendations": self.recommendations.to_dict(),
            "red_flags": list(self.red_flags),
        }


# ── Context & Session ──────────────────────────────────────────────────────

@dataclass
class Context:
    """Accumulated conversational state of a session."""
    current_intent: Optional[str] = None
    entities: List[Entity] = field(default_factory=list)
    recent_intents: List[str] = field(default_factory=list)
    assessment: Optional[SymptomAssessmentContext] = None

    def remember(self, intent: str, entities: List[Entity], history_size: int) -> None:
        """Record an intent and merge newly seen entities (deduplicated by type/value)."""
        self.current_intent = intent
        self.recent_intents = (self.recent_intents + [intent])[-history_size:]
        seen = {(e.type, e.value) for e in self.entities}
        for entity in entities:
            if (entity.type, entity.value) not in seen:
                self.entities.append(entity)
                seen.add((entity.type, entity.value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_intent": self.current_intent,
            "entities": [e.to_dict() for e in self.entities],
            "recent_intents": list(self.recent_intents),
            "assessment": self.assessment.to_dict() if self.assessment else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Context":
        assessment = data.get("assessment")
        return cls(
            current_intent=data.get("current_intent"),
            entities=[Entity.from_dict(e) for e in data.get("entities", [])],
            recent_intents=list(data.get("recent_intents", [])),
            assessment=SymptomAssessmentContext.from_dict(assessment) if assessment else None,
        )


@dataclass
class Session:
    """A bounded, ordered conversation between one user and the assistant."""
    user_id: str
    platform: Platform = Platform.WEB
    language: Language = Language.ENGLISH
    id: str = field(default_factory=new_id)
    turns: List[Turn] = field(default_factory=list)
    context: Context = field(default_factory=Context)
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    worker_id: Optional[str] = None
    escalation_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def append_turn(self, turn: Turn) -> Turn:
        if turn.session_id != self.id:
            raise ValueError(f"Turn {turn.id} belongs to session {turn.session_id}, not {self.id}")
        self.turns.append(turn)
        self.last_activity = turn.timestamp
        return turn

    def transition_to(self, status: SessionStatus) -> None:
        if not is_valid_transition(self.status, status):
            raise ValueError(f"Invalid session transition {self.status.value} -> {status.value}")
        self.status = status
        if status == SessionStatus.COMPLETED:
            self.ended_at = utcnow()

    def user_turns(self) -> List[Turn]:
        return [t for t in self.turns if t.role == Role.USER]

    def find_user_turn(self, turn_id: str) -> Optional[int]:
        for index, turn in enumerate(self.turns):
            if turn.id == turn_id and turn.role == Role.USER:
                return index
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "user_id": self.user_id,
            "platform": self.platform.value,
            "language": self.language.value,
            "turns": [t.to_dict() for t in self.turns],
            "context": self.context.to_dict(),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "worker_id": self.worker_id,
            "escalation_reason": self.escalation_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data.get("_id") or data["id"],
            user_id=data["user_id"],
            platform=Platform(data.get("platform", "web")),
            language=Language.from_code(data.get("language", "en")),
            turns=[Turn.from_dict(t) for t in data.get("turns", [])],
            context=Context.from_dict(data.get("context") or {}),
            status=SessionStatus(data.get("status", "active")),
            started_at=_parse_time(data["started_at"]),
            last_activity=_parse_time(data["last_activity"]),
            ended_at=_parse_time(data["ended_at"]) if data.get("ended_at") else None,
            worker_id=data.get("worker_id"),
            escalation_reason=data.get("escalation_reason"),
        )
