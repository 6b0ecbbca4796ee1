"""
Symptom Assessment State Machine.

Drives a fixed sequence of follow-up questions for one primary symptom:

  IDLE ──(symptom mention)──▶ COLLECTING(step 0..N-1) ──(Nth answer)──▶ COMPLETE

Each answer is recorded verbatim with its question type, parsed into the
structured fields (duration, severity, associated symptoms) and acknowledged.
The Nth answer completes the assessment and synthesizes an AssessmentResult
from the symptom's static profile cross-referenced with the answers.

The machine mutates the SymptomAssessmentContext it is handed; the session
manager gives it a working copy and commits only after the turn succeeds.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from triage.classifier import detect_primary_symptom
from triage.errors import AssessmentError
from triage.medical_knowledge import (
    ASSOCIATED_SYMPTOM_VOCABULARY,
    GENERAL_SYMPTOM,
    SEVERITY_KEYWORDS,
    SYMPTOM_PROFILES,
    contains_any,
    find_keyword,
)
from triage.models import (
    AnswerRecord,
    AssessmentResult,
    CareUrgency,
    ConditionCandidate,
    Likelihood,
    Recommendations,
    Severity,
    SymptomAssessmentContext,
    utcnow,
)
from triage.responses import (
    ACKNOWLEDGEMENTS,
    DEFAULT_ACKNOWLEDGEMENT,
    EMPATHY_RESPONSES,
    HOME_REMEDIES,
    IMMEDIATE_ACTIONS,
    PREVENTIVE_MEASURES,
    RED_FLAG_WARNINGS,
    WHEN_TO_SEE_DOCTOR,
    question_for,
    render_assessment,
)
from triage.languages import Language
from triage.states import AssessmentPhase

logger = logging.getLogger(__name__)

MAX_CONDITIONS = 5

_DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(hour|day|week|month)s?\b", re.IGNORECASE)
_UNIT_DAYS = {"hour": 1 / 24, "day": 1, "week": 7, "month": 30}
_DURATION_WORDS = {
    "today": 0.5,
    "this morning": 0.5,
    "yesterday": 1,
    "a few days": 3,
    "a week": 7,
    "one week": 7,
    "a fortnight": 14,
    "two weeks": 14,
    "three weeks": 21,
    "a month": 30,
}


# ── Parsers ───────────────────────────────────────────────────────────────

def parse_severity(answer: str) -> Severity:
    if contains_any(answer, SEVERITY_KEYWORDS["severe"]):
        return Severity.SEVERE
    if contains_any(answer, SEVERITY_KEYWORDS["moderate"]):
        return Severity.MODERATE
    return Severity.MILD


def parse_associated_symptoms(answer: str, exclude: str | None = None) -> list[str]:
    return [
        tag for tag, forms in ASSOCIATED_SYMPTOM_VOCABULARY.items()
        if tag != exclude and contains_any(answer, forms)
    ]


def parse_duration_days(text: str) -> Optional[float]:
    """Best-effort conversion of a free-text duration into days."""
    match = _DURATION_PATTERN.search(text)
    if match:
        return float(match.group(1)) * _UNIT_DAYS[match.group(2).lower()]
    lowered = text.lower()
    for phrase, days in _DURATION_WORDS.items():
        if phrase in lowered:
            return days
    return None


def _merge(existing: list[str], new: list[str]) -> list[str]:
    return existing + [tag for tag in new if tag not in existing]


def _at_least(current: Severity, candidate: Severity) -> Severity:
    return candidate if candidate.rank > current.rank else current


@dataclass
class AssessmentStep:
    """What the state machine has to say after a transition."""
    context: SymptomAssessmentContext
    empathy: Optional[str] = None
    acknowledgement: Optional[str] = None
    question: Optional[str] = None
    result: Optional[AssessmentResult] = None

    @property
    def complete(self) -> bool:
        return self.result is not None


# ── State Machine ─────────────────────────────────────────────────────────

class SymptomAssessmentMachine:
    """Deterministic follow-up questioning for the supported symptom profiles."""

    def __init__(self, profiles: dict | None = None):
        self.profiles = profiles or SYMPTOM_PROFILES

    def _profile(self, symptom: str) -> dict:
        return self.profiles.get(symptom, self.profiles[GENERAL_SYMPTOM])

    def flow(self, symptom: str) -> list[str]:
        return list(self._profile(symptom)["question_flow"])

    @staticmethod
    def phase(context: SymptomAssessmentContext | None) -> AssessmentPhase:
        if context is None:
            return AssessmentPhase.IDLE
        return AssessmentPhase.COMPLETE if context.complete else AssessmentPhase.COLLECTING

    def current_question_type(self, context: SymptomAssessmentContext) -> str:
        if context.complete:
            raise AssessmentError("Assessment is complete; no question pending")
        return self.flow(context.primary_symptom)[context.step]

    def current_question(self, context: SymptomAssessmentContext) -> str:
        return question_for(context.primary_symptom, self.current_question_type(context))

    @staticmethod
    def is_abandoned(context: SymptomAssessmentContext, now: datetime, idle_timeout: timedelta) -> bool:
        return now - context.updated_at > idle_timeout

    def start(
        self,
        mention: str,
        language: Language | None = None,
        age: int | None = None,
        gender: str | None = None,
        now: datetime | None = None,
    ) -> AssessmentStep:
        """IDLE → COLLECTING(0). The opening message seeds fields but is not an answer.

        ``mention`` must already be in the working language; ``language`` is the
        language the user spoke, kept for logging only.
        """
        symptom = detect_primary_symptom(mention)
        context = SymptomAssessmentContext(
            primary_symptom=symptom,
            flow_length=len(self.flow(symptom)),
            patient_age=age,
            patient_gender=gender,
            updated_at=now or utcnow(),
        )

        seeded_duration = _DURATION_PATTERN.search(mention)
        if seeded_duration:
            context.duration = seeded_duration.group(0)
        context.severity = parse_severity(mention)
        context.associated_symptoms = parse_associated_symptoms(mention, exclude=symptom)
        logger.info(
            "[Assessment] Started %s assessment (%d questions, user language %s)",
            symptom, context.flow_length, language.value if language else "unknown",
        )

        return AssessmentStep(
            context=context,
            empathy=EMPATHY_RESPONSES.get(symptom, EMPATHY_RESPONSES[GENERAL_SYMPTOM]),
            question=self.current_question(context),
        )

    def answer(
        self, context: SymptomAssessmentContext, answer: str, now: datetime | None = None
    ) -> AssessmentStep:
        """COLLECTING(k) → COLLECTING(k+1), or → COMPLETE on the last answer."""
        question_type = self.current_question_type(context)
        now = now or utcnow()
        context.answers.append(AnswerRecord(question_type, answer, now))

        if question_type == "duration":
            context.duration = answer.strip()
        elif question_type == "severity":
            context.severity = _at_least(context.severity, parse_severity(answer))
        elif question_type == "associated_symptoms":
            context.associated_symptoms = _merge(
                context.associated_symptoms,
                parse_associated_symptoms(answer, exclude=context.primary_symptom),
            )

        context.updated_at = now
        context.advance()
        acknowledgement = ACKNOWLEDGEMENTS.get(question_type, DEFAULT_ACKNOWLEDGEMENT)

        if context.complete:
            result = self.synthesize(context)
            logger.info(
                "[Assessment] Completed %s assessment: urgency=%s",
                context.primary_symptom, result.urgency.value,
            )
            return AssessmentStep(context=context, acknowledgement=acknowledgement, result=result)
        return AssessmentStep(
            context=context,
            acknowledgement=acknowledgement,
            question=self.current_question(context),
        )

    # ── Synthesis ──────────────────────────────────────────────────────

    def red_flag_hits(self, context: SymptomAssessmentContext) -> list[str]:
        flags = self._profile(context.primary_symptom)["red_flags"]
        return [
            flag for flag in flags
            if any(find_keyword(record.answer, flag) for record in context.answers)
        ]

    def _urgency(self, context: SymptomAssessmentContext) -> CareUrgency:
        if self.red_flag_hits(context) or context.severity == Severity.SEVERE:
            return CareUrgency.IMMEDIATE
        if context.severity == Severity.MODERATE:
            return CareUrgency.SAME_DAY
        days = parse_duration_days(context.duration) if context.duration else None
        if days is not None and days > 7:
            return CareUrgency.FEW_DAYS
        return CareUrgency.HOME_CARE

    def _conditions(self, context: SymptomAssessmentContext) -> tuple:
        reported = set(context.associated_symptoms)
        label = context.primary_symptom.replace("_", " ")
        scored = []
        for cause, indicators in self._profile(context.primary_symptom)["common_causes"].items():
            overlap = [tag.replace("_", " ") for tag in indicators if tag in reported]
            if len(overlap) >= 2:
                likelihood = Likelihood.HIGH
            elif overlap:
                likelihood = Likelihood.MEDIUM
            else:
                likelihood = Likelihood.LOW
            if overlap:
                rationale = f"{label.capitalize()} together with {', '.join(overlap)} is typical of {cause}."
            else:
                rationale = f"{cause.capitalize()} is a common cause of {label}."
            scored.append((len(overlap), ConditionCandidate(cause, likelihood, rationale)))

        scored.sort(key=lambda item: item[0], reverse=True)
        return tuple(candidate for _, candidate in scored[:MAX_CONDITIONS])

    def synthesize(self, context: SymptomAssessmentContext) -> AssessmentResult:
        if not context.complete:
            raise AssessmentError("Cannot synthesize an incomplete assessment")

        symptom = context.primary_symptom
        urgency = self._urgency(context)
        home_remedies = None
        if urgency != CareUrgency.IMMEDIATE:
            home_remedies = tuple(HOME_REMEDIES.get(symptom, HOME_REMEDIES["default"]))

        return AssessmentResult(
            primary_symptom=symptom,
            conditions=self._conditions(context),
            urgency=urgency,
            recommendations=Recommendations(
                immediate_actions=tuple(IMMEDIATE_ACTIONS.get(symptom, IMMEDIATE_ACTIONS["default"])),
                preventive_measures=tuple(PREVENTIVE_MEASURES.get(symptom, PREVENTIVE_MEASURES["default"])),
                when_to_see_doctor=WHEN_TO_SEE_DOCTOR[urgency],
                home_remedies=home_remedies,
            ),
            red_flags=tuple(RED_FLAG_WARNINGS.get(symptom, RED_FLAG_WARNINGS["default"])),
        )

    @staticmethod
    def render_result(result: AssessmentResult) -> str:
        return render_assessment(result)
