"""
Language & Intent Classifier.

Turns a raw utterance into intent, confidence, entities, sentiment and
urgency. Everything is matched against English tables, so non-English input
is first translated through the language service.

Intent recognition runs in three tiers:
  1. Token-set (Jaccard) similarity against example utterances, with a
     continuity boost for the session's current intent
  2. Keyword rules when no example clears the confidence threshold
  3. ``unknown`` with a low confidence
"""

import logging
import re

import config
from triage.errors import TranslationError
from triage.language_service import LanguageService
from triage.languages import WORKING_LANGUAGE, Language
from triage.medical_knowledge import (
    ALL_EMERGENCY_KEYWORDS,
    GENERAL_SYMPTOM,
    HIGH_URGENCY_KEYWORDS,
    HUMAN_REQUEST_KEYWORDS,
    NEGATIVE_WORDS,
    POSITIVE_WORDS,
    PRIMARY_SYMPTOM_SYNONYMS,
    SYMPTOM_ENTITY_KEYWORDS,
    SYMPTOM_MENTION_KEYWORDS,
    contains_any,
    find_keyword,
)
from triage.models import Classification, Context, Entity, Sentiment, Urgency

logger = logging.getLogger(__name__)

UNKNOWN_INTENT = "unknown"

# ── Intent Library ────────────────────────────────────────────────────────

INTENT_EXAMPLES: dict[str, list[str]] = {
    "greeting": [
        "hello", "hi", "namaste", "good morning", "good evening",
        "hey", "greetings", "salaam", "vanakkam", "hi there", "hello there",
    ],
    "symptom_check": [
        "i have fever", "feeling sick", "not feeling well", "symptoms",
        "headache", "cough", "pain", "illness", "i feel unwell",
    ],
    "vaccination_info": [
        "vaccination", "vaccine", "immunization", "shots",
        "when to vaccinate", "vaccine schedule",
    ],
    "emergency": [
        "emergency", "urgent", "critical", "severe pain",
        "can't breathe", "chest pain", "unconscious",
    ],
    "thanks": [
        "thank you", "thanks", "thank you so much", "thanks a lot",
    ],
    "farewell": [
        "bye", "goodbye", "see you", "good night",
    ],
    "cancel_assessment": [
        "cancel", "stop", "never mind", "start over", "stop asking",
    ],
    "human_request": [
        "talk to a human", "speak to a doctor", "i want a real person",
        "connect me to a health worker",
    ],
}

# Keyword fallback rules, evaluated in order: (intent, keywords, confidence)
KEYWORD_RULES: list[tuple[str, list[str], float]] = [
    ("emergency", ["emergency", "urgent"], 0.8),
    ("human_request", HUMAN_REQUEST_KEYWORDS, 0.6),
    ("vaccination_info", ["vaccine", "vaccination", "immunization", "immunisation"], 0.6),
    ("cancel_assessment", ["cancel", "never mind", "start over"], 0.6),
    ("symptom_check", ["symptom", "sick", "pain", "unwell"], 0.6),
]

# ── Entity Patterns ───────────────────────────────────────────────────────

AGE_PATTERN = re.compile(r"(\d+)\s*(year|month|day)s?[\s-]*old", re.IGNORECASE)
AGED_PATTERN = re.compile(r"\baged?\s*(?:is\s*)?(\d{1,3})\b", re.IGNORECASE)
DURATION_PATTERN = re.compile(r"(\d+)\s*(hour|day|week|month)s?\b", re.IGNORECASE)
LOCATION_PATTERN = re.compile(r"\b(\w+)\s+(village|city|district|state|town)\b", re.IGNORECASE)
PINCODE_PATTERN = re.compile(r"\bpin\s*code\s*:?\s*(\d{6})\b|\bpincode\s*:?\s*(\d{6})\b", re.IGNORECASE)
GENDER_PATTERN = re.compile(r"\b(male|female|man|woman|boy|girl)\b", re.IGNORECASE)

_TOKEN_PATTERN = re.compile(r"[\w']+")


def tokenize(text: str) -> set[str]:
    return set(_TOKEN_PATTERN.findall(text.lower()))


def jaccard_similarity(first: str, second: str) -> float:
    a, b = tokenize(first), tokenize(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def detect_symptom_mention(text: str) -> bool:
    """Cheap check for any symptom vocabulary in the text."""
    return contains_any(text, SYMPTOM_MENTION_KEYWORDS)


def detect_primary_symptom(text: str) -> str:
    """Map a symptom mention onto the closed symptom vocabulary."""
    for symptom, synonyms in PRIMARY_SYMPTOM_SYNONYMS.items():
        if contains_any(text, synonyms):
            return symptom
    return GENERAL_SYMPTOM


# ── Extractors ────────────────────────────────────────────────────────────

def extract_entities(text: str) -> list[Entity]:
    """Run the independent symptom, age, duration, gender and location matchers."""
    entities: list[Entity] = []

    seen_symptoms: set[str] = set()
    for keyword, value in SYMPTOM_ENTITY_KEYWORDS.items():
        match = find_keyword(text, keyword)
        if match and value not in seen_symptoms:
            seen_symptoms.add(value)
            entities.append(Entity("symptom", value, 0.9, match.start(), match.end()))

    age_match = AGE_PATTERN.search(text) or AGED_PATTERN.search(text)
    if age_match:
        if age_match.re is AGE_PATTERN:
            value = f"{age_match.group(1)} {age_match.group(2).lower()}s"
        else:
            value = f"{age_match.group(1)} years"
        entities.append(Entity("age", value, 0.95, age_match.start(), age_match.end(), "regex"))

    duration_match = DURATION_PATTERN.search(text)
    if duration_match and not (age_match and age_match.start() == duration_match.start()):
        value = f"{duration_match.group(1)} {duration_match.group(2).lower()}s"
        entities.append(
            Entity("duration", value, 0.85, duration_match.start(), duration_match.end(), "regex")
        )

    gender_match = GENDER_PATTERN.search(text)
    if gender_match:
        entities.append(
            Entity("gender", gender_match.group(1).lower(), 0.8,
                   gender_match.start(), gender_match.end(), "regex")
        )

    for match in LOCATION_PATTERN.finditer(text):
        entities.append(Entity("location", match.group(1), 0.8, match.start(), match.end(), "regex"))
    pincode = PINCODE_PATTERN.search(text)
    if pincode:
        entities.append(
            Entity("location", pincode.group(1) or pincode.group(2), 0.8,
                   pincode.start(), pincode.end(), "regex")
        )

    return entities


def analyze_sentiment(text: str) -> Sentiment:
    positive = sum(1 for word in POSITIVE_WORDS if find_keyword(text, word))
    negative = sum(1 for word in NEGATIVE_WORDS if find_keyword(text, word))
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def detect_urgency(text: str, entities: list[Entity]) -> Urgency:
    """Priority-ordered scan: emergency keywords, then high-urgency symptoms, then entity count."""
    if contains_any(text, ALL_EMERGENCY_KEYWORDS):
        return Urgency.CRITICAL
    if contains_any(text, HIGH_URGENCY_KEYWORDS):
        return Urgency.HIGH
    symptoms = {e.value for e in entities if e.type == "symptom"}
    if len(symptoms) > 2:
        return Urgency.MEDIUM
    return Urgency.LOW


# ── Classifier ────────────────────────────────────────────────────────────

class IntentClassifier:
    """Classifies utterances in any supported language."""

    def __init__(
        self,
        language_service: LanguageService,
        threshold: float = config.INTENT_CONFIDENCE_THRESHOLD,
        continuity_boost: float = config.CONTEXT_CONTINUITY_BOOST,
    ):
        self.language_service = language_service
        self.threshold = threshold
        self.continuity_boost = continuity_boost

    def normalize(self, text: str, language: Language) -> str:
        """Translate into the working language; fall back to the original text."""
        if language == WORKING_LANGUAGE:
            return text
        try:
            return self.language_service.translate(text, language, WORKING_LANGUAGE)
        except TranslationError as error:
            logger.warning("[Classifier] Translation failed, classifying untranslated text: %s", error)
            return text

    def recognize_intent(self, text: str, context: Context | None = None) -> tuple[str, float]:
        best_intent, best_confidence = UNKNOWN_INTENT, 0.0
        current = context.current_intent if context else None

        for intent, examples in INTENT_EXAMPLES.items():
            confidence = max(jaccard_similarity(text, example) for example in examples)
            if intent == current:
                confidence = min(1.0, confidence * self.continuity_boost)
            if confidence > best_confidence:
                best_intent, best_confidence = intent, confidence

        if best_confidence >= self.threshold:
            return best_intent, best_confidence
        return self._keyword_intent(text)

    @staticmethod
    def _keyword_intent(text: str) -> tuple[str, float]:
        for intent, keywords, confidence in KEYWORD_RULES:
            if contains_any(text, keywords):
                return intent, confidence
        if contains_any(text, list(SYMPTOM_ENTITY_KEYWORDS)):
            return "symptom_check", 0.6
        return UNKNOWN_INTENT, 0.1

    def classify(self, text: str, language: Language, context: Context | None = None) -> Classification:
        normalized = self.normalize(text, language)
        try:
            intent, confidence = self.recognize_intent(normalized, context)
            entities = extract_entities(normalized)
            return Classification(
                intent=intent,
                confidence=confidence,
                entities=entities,
                sentiment=analyze_sentiment(normalized),
                urgency=detect_urgency(normalized, entities),
                normalized_text=normalized,
            )
        except Exception:  # never fatal to the turn
            logger.exception("[Classifier] Classification failed; treating turn as unknown")
            return Classification(
                intent=UNKNOWN_INTENT,
                confidence=0.1,
                urgency=Urgency.CRITICAL if contains_any(normalized, ALL_EMERGENCY_KEYWORDS) else Urgency.LOW,
                normalized_text=normalized,
            )
