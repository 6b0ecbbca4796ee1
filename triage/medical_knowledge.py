"""
Medical Knowledge Base.

Contains:
  1. Emergency keyword detection (rule-based safety net)
  2. Symptom vocabularies used for entity extraction and mention detection
  3. Symptom profiles driving the follow-up question flows
  4. Severity buckets and condition indicators for assessment synthesis

All tables are in the working language (English); non-English input is
translated before it is matched against them.
"""

import re
from functools import lru_cache

# ── Emergency Keywords ─────────────────────────────────────────────────────
# These classify an utterance as CRITICAL regardless of anything else.
# Organised by category for maintainability.

EMERGENCY_KEYWORDS: dict[str, list[str]] = {
    "general": [
        "emergency",
        "dying",
        "ambulance",
    ],
    "cardiac": [
        "chest pain",
        "heart attack",
        "cardiac arrest",
        "chest tightness",
        "chest pressure",
    ],
    "respiratory": [
        "difficulty breathing",
        "can't breathe",
        "cannot breathe",
        "cant breathe",
        "not breathing",
        "stopped breathing",
        "choking",
        "suffocating",
    ],
    "neurological": [
        "stroke",
        "face drooping",
        "sudden numbness",
        "seizure",
        "convulsions",
        "unconscious",
        "unresponsive",
        "loss of consciousness",
        "passed out",
    ],
    "bleeding": [
        "severe bleeding",
        "bleeding heavily",
        "uncontrollable bleeding",
        "won't stop bleeding",
        "coughing blood",
        "vomiting blood",
    ],
    "toxicology": [
        "poisoning",
        "overdose",
        "swallowed poison",
    ],
    "allergic": [
        "anaphylaxis",
        "severe allergic reaction",
        "throat swelling",
        "tongue swelling",
    ],
    "mental_health": [
        "suicide",
        "suicidal",
        "want to kill myself",
        "ending my life",
        "self harm",
    ],
}

# Flatten for quick lookup
ALL_EMERGENCY_KEYWORDS: list[str] = [
    kw for category in EMERGENCY_KEYWORDS.values() for kw in category
]

# Symptoms that make an utterance HIGH urgency when no emergency keyword matched.
HIGH_URGENCY_KEYWORDS: list[str] = [
    "pain", "fever", "vomiting", "diarrhea", "rash", "swelling", "bleeding",
]

# Explicit requests to talk to a person.
HUMAN_REQUEST_KEYWORDS: list[str] = [
    "talk to a human",
    "speak to a human",
    "real person",
    "speak to someone",
    "talk to someone",
    "speak to a doctor",
    "talk to a doctor",
    "speak with a doctor",
    "speak to a nurse",
    "talk to a nurse",
    "connect me to a health worker",
    "talk to a health worker",
    "speak to a health worker",
    "human agent",
    "live agent",
]


# ── Symptom Vocabularies ──────────────────────────────────────────────────

# Symptom entity keywords (surface form → normalized value)
SYMPTOM_ENTITY_KEYWORDS: dict[str, str] = {
    "fever": "fever",
    "cough": "cough",
    "headache": "headache",
    "nausea": "nausea",
    "vomiting": "vomiting",
    "diarrhea": "diarrhea",
    "chest pain": "chest pain",
    "shortness of breath": "shortness of breath",
    "difficulty breathing": "difficulty breathing",
    "fatigue": "fatigue",
    "dizziness": "dizziness",
    "rash": "rash",
    "sore throat": "sore throat",
    "runny nose": "runny nose",
    "body ache": "body ache",
    "chills": "chills",
    "stomach pain": "stomach pain",
    "abdominal pain": "stomach pain",
}

# Lightweight symptom-mention detector vocabulary
SYMPTOM_MENTION_KEYWORDS: list[str] = [
    "fever", "headache", "cough", "coughing", "pain", "ache", "aches", "hurt", "hurts",
    "sick", "nausea", "nauseous", "vomiting", "diarrhea", "dizzy", "tired", "fatigue",
    "sore", "swollen", "rash", "itchy", "burning", "stiff", "weak", "breathe",
    "chest", "stomach", "back pain", "joint", "muscle", "throat", "runny nose",
    "congestion", "chills", "temperature", "unwell",
]

# Closed vocabulary of primary symptoms with their synonyms, in detection order.
PRIMARY_SYMPTOM_SYNONYMS: dict[str, list[str]] = {
    "fever": ["fever", "temperature", "feverish", "hot", "burning up"],
    "headache": ["headache", "head pain", "head ache", "migraine", "head hurts"],
    "cough": ["cough", "coughing", "hack"],
    "stomach_pain": ["stomach pain", "stomach ache", "belly pain", "abdominal pain", "tummy ache"],
    "sore_throat": ["sore throat", "throat pain", "scratchy throat", "throat hurts"],
}

GENERAL_SYMPTOM = "general"

# Associated symptoms understood in answers (tag → surface forms)
ASSOCIATED_SYMPTOM_VOCABULARY: dict[str, list[str]] = {
    "cough": ["cough", "coughing"],
    "fever": ["fever", "temperature", "feverish"],
    "headache": ["headache", "head ache"],
    "nausea": ["nausea", "nauseous", "queasy"],
    "vomiting": ["vomiting", "vomit", "throwing up"],
    "diarrhea": ["diarrhea", "loose motions", "loose stools"],
    "chills": ["chills", "shivering", "shivers"],
    "body_aches": ["body ache", "body aches", "body pain", "aching"],
    "sore_throat": ["sore throat", "throat pain"],
    "runny_nose": ["runny nose", "blocked nose", "stuffy nose"],
    "light_sensitivity": ["light sensitivity", "sensitive to light", "sensitivity to light"],
    "neck_stiffness": ["stiff neck", "neck stiffness"],
    "dizziness": ["dizzy", "dizziness", "lightheaded"],
    "bloating": ["bloating", "bloated"],
    "loss_of_appetite": ["loss of appetite", "no appetite", "not hungry"],
    "fatigue": ["fatigue", "tired", "exhausted"],
    "rash": ["rash"],
    "swollen_glands": ["swollen glands", "swollen neck"],
    "chest_congestion": ["congestion", "phlegm", "mucus"],
}


# ── Severity Buckets ──────────────────────────────────────────────────────
# Checked from most to least severe; the first bucket with a hit wins.

SEVERITY_KEYWORDS: dict[str, list[str]] = {
    "severe": [
        "severe", "very", "bad", "terrible", "unbearable", "worst", "extreme",
        "intense", "excruciating",
    ],
    "moderate": [
        "moderate", "medium", "quite", "fairly", "chills", "constant", "throbbing",
        "noticeable",
    ],
}


# ── Symptom Profiles ──────────────────────────────────────────────────────
# question_flow: ordered question categories asked for the symptom
# red_flags: phrases that, found in any answer, make the assessment IMMEDIATE
# common_causes: condition label → associated-symptom tags that support it

SYMPTOM_PROFILES: dict[str, dict] = {
    "fever": {
        "question_flow": ["duration", "severity", "associated_symptoms", "triggers"],
        "associated_symptoms": ["cough", "headache", "body_aches", "chills", "sore_throat"],
        "red_flags": [
            "103", "104", "105", "difficulty breathing", "chest pain", "severe headache",
            "stiff neck", "confusion", "persistent vomiting", "seizure",
        ],
        "common_causes": {
            "viral infection": ["body_aches", "sore_throat", "runny_nose", "fatigue"],
            "flu": ["chills", "body_aches", "cough", "headache"],
            "bacterial infection": ["chills", "sore_throat", "swollen_glands"],
            "covid-19": ["cough", "fatigue", "loss_of_appetite", "sore_throat"],
            "dengue": ["headache", "body_aches", "rash"],
            "malaria": ["chills", "headache", "vomiting"],
        },
    },
    "headache": {
        "question_flow": ["duration", "severity", "location", "associated_symptoms", "triggers"],
        "associated_symptoms": ["nausea", "vomiting", "light_sensitivity", "neck_stiffness", "dizziness"],
        "red_flags": [
            "sudden", "worst headache", "stiff neck", "neck stiffness", "vision changes",
            "blurred vision", "confusion", "head injury", "fainted",
        ],
        "common_causes": {
            "tension headache": ["fatigue", "neck_stiffness"],
            "migraine": ["nausea", "vomiting", "light_sensitivity"],
            "sinus headache": ["runny_nose", "fever"],
            "cluster headache": ["runny_nose"],
        },
    },
    "cough": {
        "question_flow": ["duration", "severity", "associated_symptoms", "triggers"],
        "associated_symptoms": ["fever", "sore_throat", "runny_nose", "chest_congestion"],
        "red_flags": [
            "blood", "difficulty breathing", "chest pain", "weight loss", "night sweats",
            "three weeks", "3 weeks",
        ],
        "common_causes": {
            "common cold": ["runny_nose", "sore_throat"],
            "flu": ["fever", "body_aches", "chills"],
            "bronchitis": ["chest_congestion", "fatigue"],
            "allergies": ["runny_nose"],
            "pneumonia": ["fever", "chest_congestion", "chills"],
        },
    },
    "stomach_pain": {
        "question_flow": ["duration", "severity", "location", "associated_symptoms", "triggers"],
        "associated_symptoms": ["nausea", "vomiting", "diarrhea", "bloating", "loss_of_appetite"],
        "red_flags": [
            "blood in stool", "black stool", "vomiting blood", "lower right", "rigid",
            "fainted", "severe pain",
        ],
        "common_causes": {
            "gastritis": ["nausea", "bloating", "loss_of_appetite"],
            "food poisoning": ["vomiting", "diarrhea", "nausea"],
            "viral gastroenteritis": ["diarrhea", "vomiting", "fever"],
            "appendicitis": ["fever", "loss_of_appetite", "vomiting"],
            "ulcer": ["bloating", "nausea"],
        },
    },
    "sore_throat": {
        "question_flow": ["duration", "severity", "associated_symptoms", "triggers"],
        "associated_symptoms": ["fever", "cough", "runny_nose", "swollen_glands", "body_aches"],
        "red_flags": [
            "difficulty swallowing", "drooling", "difficulty breathing", "muffled voice",
            "stiff neck",
        ],
        "common_causes": {
            "viral pharyngitis": ["cough", "runny_nose"],
            "strep throat": ["fever", "swollen_glands"],
            "tonsillitis": ["fever", "swollen_glands", "body_aches"],
            "common cold": ["runny_nose", "cough"],
        },
    },
    GENERAL_SYMPTOM: {
        "question_flow": ["duration", "severity", "associated_symptoms", "triggers"],
        "associated_symptoms": ["fever", "fatigue", "dizziness", "nausea"],
        "red_flags": [
            "difficulty breathing", "chest pain", "fainted", "confusion", "severe pain",
        ],
        "common_causes": {
            "viral infection": ["fever", "fatigue", "body_aches"],
            "dehydration": ["dizziness", "fatigue"],
            "stress or fatigue": ["fatigue", "headache"],
        },
    },
}


# ── Sentiment Lexicons ────────────────────────────────────────────────────

POSITIVE_WORDS: list[str] = ["good", "great", "excellent", "happy", "satisfied", "thank", "thanks", "better"]
NEGATIVE_WORDS: list[str] = ["bad", "terrible", "awful", "sad", "angry", "frustrated", "pain", "hurt", "worse"]


# ── Matching Helpers ──────────────────────────────────────────────────────

@lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str) -> re.Pattern:
    # Word-bounded, tolerant of simple plurals ("headaches", "rashes")
    return re.compile(r"\b" + re.escape(keyword.lower()) + r"(?:s|es)?\b")


def find_keyword(text: str, keyword: str) -> re.Match | None:
    """Return the first word-bounded match of ``keyword`` in ``text`` (case-insensitive)."""
    return _keyword_pattern(keyword).search(text.lower())


def contains_any(text: str, keywords: list[str]) -> bool:
    return any(find_keyword(text, kw) for kw in keywords)


def matched_keywords(text: str, keywords: list[str]) -> list[str]:
    return [kw for kw in keywords if find_keyword(text, kw)]


def check_emergency_keywords(text: str) -> list[str]:
    """
    Fast rule-based emergency keyword check.
    Returns list of matched emergency keywords found in the text.
    """
    return matched_keywords(text, ALL_EMERGENCY_KEYWORDS)
