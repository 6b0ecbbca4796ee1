"""
Configuration module for the Triage Assistant core.
Loads environment variables and provides application-wide settings.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _csv(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# ── API Keys ───────────────────────────────────────────────────────────────
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# ── Model Gateway ──────────────────────────────────────────────────────────
# Preferred model is tried first whenever it is not marked failed.
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_MODELS = _csv(
    "GEMINI_MODELS",
    "gemini-2.5-pro,gemini-2.0-pro,gemini-2.0-flash,"
    "gemini-1.5-pro,gemini-1.5-flash,gemini-2.0-flash-lite",
)
GEMINI_RETRY_ATTEMPTS = int(os.getenv("GEMINI_RETRY_ATTEMPTS", "3"))
GEMINI_RETRY_DELAY = float(os.getenv("GEMINI_RETRY_DELAY", "1.0"))        # seconds
GEMINI_MAX_BACKOFF = float(os.getenv("GEMINI_MAX_BACKOFF", "10.0"))       # seconds
GEMINI_REQUEST_TIMEOUT = float(os.getenv("GEMINI_REQUEST_TIMEOUT", "10.0"))  # per attempt
GEMINI_RESET_INTERVAL = float(os.getenv("GEMINI_RESET_INTERVAL", "3600"))  # failed-set reset
GEMINI_ATTEMPT_LOG_SIZE = 200

# ── LLM Settings ──────────────────────────────────────────────────────────
TEMPERATURE = 0.3  # Lower temperature for more consistent medical responses
TOP_P = 0.9
TOP_K = 40
MAX_OUTPUT_TOKENS = 800

# ── MongoDB ────────────────────────────────────────────────────────────────
MONGODB_URI = os.getenv("MONGODB_URI", "")
MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME", "triage_assistant")
MONGODB_COLLECTION = os.getenv("MONGODB_COLLECTION", "sessions")

# ── Conversation Settings ─────────────────────────────────────────────────
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
MAX_CONVERSATION_TURNS = 50
MAX_MESSAGE_CHARS = 2000
INTENT_HISTORY_SIZE = 5
ASSESSMENT_IDLE_TIMEOUT_MINUTES = int(os.getenv("ASSESSMENT_IDLE_TIMEOUT_MINUTES", "30"))

# ── Classification Thresholds ─────────────────────────────────────────────
INTENT_CONFIDENCE_THRESHOLD = 0.7
CONTEXT_CONTINUITY_BOOST = 1.2
LOW_CONFIDENCE_THRESHOLD = 0.3
LOW_CONFIDENCE_MIN_TURNS = 3
REPEATED_UNKNOWN_WINDOW = 3

# ── Logging ───────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ── Application Settings ──────────────────────────────────────────────────
APP_TITLE = "🩺 Multilingual Health Triage Assistant"
APP_DESCRIPTION = (
    "A multilingual triage assistant that asks structured follow-up questions "
    "about your symptoms, gives advisory guidance, and hands you over to a "
    "health worker when needed."
)
