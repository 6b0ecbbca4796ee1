"""
Model Gateway — Resilient Google Gemini Access (google.genai SDK).

Wraps every call to the generative-text provider and owns:
  - Ordered model candidates with a preferred model tried first
  - Error classification (rate limited / model unavailable / other)
  - In-place retries with capped exponential backoff
  - Exclusion of unavailable models until the periodic reset
  - A bounded per-attempt timeout so a hung call degrades to a retry

Architecture:
  generate(prompt)
      │
      ▼
  ┌──────────────┐   model unavailable   ┌──────────────┐
  │  Candidate   │──────────────────────▶│  Failed set  │ (cleared hourly)
  │  model loop  │                       └──────────────┘
  └──────┬───────┘
         │ rate limited / other → backoff, retry same model
         ▼
  GenerationResult  or  ModelGatewayExhausted(attempt trail)
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol

from google import genai
from google.genai import types

import config
from triage.errors import ModelGatewayError, ModelGatewayExhausted

logger = logging.getLogger(__name__)


# ── Request / Response Types ───────────────────────────────────────────────

@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class Prompt:
    """Text prompt with an optional inline image."""
    text: str
    image: Optional[ImagePayload] = None


@dataclass(frozen=True)
class GenerationOptions:
    """Generation parameters; ``None`` means the configured default."""
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    system_instruction: Optional[str] = None
    response_mime_type: Optional[str] = None


class ErrorCategory(Enum):
    RATE_LIMITED = "rate_limited"
    MODEL_UNAVAILABLE = "model_unavailable"
    OTHER = "other"


@dataclass(frozen=True)
class ModelAttempt:
    """One call to one model. Diagnostics only."""
    model: str
    attempt: int
    success: bool
    error_category: Optional[str] = None
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class GenerationResult:
    text: str
    model_used: str
    attempt_count: int
    attempts: tuple = ()


class ModelProvider(Protocol):
    def generate(self, model: str, prompt: Prompt, options: GenerationOptions) -> str:
        ...


class AttemptTimeout(ModelGatewayError):
    """A single provider call exceeded the per-attempt timeout."""


# ── Error Classification ───────────────────────────────────────────────────

RATE_LIMIT_CODES = {429, 503}
RATE_LIMIT_MARKERS = (
    "quota",
    "rate limit",
    "too many requests",
    "resource exhausted",
    "resource_exhausted",
    "limit exceeded",
    "temporarily unavailable",
    "overloaded",
    "deadline exceeded",
)

UNAVAILABLE_CODES = {404}
UNAVAILABLE_MARKERS = (
    "model not found",
    "not_found",
    "not found",
    "invalid model",
    "model unavailable",
    "not supported",
    "deprecated",
    "has been removed",
)


def _error_code(error: BaseException) -> Optional[int]:
    for attr in ("code", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def classify_error(error: BaseException) -> ErrorCategory:
    """Map a provider exception onto the gateway's retry categories."""
    if isinstance(error, (AttemptTimeout, TimeoutError, FutureTimeout)):
        return ErrorCategory.RATE_LIMITED

    code = _error_code(error)
    message = f"{error} {getattr(error, 'status', '') or ''}".lower()

    if code in RATE_LIMIT_CODES or any(m in message for m in RATE_LIMIT_MARKERS):
        return ErrorCategory.RATE_LIMITED
    if code in UNAVAILABLE_CODES or any(m in message for m in UNAVAILABLE_MARKERS):
        return ErrorCategory.MODEL_UNAVAILABLE
    if code == 400 and "model" in message:
        return ErrorCategory.MODEL_UNAVAILABLE
    return ErrorCategory.OTHER


# ── Gemini Provider ────────────────────────────────────────────────────────

class GeminiProvider:
    """Issues a single generate_content call against one Gemini model."""

    def __init__(self, api_key: str | None = None, client=None):
        self.api_key = api_key or config.GOOGLE_API_KEY

        if client is None:
            if not self.api_key:
                raise ValueError(
                    "Google API key is required. Set GOOGLE_API_KEY in your .env file.\n"
                    "Get a key at: https://aistudio.google.com/apikey"
                )
            client = genai.Client(api_key=self.api_key)

        self.client = client

    def generate(self, model: str, prompt: Prompt, options: GenerationOptions) -> str:
        contents: list = []
        if prompt.image is not None:
            contents.append(
                types.Part.from_bytes(data=prompt.image.data, mime_type=prompt.image.mime_type)
            )
        contents.append(prompt.text)

        response = self.client.models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=options.system_instruction,
                temperature=config.TEMPERATURE if options.temperature is None else options.temperature,
                top_p=options.top_p or config.TOP_P,
                top_k=options.top_k or config.TOP_K,
                max_output_tokens=options.max_tokens or config.MAX_OUTPUT_TOKENS,
                stop_sequences=options.stop_sequences or None,
                response_mime_type=options.response_mime_type,
            ),
        )
        text = response.text
        if not text:
            raise ModelGatewayError(f"Empty response from {model}")
        return text


# ── Gateway ────────────────────────────────────────────────────────────────

class ModelGateway:
    """Resilient front door to the generative-text provider."""

    def __init__(
        self,
        provider: ModelProvider,
        models: list[str] | None = None,
        preferred_model: str | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        max_backoff: float | None = None,
        request_timeout: float | None = None,
        reset_interval: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 16,
    ):
        self.provider = provider
        self.models = list(models or config.GEMINI_MODELS)
        self.preferred_model = preferred_model or config.GEMINI_MODEL
        self.retry_attempts = retry_attempts or config.GEMINI_RETRY_ATTEMPTS
        self.retry_delay = config.GEMINI_RETRY_DELAY if retry_delay is None else retry_delay
        self.max_backoff = config.GEMINI_MAX_BACKOFF if max_backoff is None else max_backoff
        self.request_timeout = request_timeout or config.GEMINI_REQUEST_TIMEOUT
        self.reset_interval = reset_interval or config.GEMINI_RESET_INTERVAL

        if not self.models:
            raise ValueError("At least one candidate model must be configured")

        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._failed: set[str] = set()
        self._last_reset = clock()
        self._attempt_log: deque = deque(maxlen=config.GEMINI_ATTEMPT_LOG_SIZE)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="gemini")
        self._stop_event = threading.Event()
        self._reset_thread: threading.Thread | None = None

    # ── Candidate bookkeeping ──────────────────────────────────────────

    def _reset_if_due(self) -> None:
        with self._lock:
            now = self._clock()
            if now - self._last_reset >= self.reset_interval:
                if self._failed:
                    logger.info("[Gateway] Periodic reset of failed models: %s", sorted(self._failed))
                self._failed.clear()
                self._last_reset = now

    def available_models(self) -> list[str]:
        self._reset_if_due()
        with self._lock:
            return [m for m in self.models if m not in self._failed]

    def _ordered_candidates(self) -> list[str]:
        available = self.available_models()
        if self.preferred_model in available:
            return [self.preferred_model] + [m for m in available if m != self.preferred_model]
        return available

    def _mark_failed(self, model: str) -> None:
        with self._lock:
            self._failed.add(model)
        logger.warning("[Gateway] Model %s unavailable, excluded until next reset", model)

    def _is_failed(self, model: str) -> bool:
        with self._lock:
            return model in self._failed

    def _record(self, attempt: ModelAttempt, trail: list[ModelAttempt]) -> None:
        trail.append(attempt)
        with self._lock:
            self._attempt_log.append(attempt)

    def _backoff(self, attempt: int) -> float:
        return min(self.retry_delay * (2 ** (attempt - 1)), self.max_backoff)

    # ── Calls ──────────────────────────────────────────────────────────

    def _call(self, model: str, prompt: Prompt, options: GenerationOptions) -> str:
        future = self._executor.submit(self.provider.generate, model, prompt, options)
        try:
            return future.result(timeout=self.request_timeout)
        except FutureTimeout:
            # The abandoned call keeps running in its worker; its result is dropped.
            raise AttemptTimeout(f"{model} did not answer within {self.request_timeout}s") from None

    def generate(self, prompt, options: GenerationOptions | None = None) -> GenerationResult:
        """
        Generate text with automatic retry and model fallback.

        Args:
            prompt: A Prompt, or plain text.
            options: Generation parameters (defaults from config).

        Returns:
            GenerationResult naming the model used and the attempt trail.

        Raises:
            ModelGatewayExhausted: every candidate failed; carries the full trail.
        """
        if isinstance(prompt, str):
            prompt = Prompt(text=prompt)
        options = options or GenerationOptions()

        candidates = self._ordered_candidates()
        if not candidates:
            raise ModelGatewayExhausted(
                [], "No available models. All models have failed recently. Please try again later."
            )

        trail: list[ModelAttempt] = []
        for model in candidates:
            if self._is_failed(model):
                continue

            for attempt in range(1, self.retry_attempts + 1):
                logger.debug("[Gateway] Attempting %s (attempt %d/%d)", model, attempt, self.retry_attempts)
                started = self._clock()
                try:
                    text = self._call(model, prompt, options)
                except Exception as error:  # provider SDK errors are not a closed set
                    category = classify_error(error)
                    self._record(
                        ModelAttempt(model, attempt, False, category.value, str(error), started),
                        trail,
                    )
                    logger.warning(
                        "[Gateway] %s attempt %d failed (%s): %s", model, attempt, category.value, error
                    )

                    if category is ErrorCategory.MODEL_UNAVAILABLE:
                        self._mark_failed(model)
                        break
                    if attempt < self.retry_attempts:
                        self._sleep(self._backoff(attempt))
                    continue

                self._record(ModelAttempt(model, attempt, True, timestamp=started), trail)
                logger.info("[Gateway] ✅ Success with %s on attempt %d", model, attempt)
                return GenerationResult(
                    text=text,
                    model_used=model,
                    attempt_count=len(trail),
                    attempts=tuple(trail),
                )

            logger.info("[Gateway] Giving up on %s, trying next model", model)

        error = ModelGatewayExhausted(trail)
        logger.error("[Gateway] ❌ %s", error)
        raise error

    # ── Status & maintenance ───────────────────────────────────────────

    def status(self) -> dict:
        """Available/failed models and reset times. Read-only apart from a due reset."""
        available = self.available_models()
        with self._lock:
            return {
                "available_models": available,
                "failed_models": sorted(self._failed),
                "total_models": len(self.models),
                "last_reset": self._last_reset,
                "next_reset": self._last_reset + self.reset_interval,
            }

    def recent_attempts(self, limit: int = 50) -> list[ModelAttempt]:
        with self._lock:
            return list(self._attempt_log)[-limit:]

    def reset(self) -> None:
        """Manually clear the failed-model set."""
        with self._lock:
            self._failed.clear()
            self._last_reset = self._clock()
        logger.info("[Gateway] Failed models list reset")

    def check_models(self) -> dict[str, bool]:
        """Send a tiny prompt to every configured model and report which answer."""
        results: dict[str, bool] = {}
        ping = Prompt(text="Hello, please respond with 'OK' to confirm you're working.")
        for model in self.models:
            try:
                text = self._call(model, ping, GenerationOptions(max_tokens=10))
                results[model] = "ok" in text.lower()
            except Exception as error:  # a failed check is a result, not an error
                logger.warning("[Gateway] Health check of %s failed: %s", model, error)
                results[model] = False
        return results

    def start_reset_timer(self) -> None:
        """Run the periodic failed-set reset on a background daemon thread."""
        if self._reset_thread is not None and self._reset_thread.is_alive():
            return
        self._stop_event.clear()
        self._reset_thread = threading.Thread(
            target=self._reset_loop, name="gateway-reset", daemon=True
        )
        self._reset_thread.start()

    def _reset_loop(self) -> None:
        while not self._stop_event.wait(self.reset_interval):
            self.reset()

    def close(self) -> None:
        self._stop_event.set()
        self._executor.shutdown(wait=False)
