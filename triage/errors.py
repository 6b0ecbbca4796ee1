"""
Exception hierarchy for the triage core.

Callers only need to catch ``TriageError``; the subclasses tell them whether
the problem is theirs (unknown session, unsupported language) or the
provider's (gateway exhaustion).
"""


class TriageError(Exception):
    """Base class for every error raised by the triage core."""


class UnsupportedLanguageError(TriageError, ValueError):
    """A language code outside the supported set was supplied."""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Unsupported language code: {code!r}")


class SessionNotFoundError(TriageError, KeyError):
    """The caller referenced a session id that does not exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")

    def __str__(self) -> str:
        return self.args[0]


class SessionClosedError(TriageError):
    """A turn was submitted to a session that is escalated or completed."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is {status} and accepts no new turns")


class AssessmentError(TriageError):
    """The symptom assessment was driven outside its valid states."""


class TranslationError(TriageError):
    """The language service could not translate a piece of text."""


class ModelGatewayError(TriageError):
    """Base class for model gateway failures."""


class ModelGatewayExhausted(ModelGatewayError):
    """Every candidate model failed; ``attempts`` holds the full trail."""

    def __init__(self, attempts, reason: str = ""):
        self.attempts = list(attempts)
        self.reason = reason
        details = "\n".join(
            f"{a.model} (attempt {a.attempt}): {a.error_category or 'unknown'} - {a.error or 'Unknown error'}"
            for a in self.attempts
        )
        header = reason or f"All available models failed after {len(self.attempts)} attempts."
        super().__init__(f"{header}\n\nDetails:\n{details}" if details else header)
