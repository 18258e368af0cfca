from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    FETCH_FAILED = "FETCH_FAILED"
    EMPTY_AGGREGATE = "EMPTY_AGGREGATE"
    UNAUTHORIZED = "UNAUTHORIZED"


class SubcacheError(Exception):
    """Raised by HTTP handlers for expected request-level failures.

    Caught by server.py and serialised into the JSON error envelope.
    Fetch and storage failures never surface as this type: they are absorbed
    by the orchestrator and the cache respectively.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
        status_code: int = 400,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


# ---------------------------------------------------------------------------
# Fetch taxonomy
# ---------------------------------------------------------------------------


class AttemptError(Exception):
    """A single fetch attempt failed. Retried by the fetcher."""


class TransportError(AttemptError):
    """DNS, connection or timeout failure during an attempt."""


class HTTPError(AttemptError):
    """The origin answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        message = f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class FetchError(Exception):
    """Every attempt failed. Carries the last underlying cause."""

    def __init__(self, message: str, *, cause: AttemptError | None, attempts: int) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.attempts = attempts
