"""Exception taxonomy shared by the fetcher, model adapter and orchestrator."""

from __future__ import annotations

from enum import Enum


class FetchErrorKind(str, Enum):
    INVALID_URL = "invalid_url"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    UNREACHABLE = "unreachable"
    TOO_SHORT = "too_short"


class AiErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    LOW_GROUNDING_RATIO = "low_grounding_ratio"


class OrchestrationErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    FETCH_FAILED = "fetch_failed"
    TOO_SHORT = "too_short"


class PressPhraseError(Exception):
    """Base class for errors raised by the extraction pipeline."""

    def __init__(self, kind: Enum, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message


class FetchError(PressPhraseError):
    """Raised when a URL cannot be turned into usable content."""

    kind: FetchErrorKind

    def __init__(self, kind: FetchErrorKind, message: str, *, status_code: int | None = None) -> None:
        super().__init__(kind, message)
        self.status_code = status_code


class AiError(PressPhraseError):
    """Raised by the model adapter; always absorbed by the orchestrator."""

    kind: AiErrorKind


class OrchestrationError(PressPhraseError):
    """Raised to the caller when an extraction request cannot be served."""

    kind: OrchestrationErrorKind

    @property
    def fetch_error(self) -> FetchError | None:
        cause = self.__cause__
        return cause if isinstance(cause, FetchError) else None


__all__ = [
    "AiError",
    "AiErrorKind",
    "FetchError",
    "FetchErrorKind",
    "OrchestrationError",
    "OrchestrationErrorKind",
    "PressPhraseError",
]
