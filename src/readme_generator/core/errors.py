"""Error taxonomy shared by the GitHub client, generation proxy and PR workflow."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of every failure the service can surface."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_UNAVAILABLE = "server_unavailable"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    EMPTY_GENERATION = "empty_generation"
    SESSION_EXPIRED = "session_expired"
    AUTH_REQUIRED = "auth_required"
    REMOTE_CONFLICT = "remote_conflict"
    AUTHENTICATION_FAILED = "authentication_failed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    MALFORMED_REQUEST = "malformed_request"
    CONFIGURATION_ERROR = "configuration_error"
    UNEXPECTED = "unexpected"


TRANSIENT_KINDS = frozenset({ErrorKind.SERVER_UNAVAILABLE, ErrorKind.NETWORK_ERROR})

# Kinds where the caller should sign in again rather than retry.
REAUTHENTICATE_KINDS = frozenset({ErrorKind.AUTH_REQUIRED, ErrorKind.SESSION_EXPIRED})


class ReadmeGeneratorError(Exception):
    """Base exception carrying an :class:`ErrorKind` and a user-readable message."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    @property
    def requires_reauthentication(self) -> bool:
        return self.kind in REAUTHENTICATE_KINDS


class InputValidationError(ReadmeGeneratorError):
    """Raised when caller input is rejected before any remote call."""

    kind = ErrorKind.VALIDATION_ERROR


class ConfigurationError(ReadmeGeneratorError):
    """Raised when an entry point is missing required configuration."""

    kind = ErrorKind.CONFIGURATION_ERROR

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Server configuration error: missing {', '.join(missing)}",
        )
        self.missing = missing


class AuthRequiredError(ReadmeGeneratorError):
    """Raised when a request needs a GitHub session and none exists."""

    kind = ErrorKind.AUTH_REQUIRED

    def __init__(self, message: str = "Not authenticated. Please sign in with GitHub."):
        super().__init__(message, status_code=401)


class SessionExpiredError(ReadmeGeneratorError):
    """Raised when the stored GitHub session is no longer usable."""

    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, message: str = "GitHub session expired. Please sign in again."):
        super().__init__(message, status_code=401)
