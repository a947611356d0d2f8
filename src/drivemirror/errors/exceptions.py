"""Exception hierarchy and HTTP error mapping for drivemirror."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DriveMirrorError(Exception):
    """
    Base exception for drivemirror.

    Attributes:
        details: Optional structured information (e.g., HTTP status, reason).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class InvalidStateError(DriveMirrorError):
    """Raised when the mirror is used in an invalid state (e.g., no root row)."""


class NotAuthorizedError(DriveMirrorError):
    """Raised when an action runs without a current principal."""


class ValidationError(DriveMirrorError):
    """Raised when input is rejected before any I/O side effect."""


class UnrecognizedMimeTypeError(ValidationError):
    """Raised when an uploaded MIME type maps to no file category."""


class LocalStorageError(DriveMirrorError):
    """Raised when writing or removing local byte copies fails."""


class SyncTimeoutError(DriveMirrorError):
    """Raised when a traversal passes its overall deadline."""


class PersistenceError(DriveMirrorError):
    """Raised when the relational mirror rejects or fails an operation."""


class AuthError(DriveMirrorError):
    """Raised when provider authentication/refresh fails."""


class PermissionError(DriveMirrorError):
    """Raised when access is denied (HTTP 403 non-quota)."""


class InvalidArgumentError(DriveMirrorError):
    """Raised when request arguments are invalid (HTTP 400, etc.)."""


class NotFoundError(DriveMirrorError):
    """Raised when a Drive resource or mirrored row is not found."""


class ConflictError(DriveMirrorError):
    """Raised when a conflict occurs (HTTP 409/412, cyclic move)."""


class RateLimitError(DriveMirrorError):
    """Raised when rate-limited (HTTP 429)."""


class QuotaExceededError(DriveMirrorError):
    """Raised when quota is exceeded (HTTP 403 with quota-related reason)."""


class NetworkError(DriveMirrorError):
    """Raised when network/timeout issues prevent the request."""


class ApiError(DriveMirrorError):
    """Raised for unclassified API errors (5xx, unknown 4xx, etc.)."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to drivemirror exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_QUOTA_REASON_KEYWORDS: tuple[str, ...] = (
    "quota",
    "dailyLimitExceeded",
    "usageLimits",
    "storageQuotaExceeded",
)

_RATE_LIMIT_REASONS: tuple[str, ...] = (
    "rateLimitExceeded",
    "userRateLimitExceeded",
)


def _is_quota_reason(reason: str | None) -> bool:
    if not reason:
        return False
    return any(key.lower() in reason.lower() for key in _QUOTA_REASON_KEYWORDS)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> DriveMirrorError:
    """
    Map an HTTP error to a drivemirror exception.

    Policy:
        - 401 -> AuthError
        - 403 -> RateLimitError for per-user rate limits (Drive reports these
          as 403), QuotaExceededError if quota-related, else PermissionError
        - 404 -> NotFoundError
        - 409/412 -> ConflictError
        - 429 -> RateLimitError
        - 400 -> InvalidArgumentError
        - otherwise -> ApiError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 400:
        return InvalidArgumentError(message, details=details, cause=cause)
    if info.status_code == 401:
        return AuthError(message, details=details, cause=cause)
    if info.status_code == 403:
        if info.reason in _RATE_LIMIT_REASONS:
            return RateLimitError(message, details=details, cause=cause)
        if _is_quota_reason(info.reason):
            return QuotaExceededError(message, details=details, cause=cause)
        return PermissionError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code in (409, 412):
        return ConflictError(message, details=details, cause=cause)
    if info.status_code == 429:
        return RateLimitError(message, details=details, cause=cause)

    return ApiError(message, details=details, cause=cause)


GENERIC_FAILURE_MESSAGE = "Something went wrong"


def user_message(exc: BaseException) -> str:
    """Return the actionable message shown to users for an error category."""
    if isinstance(exc, (NotAuthorizedError, AuthError)):
        return "Not authorized"
    if isinstance(exc, NotFoundError):
        return "Not found"
    if isinstance(exc, PermissionError):
        return "Permission denied"
    return GENERIC_FAILURE_MESSAGE
