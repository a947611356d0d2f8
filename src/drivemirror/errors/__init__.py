"""Public error exports for drivemirror."""

from __future__ import annotations

from .exceptions import (
    GENERIC_FAILURE_MESSAGE,
    ApiError,
    AuthError,
    ConflictError,
    DriveMirrorError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidStateError,
    LocalStorageError,
    NetworkError,
    NotAuthorizedError,
    NotFoundError,
    PermissionError,
    PersistenceError,
    QuotaExceededError,
    RateLimitError,
    SyncTimeoutError,
    UnrecognizedMimeTypeError,
    ValidationError,
    map_http_error,
    user_message,
)

__all__ = [
    "DriveMirrorError",
    "InvalidStateError",
    "NotAuthorizedError",
    "ValidationError",
    "UnrecognizedMimeTypeError",
    "LocalStorageError",
    "SyncTimeoutError",
    "PersistenceError",
    "AuthError",
    "PermissionError",
    "InvalidArgumentError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "QuotaExceededError",
    "NetworkError",
    "ApiError",
    "HttpErrorInfo",
    "map_http_error",
    "user_message",
    "GENERIC_FAILURE_MESSAGE",
]
