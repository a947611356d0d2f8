"""drivemirror public API."""

from __future__ import annotations

from drivemirror.auth import AuthInfo, CredentialsClient
from drivemirror.config import AppConfig, load_config, save_config
from drivemirror.controller import GoogleDriveController
from drivemirror.db import Database, FileGateway, FolderGateway, TagGateway
from drivemirror.errors import (
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
from drivemirror.manager import DriveMirror, Principal
from drivemirror.models import ActionResult, DriveItem, DrivePage, SyncReport, UploadOutcome
from drivemirror.storage import LocalByteStorage
from drivemirror.sync import FullSync, QuickSync, TreeWalker
from drivemirror.upload import UploadPipeline, UploadRequest
from drivemirror.util.mime import Category

__all__ = [
    # High-level
    "DriveMirror",
    "Principal",
    "AppConfig",
    "load_config",
    "save_config",
    # Components
    "GoogleDriveController",
    "Database",
    "FolderGateway",
    "FileGateway",
    "TagGateway",
    "LocalByteStorage",
    "TreeWalker",
    "FullSync",
    "QuickSync",
    "UploadPipeline",
    "UploadRequest",
    # Auth
    "AuthInfo",
    "CredentialsClient",
    # Models
    "ActionResult",
    "Category",
    "DriveItem",
    "DrivePage",
    "SyncReport",
    "UploadOutcome",
    # Errors
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
]
