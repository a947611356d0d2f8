"""Public model exports for drivemirror."""

from __future__ import annotations

from .drive_item import DriveItem, DrivePage
from .results import (
    ActionResult,
    LegStatus,
    SyncReport,
    UploadOutcome,
    UpsertResult,
    UpsertStatus,
)

__all__ = [
    "DriveItem",
    "DrivePage",
    "ActionResult",
    "LegStatus",
    "SyncReport",
    "UploadOutcome",
    "UpsertResult",
    "UpsertStatus",
]
