"""Result models for sync runs and mirror actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional


UpsertStatus = Literal["created", "updated", "unchanged"]
LegStatus = Literal["success", "failed", "skipped"]


@dataclass(slots=True)
class UpsertResult:
    """Row returned by a gateway upsert and what happened to it."""

    record: Any
    status: UpsertStatus

    @property
    def changed(self) -> bool:
        return self.status != "unchanged"


@dataclass(slots=True)
class SyncReport:
    """Aggregate counters for a full or quick sync run."""

    kind: Literal["full", "quick"]
    started_at: datetime
    finished_at: Optional[datetime] = None
    summary: dict[str, int] = field(
        default_factory=lambda: {
            "created": 0,
            "updated": 0,
            "unchanged": 0,
            "skipped": 0,
            "failed": 0,
        }
    )
    failures: list[dict[str, Any]] = field(default_factory=list)

    def count(self, key: str, amount: int = 1) -> None:
        self.summary[key] = self.summary.get(key, 0) + amount

    def record_upsert(self, result: UpsertResult) -> None:
        self.count(result.status)

    def record_failure(self, item_id: str, exc: BaseException) -> None:
        self.count("failed")
        self.failures.append(
            {
                "item_id": item_id,
                "error_type": exc.__class__.__name__,
                "error_message": str(exc),
            }
        )

    @property
    def changed_rows(self) -> int:
        return self.summary.get("created", 0) + self.summary.get("updated", 0)


@dataclass(slots=True)
class ActionResult:
    """Discriminated success/failure envelope returned to callers."""

    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[dict[str, Any]] = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, exc: BaseException, message: Optional[str] = None) -> "ActionResult":
        return cls(
            success=False,
            error=message or str(exc),
            error_type=exc.__class__.__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class UploadOutcome:
    """Per-leg status for one upload, used for partial-progress reporting."""

    drive_status: LegStatus = "skipped"
    local_status: LegStatus = "skipped"
