"""Incremental, single-level reconciliation of one mirrored folder."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from drivemirror.db import FileGateway, Folder, FolderGateway
from drivemirror.errors import NotFoundError
from drivemirror.models import DriveItem, SyncReport, UpsertResult
from drivemirror.util.mime import category_from_mime_type
from drivemirror.util.time import EPOCH, now_utc

from .locks import KeyedLock
from .records import VIEW_PATHS, file_fields_from_item, folder_fields_from_item

logger = logging.getLogger(__name__)

Invalidator = Callable[[list[str]], None]


class QuickSync:
    """
    Fold remote changes since a folder's watermark into the mirror.

    Only items whose direct parents include the folder are reconciled.
    Folders and shortcuts are handled before files. Any error aborts the
    call and leaves `last_sync_time` untouched; on success the watermark
    moves to the moment the remote query was issued.
    """

    def __init__(
        self,
        controller: Any,
        folders: FolderGateway,
        files: FileGateway,
        *,
        locks: Optional[KeyedLock] = None,
        on_invalidate: Optional[Invalidator] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._controller = controller
        self._folders = folders
        self._files = files
        self._locks = locks or KeyedLock()
        self._on_invalidate = on_invalidate
        self._clock = clock

    def run(self, google_id: str) -> SyncReport:
        with self._locks.hold(google_id):
            report = self._run_locked(google_id)

        if self._on_invalidate is not None:
            self._on_invalidate(list(VIEW_PATHS))
        return report

    # ----------------------------
    # Internals
    # ----------------------------
    def _run_locked(self, google_id: str) -> SyncReport:
        target = self._folders.find_by_google_id(google_id)
        if target is None:
            raise NotFoundError(
                "Folder not found in database",
                details={"google_id": google_id},
            )

        started = self._clock()
        report = SyncReport(kind="quick", started_at=started)
        since = target.last_sync_time or EPOCH

        changed = self._controller.list_modified_since(since)
        relevant = [item for item in changed if google_id in item.parents]
        logger.info(
            "Quick sync %s: %d changed since %s, %d in this folder",
            google_id,
            len(changed),
            since.isoformat(),
            len(relevant),
        )

        for item in relevant:
            if item.is_folder:
                self._record(report, self._reconcile_folder(item, target, is_shortcut=False))
            elif item.is_shortcut:
                self._record(report, self._reconcile_shortcut(item, target))

        for item in relevant:
            if not item.is_folder and not item.is_shortcut:
                self._record(report, self._reconcile_file(item, target))

        self._folders.advance_last_sync_time(target.id, started)
        report.finished_at = now_utc()
        logger.info("Quick sync %s finished: %s", google_id, report.summary)
        return report

    @staticmethod
    def _record(report: SyncReport, result: Optional[UpsertResult]) -> None:
        if result is None:
            report.count("skipped")
        else:
            report.record_upsert(result)

    def _reconcile_shortcut(self, item: DriveItem, target: Folder) -> Optional[UpsertResult]:
        target_id = item.shortcut_target_id
        if not target_id:
            return None
        resolved = self._controller.get(target_id)
        if not resolved.is_folder:
            logger.debug("Shortcut %s points to a non-folder; ignored", item.item_id)
            return None
        return self._reconcile_folder(resolved, target, is_shortcut=True)

    def _reconcile_folder(
        self,
        item: DriveItem,
        target: Folder,
        *,
        is_shortcut: bool,
    ) -> Optional[UpsertResult]:
        existing = self._folders.find_by_google_id(item.item_id)
        if existing is None:
            fields = folder_fields_from_item(item, parent_id=target.id, is_shortcut=is_shortcut)
            return self._folders.upsert(
                item.item_id,
                fields,
                defaults={"owner_id": target.owner_id},
            )

        if existing.is_root or existing.id == target.id:
            return UpsertResult(existing, "unchanged")
        if existing.parent_id == target.id:
            return UpsertResult(existing, "unchanged")
        if self._folders.would_create_cycle(existing.id, target.id):
            logger.warning(
                "Not moving folder %s under %s: it would become its own ancestor",
                item.item_id,
                target.google_id,
            )
            return None

        moved = self._folders.move(existing.id, target.id)
        return UpsertResult(moved, "updated")

    def _reconcile_file(self, item: DriveItem, target: Folder) -> Optional[UpsertResult]:
        category = category_from_mime_type(item.mime_type)
        if category is None:
            logger.warning("Unrecognized file type for %s: %s", item.name, item.mime_type)
            return None
        fields = file_fields_from_item(item, category, folder_id=target.id)
        return self._files.upsert(
            item.item_id,
            fields,
            defaults={"owner_id": target.owner_id},
        )
