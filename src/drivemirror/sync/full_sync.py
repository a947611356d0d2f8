"""Full reconciliation of the local mirror against the whole remote tree."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Iterable, Optional

from drivemirror.db import FileGateway, FolderGateway
from drivemirror.models import DriveItem, SyncReport, UpsertResult
from drivemirror.util.mime import category_from_mime_type
from drivemirror.util.time import now_utc

from .records import (
    ROOT_DESCRIPTION,
    VIEW_PATHS,
    file_fields_from_item,
    folder_fields_from_item,
    root_fields,
)
from .traversal import Snapshot, TreeWalker

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 10

Invalidator = Callable[[list[str]], None]


class FullSync:
    """
    Reconcile every reachable remote item into the mirror.

    Folders are upserted before files, parents before children; each
    generation runs on a bounded thread pool. Item failures are logged and
    counted without stopping the batch. Failing to resolve the root or to
    traverse the tree aborts the run.
    """

    def __init__(
        self,
        controller: Any,
        folders: FolderGateway,
        files: FileGateway,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        deadline_sec: Optional[float] = None,
        on_invalidate: Optional[Invalidator] = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._controller = controller
        self._folders = folders
        self._files = files
        self._max_concurrency = max_concurrency
        self._walker = TreeWalker(controller, deadline_sec=deadline_sec)
        self._on_invalidate = on_invalidate

    def run(self, owner_id: str) -> SyncReport:
        report = SyncReport(kind="full", started_at=now_utc())

        root = self._controller.get_root_folder()
        snapshot = self._walker.walk(root.item_id)
        self._upsert_root(root, owner_id, report)

        unique = _dedupe(snapshot.items)
        folder_items = [i for i in unique if i.is_folder]
        other_items = [i for i in unique if not i.is_folder]
        logger.info(
            "Full sync: %d folders, %d other items under root %s",
            len(folder_items),
            len(other_items),
            root.item_id,
        )

        with ThreadPoolExecutor(
            max_workers=self._max_concurrency,
            thread_name_prefix="full-sync",
        ) as pool:
            for generation in folder_generations(folder_items, root.item_id):
                self._run_batch(
                    pool,
                    generation,
                    lambda item: self._sync_folder(item, owner_id, snapshot),
                    report,
                )
            self._run_batch(
                pool,
                other_items,
                lambda item: self._sync_file(item, owner_id),
                report,
            )

        if self._on_invalidate is not None:
            self._on_invalidate(list(VIEW_PATHS))

        report.finished_at = now_utc()
        logger.info("Full sync finished: %s", report.summary)
        return report

    # ----------------------------
    # Internals
    # ----------------------------
    def _upsert_root(self, root: DriveItem, owner_id: str, report: SyncReport) -> None:
        result = self._folders.upsert(
            root.item_id,
            root_fields(),
            defaults={"owner_id": owner_id, "description": ROOT_DESCRIPTION},
        )
        report.record_upsert(result)

    def _run_batch(
        self,
        pool: ThreadPoolExecutor,
        items: Iterable[DriveItem],
        handler: Callable[[DriveItem], Optional[UpsertResult]],
        report: SyncReport,
    ) -> None:
        futures = {pool.submit(handler, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            try:
                result = future.result()
            except Exception as exc:
                logger.error("Failed to sync %s (%s): %s", item.item_id, item.name, exc)
                report.record_failure(item.item_id, exc)
                continue
            if result is None:
                report.count("skipped")
            else:
                report.record_upsert(result)

    def _sync_folder(
        self,
        item: DriveItem,
        owner_id: str,
        snapshot: Snapshot,
    ) -> Optional[UpsertResult]:
        parent_id: Optional[int] = None
        if item.parent_id is not None:
            parent = self._folders.find_by_google_id(item.parent_id)
            if parent is None:
                logger.warning(
                    "Folder %s (%s) skipped: parent %s is not mirrored",
                    item.item_id,
                    item.name,
                    item.parent_id,
                )
                return None
            parent_id = parent.id

        fields = folder_fields_from_item(
            item,
            parent_id=parent_id,
            is_shortcut=item.item_id in snapshot.shortcut_target_ids,
        )
        return self._folders.upsert(item.item_id, fields, defaults={"owner_id": owner_id})

    def _sync_file(self, item: DriveItem, owner_id: str) -> Optional[UpsertResult]:
        if item.is_shortcut:
            logger.debug("Shortcut %s (%s) is not mirrored as a file", item.item_id, item.name)
            return None

        category = category_from_mime_type(item.mime_type)
        if category is None:
            logger.warning("Unrecognized file type for %s: %s", item.name, item.mime_type)
            return None

        if item.parent_id is None:
            logger.warning("File %s has no parent folder", item.name)
            return None

        parent = self._folders.find_by_google_id(item.parent_id)
        if parent is None:
            logger.warning(
                "File %s (%s) skipped: parent %s is not mirrored",
                item.item_id,
                item.name,
                item.parent_id,
            )
            return None

        fields = file_fields_from_item(item, category, folder_id=parent.id)
        return self._files.upsert(item.item_id, fields, defaults={"owner_id": owner_id})


def _dedupe(items: Iterable[DriveItem]) -> list[DriveItem]:
    by_id: dict[str, DriveItem] = {}
    for item in items:
        by_id.setdefault(item.item_id, item)
    return list(by_id.values())


def folder_generations(folders: list[DriveItem], root_id: str) -> list[list[DriveItem]]:
    """
    Group folders so that every folder comes after its parent's group.

    A folder whose parent is outside the snapshot goes into the first group.
    Cyclic parent references end up together in a final group.
    """
    snapshot_ids = {f.item_id for f in folders}
    placed: set[str] = {root_id}
    remaining = list(folders)
    generations: list[list[DriveItem]] = []

    while remaining:
        ready = [
            f
            for f in remaining
            if f.parent_id is None or f.parent_id in placed or f.parent_id not in snapshot_ids
        ]
        if not ready:
            ready = remaining
        generations.append(ready)
        placed.update(f.item_id for f in ready)
        remaining = [f for f in remaining if f.item_id not in placed]

    return generations
