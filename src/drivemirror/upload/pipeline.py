"""Dual-write upload: remote copy, local byte copy and database record."""

from __future__ import annotations

import logging
import mimetypes
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TypeVar

from drivemirror.db import FileGateway, Folder, FolderGateway
from drivemirror.db.tags import normalize_tag_name
from drivemirror.errors import (
    InvalidStateError,
    NotFoundError,
    UnrecognizedMimeTypeError,
    ValidationError,
)
from drivemirror.models import ActionResult, DriveItem, UploadOutcome
from drivemirror.storage import LocalByteStorage, StoredBytes
from drivemirror.storage.local_storage import safe_filename
from drivemirror.sync.records import icon_link_64
from drivemirror.util.mime import Category, category_from_mime_type, has_deferred_thumbnail

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(slots=True)
class UploadRequest:
    """One payload to upload. `folder_id` is a mirror row id; None means root."""

    data: bytes
    filename: str
    mime_type: Optional[str] = None
    folder_id: Optional[int] = None
    tag_names: list[str] = field(default_factory=list)
    description: Optional[str] = None


class UploadPipeline:
    """
    Upload bytes to Drive and to local storage in parallel, then record them.

    Either the remote copy, the local copy and the row all exist afterwards,
    or the pipeline has tried to remove whatever it created. Compensation
    failures are logged; the caller always sees the original error.
    """

    def __init__(
        self,
        controller: Any,
        folders: FolderGateway,
        files: FileGateway,
        storage: LocalByteStorage,
        *,
        quick_sync: Any = None,
        image_thumbnail_delay_sec: float = 5.0,
        video_thumbnail_delay_sec: float = 30.0,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._controller = controller
        self._folders = folders
        self._files = files
        self._storage = storage
        self._quick_sync = quick_sync
        self._delays = {
            Category.IMAGE: image_thumbnail_delay_sec,
            Category.VIDEO: video_thumbnail_delay_sec,
        }
        self._timer_factory = timer_factory
        self._timers: set[threading.Timer] = set()
        self._timers_lock = threading.Lock()

    # ----------------------------
    # Public API
    # ----------------------------
    def upload(self, request: UploadRequest, owner_id: str) -> ActionResult:
        """
        Run the whole pipeline for one payload.

        Raises:
            ValidationError: empty payload, missing filename, blank tag.
            UnrecognizedMimeTypeError: Drive reports a type with no category.
            NotFoundError: the target folder is not mirrored.
            DriveMirrorError: remote, local storage or database failures.
        """
        name, mime_type, tag_names = self._validate(request)
        target = self._resolve_target(request.folder_id)
        outcome = UploadOutcome()

        remote, stored = self._write_both(request, name, mime_type, target, outcome)

        category = category_from_mime_type(remote.mime_type)
        if category is None:
            self._compensate(remote, stored)
            raise UnrecognizedMimeTypeError(
                "Unrecognized File Type",
                details={"mime_type": remote.mime_type, "name": name},
            )

        try:
            record = self._files.create(
                remote.item_id,
                tag_names=tag_names,
                **_record_fields(remote, category, target, stored, request, owner_id),
            )
        except Exception:
            logger.error("Failed to record upload %s; rolling back", remote.item_id)
            self._compensate(remote, stored)
            raise

        if has_deferred_thumbnail(category):
            self._schedule_thumbnail(record.id, remote.item_id, self._delays[category])

        self._refresh_folder(target)

        logger.info(
            "Uploaded %s as %s into folder %s",
            name,
            remote.item_id,
            target.google_id,
        )
        return ActionResult.ok(
            {
                **record.to_dict(),
                "driveStatus": outcome.drive_status,
                "localStatus": outcome.local_status,
            }
        )

    def upload_many(
        self,
        requests: Sequence[UploadRequest],
        owner_id: str,
    ) -> list[ActionResult]:
        """Upload each payload independently; one failure does not stop the rest."""
        results: list[ActionResult] = []
        for request in requests:
            try:
                results.append(self.upload(request, owner_id))
            except Exception as e:
                logger.error("Upload of %s failed: %s", request.filename, e)
                results.append(ActionResult.failed(e))
        return results

    def cancel_pending(self) -> int:
        """Cancel thumbnail backfills that have not fired yet."""
        with self._timers_lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    # ----------------------------
    # Phases
    # ----------------------------
    def _validate(self, request: UploadRequest) -> tuple[str, str, list[str]]:
        if not request.data:
            raise ValidationError("No file provided")
        name = request.filename or ""
        if not name.strip():
            raise ValidationError("Filename is required", details={"name": name})
        # The local copy name must be derivable before anything is written.
        safe_filename(name)
        mime_type = (
            request.mime_type
            or mimetypes.guess_type(name)[0]
            or DEFAULT_MIME_TYPE
        )
        tag_names = [normalize_tag_name(tag) for tag in request.tag_names]
        return name, mime_type, tag_names

    def _resolve_target(self, folder_id: Optional[int]) -> Folder:
        if folder_id is not None:
            folder = self._folders.find_by_id(folder_id)
            if folder is None:
                raise NotFoundError("Folder not found", details={"folder_id": folder_id})
            return folder

        root = self._folders.find_root()
        if root is None:
            raise NotFoundError("Root folder is not mirrored yet; run a full sync first")
        return root

    def _write_both(
        self,
        request: UploadRequest,
        name: str,
        mime_type: str,
        target: Folder,
        outcome: UploadOutcome,
    ) -> tuple[DriveItem, StoredBytes]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="upload") as pool:
            remote_future = pool.submit(
                self._controller.upload_bytes,
                request.data,
                name,
                mime_type,
                target.google_id,
                description=request.description,
            )
            local_future = pool.submit(self._storage.save, request.data, name)
            remote, remote_error = _settle(remote_future)
            stored, local_error = _settle(local_future)

        outcome.drive_status = "failed" if remote_error else "success"
        outcome.local_status = "failed" if local_error else "success"
        if remote_error is not None:
            logger.error("Remote upload of %s failed: %s", name, remote_error)
            self._compensate(None, stored)
            raise remote_error
        if local_error is not None:
            logger.error("Local write of %s failed: %s", name, local_error)
            self._compensate(remote, None)
            raise local_error

        if remote is None or stored is None:
            raise InvalidStateError("Upload finished without a remote and a local copy")
        return remote, stored

    def _compensate(self, remote: Optional[DriveItem], stored: Optional[StoredBytes]) -> None:
        if remote is not None:
            try:
                self._controller.delete(remote.item_id)
                logger.info("Removed remote copy %s", remote.item_id)
            except Exception as e:
                logger.error("Could not remove remote copy %s: %s", remote.item_id, e)
        if stored is not None:
            try:
                self._storage.delete(stored.path)
            except Exception as e:
                logger.error("Could not remove local copy %s: %s", stored.path, e)

    def _refresh_folder(self, target: Folder) -> None:
        if self._quick_sync is None:
            return
        try:
            self._quick_sync.run(target.google_id)
        except Exception as e:
            logger.warning("Quick sync of %s after upload failed: %s", target.google_id, e)

    # ----------------------------
    # Thumbnail backfill
    # ----------------------------
    def _schedule_thumbnail(self, file_id: int, google_id: str, delay_sec: float) -> None:
        timer: threading.Timer

        def fire() -> None:
            with self._timers_lock:
                self._timers.discard(timer)
            self._backfill_thumbnail(file_id, google_id)

        timer = self._timer_factory(delay_sec, fire)
        timer.daemon = True
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()

    def _backfill_thumbnail(self, file_id: int, google_id: str) -> None:
        try:
            item = self._controller.get(google_id)
            if not item.thumbnail_link:
                logger.info("No thumbnail yet for %s", google_id)
                return
            self._files.set_thumbnail(file_id, item.thumbnail_link)
            logger.debug("Thumbnail stored for %s", google_id)
        except Exception as e:
            logger.warning("Thumbnail backfill for %s failed: %s", google_id, e)


def _settle(future: "Future[T]") -> tuple[Optional[T], Optional[BaseException]]:
    try:
        return future.result(), None
    except Exception as e:
        return None, e


def _record_fields(
    remote: DriveItem,
    category: Category,
    target: Folder,
    stored: StoredBytes,
    request: UploadRequest,
    owner_id: str,
) -> dict[str, Any]:
    return {
        "title": remote.name,
        "original_filename": remote.original_filename or remote.name,
        "file_extension": remote.file_extension,
        "mime_type": remote.mime_type,
        "category": category,
        "file_size": remote.size if remote.size is not None else len(request.data),
        "web_view_link": remote.web_view_link,
        "web_content_link": remote.web_content_link,
        "thumbnail_link": remote.thumbnail_link,
        "icon_link": icon_link_64(remote.icon_link),
        "local_path": stored.path,
        "local_filename": stored.filename,
        "description": request.description,
        "folder_id": target.id,
        "owner_id": owner_id,
    }


__all__ = ["UploadPipeline", "UploadRequest"]
