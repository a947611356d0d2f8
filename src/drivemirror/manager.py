"""DriveMirror: the file manager facade over Drive, the mirror and local bytes."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from drivemirror.auth import AuthInfo
from drivemirror.config import AppConfig, AuthConfig
from drivemirror.controller import GoogleDriveController
from drivemirror.db import (
    Database,
    File,
    FileGateway,
    Folder,
    FolderGateway,
    Tag,
    TagGateway,
    TagSummary,
)
from drivemirror.errors import (
    ConflictError,
    InvalidArgumentError,
    LocalStorageError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from drivemirror.models import ActionResult, SyncReport
from drivemirror.storage import LocalByteStorage
from drivemirror.sync import (
    ROOT_DESCRIPTION,
    VIEW_PATHS,
    FullSync,
    KeyedLock,
    QuickSync,
)
from drivemirror.sync.records import root_fields
from drivemirror.upload import UploadPipeline, UploadRequest
from drivemirror.util.mime import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Principal:
    """The signed-in user an action runs for."""

    id: str


PrincipalProvider = Callable[[], Optional[Principal]]
Invalidator = Callable[[list[str]], None]


class DriveMirror:
    """
    High-level file manager: sync, folders, files and tags.

    Every action requires a current principal. Mutating actions emit an
    invalidation signal so cached views can refresh.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        principal_provider: PrincipalProvider,
        on_invalidate: Optional[Invalidator] = None,
    ) -> None:
        controller = GoogleDriveController(
            _auth_info_from_config(config.auth),
            scopes=config.auth.scopes,
            supports_all_drives=config.drive.supports_all_drives,
            root_folder_id=config.drive.root_folder_id or None,
            timeout_sec=config.drive.timeout_sec,
            share_uploads=config.drive.share_uploads,
        )
        database = Database(config.database.url)
        database.create_all()
        self._setup(
            controller,
            database,
            LocalByteStorage(config.storage.upload_dir),
            principal_provider=principal_provider,
            on_invalidate=on_invalidate,
            max_concurrency=config.sync.max_concurrency,
            full_sync_deadline_sec=config.sync.full_sync_deadline_sec or None,
            image_thumbnail_delay_sec=config.upload.image_thumbnail_delay_sec,
            video_thumbnail_delay_sec=config.upload.video_thumbnail_delay_sec,
            timer_factory=threading.Timer,
        )

    @classmethod
    def from_controller(
        cls,
        controller: GoogleDriveController,
        database: Database,
        storage: LocalByteStorage,
        *,
        principal_provider: PrincipalProvider,
        on_invalidate: Optional[Invalidator] = None,
        max_concurrency: int = 10,
        full_sync_deadline_sec: Optional[float] = None,
        image_thumbnail_delay_sec: float = 5.0,
        video_thumbnail_delay_sec: float = 30.0,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> "DriveMirror":
        """Create a mirror with injected components (useful for tests)."""
        obj = cls.__new__(cls)
        obj._setup(
            controller,
            database,
            storage,
            principal_provider=principal_provider,
            on_invalidate=on_invalidate,
            max_concurrency=max_concurrency,
            full_sync_deadline_sec=full_sync_deadline_sec,
            image_thumbnail_delay_sec=image_thumbnail_delay_sec,
            video_thumbnail_delay_sec=video_thumbnail_delay_sec,
            timer_factory=timer_factory,
        )
        return obj

    def _setup(
        self,
        controller: GoogleDriveController,
        database: Database,
        storage: LocalByteStorage,
        *,
        principal_provider: PrincipalProvider,
        on_invalidate: Optional[Invalidator],
        max_concurrency: int,
        full_sync_deadline_sec: Optional[float],
        image_thumbnail_delay_sec: float,
        video_thumbnail_delay_sec: float,
        timer_factory: Callable[..., threading.Timer],
    ) -> None:
        self._controller = controller
        self._database = database
        self._storage = storage
        self._principal_provider = principal_provider
        self._on_invalidate = on_invalidate

        self.folders = FolderGateway(database)
        self.files = FileGateway(database)
        self.tags = TagGateway(database)

        self._full_sync = FullSync(
            controller,
            self.folders,
            self.files,
            max_concurrency=max_concurrency,
            deadline_sec=full_sync_deadline_sec,
            on_invalidate=on_invalidate,
        )
        self._quick_sync = QuickSync(
            controller,
            self.folders,
            self.files,
            locks=KeyedLock(),
            on_invalidate=on_invalidate,
        )
        self._uploads = UploadPipeline(
            controller,
            self.folders,
            self.files,
            storage,
            quick_sync=self._quick_sync,
            image_thumbnail_delay_sec=image_thumbnail_delay_sec,
            video_thumbnail_delay_sec=video_thumbnail_delay_sec,
            timer_factory=timer_factory,
        )

    def close(self) -> None:
        """Cancel pending thumbnail backfills and release database connections."""
        self._uploads.cancel_pending()
        self._database.dispose()

    # ----------------------------
    # Sync
    # ----------------------------
    def sync_drive(self) -> SyncReport:
        """Full sync of the whole remote tree."""
        principal = self._require_principal()
        return self._full_sync.run(principal.id)

    def quick_sync(self, google_id: str) -> SyncReport:
        """Incremental sync of one mirrored folder, keyed by its remote id."""
        self._require_principal()
        return self._quick_sync.run(google_id)

    # ----------------------------
    # Folders
    # ----------------------------
    def create_root_folder(self) -> Folder:
        """Mirror the remote root folder, returning the existing row if present."""
        principal = self._require_principal()
        root = self._controller.get_root_folder()
        existing = self.folders.find_by_google_id(root.item_id)
        if existing is not None:
            return existing

        result = self.folders.upsert(
            root.item_id,
            root_fields(),
            defaults={"description": ROOT_DESCRIPTION, "owner_id": principal.id},
        )
        self._invalidate()
        return result.record

    def create_folder(
        self,
        title: str,
        description: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> Folder:
        """
        Create the folder on Drive, then mirror it.

        If the row cannot be written, the remote folder is deleted again.
        """
        principal = self._require_principal()
        clean_title = _require_title(title)
        parent = self._folder_or_root(parent_id)

        remote = self._controller.create_folder(
            clean_title,
            parent.google_id,
            description=description,
        )
        try:
            folder = self.folders.create(
                remote.item_id,
                title=clean_title,
                description=description,
                parent_id=parent.id,
                is_root=False,
                owner_id=principal.id,
            )
        except Exception:
            logger.error("Failed to mirror new folder %s; removing it from Drive", remote.item_id)
            self._delete_remote_quietly(remote.item_id)
            raise

        self._invalidate()
        return folder

    def edit_folder(
        self,
        folder_id: int,
        title: str,
        description: Optional[str] = None,
    ) -> Folder:
        self._require_principal()
        clean_title = _require_title(title)
        current = self.folders.find_by_id(folder_id)
        if current is None:
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        self._controller.rename(current.google_id, clean_title)
        folder = self.folders.update(folder_id, title=clean_title, description=description)
        self._invalidate()
        return folder

    def delete_folder(self, folder_id: int) -> Folder:
        """
        Delete a folder on Drive, then the local bytes of every file below
        it, then the row (child folders and files cascade).
        """
        self._require_principal()
        folder = self._get_folder_row(folder_id)
        if folder.is_root:
            raise InvalidArgumentError(
                "The root folder cannot be deleted",
                details={"folder_id": folder_id},
            )

        member_files = self.folders.descendant_files(folder.id)
        self._delete_remote(folder.google_id)
        for file in member_files:
            self._delete_local_bytes(file)

        deleted = self.folders.delete(folder.id)
        logger.info(
            "Deleted folder %s (%s) with %d files",
            folder.google_id,
            folder.title,
            len(member_files),
        )
        self._invalidate()
        return deleted

    def move_folder(self, folder_id: int, target_folder_id: int) -> Folder:
        self._require_principal()
        source = self.folders.find_by_id(folder_id)
        target = self.folders.find_by_id(target_folder_id)
        if source is None or target is None:
            raise NotFoundError(
                "Source or target folder not found",
                details={"folder_id": folder_id, "target_folder_id": target_folder_id},
            )
        if source.is_root:
            raise InvalidArgumentError("The root folder cannot be moved")
        if self.folders.would_create_cycle(source.id, target.id):
            raise ConflictError(
                "Cannot move a folder into itself or its descendants",
                details={"folder_id": folder_id, "target_folder_id": target_folder_id},
            )

        self._controller.move(source.google_id, target.google_id)
        moved = self.folders.move(source.id, target.id)
        self._invalidate()
        return moved

    def toggle_favorite(self, folder_id: int) -> Folder:
        self._require_principal()
        folder = self.folders.toggle_favorite(folder_id)
        self._invalidate()
        return folder

    def search_folders(self, query: str) -> list[Folder]:
        self._require_principal()
        return self.folders.search(query)

    def get_folder(self, folder_id: int) -> Folder:
        """Folder with its files and child folders loaded."""
        self._require_principal()
        folder = self.folders.find_by_id(folder_id, with_contents=True)
        if folder is None:
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        return folder

    def list_folders(self, *, favorites_only: bool = False) -> list[Folder]:
        self._require_principal()
        return self.folders.find_many(is_favorite=True if favorites_only else None)

    # ----------------------------
    # Files
    # ----------------------------
    def get_files(self, folder_id: int) -> list[File]:
        self._require_principal()
        return self.files.find_by_folder(folder_id)

    def get_file(self, file_id: int) -> File:
        self._require_principal()
        return self._get_file_row(file_id)

    def upload_file(self, request: UploadRequest) -> ActionResult:
        """
        Upload one payload. Raises on failure after compensating.

        The result data carries `driveStatus` and `localStatus`.
        """
        principal = self._require_principal()
        result = self._uploads.upload(request, principal.id)
        self._invalidate()
        return result

    def upload_files(self, requests: Sequence[UploadRequest]) -> list[ActionResult]:
        """Upload several payloads; returns one settled result per payload."""
        principal = self._require_principal()
        results = self._uploads.upload_many(requests, principal.id)
        self._invalidate()
        return results

    def update_file(
        self,
        file_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tag_names: Optional[Sequence[str]] = None,
    ) -> File:
        """Update metadata; a given tag_names replaces the file's tag set."""
        self._require_principal()
        fields: dict[str, object] = {}
        if title:
            fields["title"] = _require_title(title)
        if description:
            fields["description"] = description
        updated = self.files.update(file_id, tag_names=tag_names, **fields)
        self._invalidate()
        return updated

    def delete_file(self, file_id: int) -> File:
        """Delete on Drive, then the local bytes, then the row."""
        self._require_principal()
        file = self._get_file_row(file_id)
        self._delete_remote(file.google_id)
        self._delete_local_bytes(file)
        deleted = self.files.delete(file.id)
        self._invalidate()
        return deleted

    def delete_files(self, file_ids: Sequence[int]) -> list[ActionResult]:
        self._require_principal()
        results: list[ActionResult] = []
        for file_id in file_ids:
            try:
                deleted = self.delete_file(file_id)
            except Exception as e:
                logger.error("Failed to delete file %s: %s", file_id, e)
                results.append(ActionResult.failed(e))
            else:
                results.append(ActionResult.ok({"id": deleted.id, "googleId": deleted.google_id}))
        return results

    def move_files(self, file_ids: Sequence[int], target_folder_id: int) -> int:
        """Move files on Drive and in the mirror. Returns the number moved."""
        self._require_principal()
        target = self._get_folder_row(target_folder_id)
        moved = 0
        for file_id in file_ids:
            file = self._get_file_row(file_id)
            if file.folder_id == target.id:
                continue
            self._controller.move(file.google_id, target.google_id)
            moved += self.files.move([file.id], target.id)
        self._invalidate()
        return moved

    def search_files(
        self,
        query: str,
        *,
        category: Optional[Category] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> list[File]:
        self._require_principal()
        return self.files.search(query, category=category, tags=tags)

    def get_files_by_tag(self, tag_name: str) -> list[File]:
        self._require_principal()
        return self.files.find_by_tag(tag_name)

    def assign_tags(self, file_ids: Sequence[int], tag_names: Sequence[str]) -> list[File]:
        """Add tags to files; existing tags are kept."""
        self._require_principal()
        files = self.files.add_tags(file_ids, tag_names)
        self._invalidate()
        return files

    # ----------------------------
    # Tags
    # ----------------------------
    def upsert_tag(self, name: str) -> Tag:
        self._require_principal()
        result = self.tags.upsert(name)
        if result.changed:
            self._invalidate()
        return result.record

    def list_tags(self) -> list[TagSummary]:
        self._require_principal()
        return self.tags.find_many()

    def rename_tag(self, old_name: str, new_name: str) -> Tag:
        self._require_principal()
        tag = self.tags.rename(old_name, new_name)
        self._invalidate()
        return tag

    def delete_tag(self, name: str) -> Tag:
        self._require_principal()
        tag = self.tags.delete(name)
        self._invalidate()
        return tag

    # ----------------------------
    # Maintenance
    # ----------------------------
    def repair_duplicate_roots(self) -> int:
        """Merge duplicate root rows into the oldest one. Returns rows removed."""
        self._require_principal()
        removed = self.folders.repair_duplicate_roots()
        if removed:
            logger.warning("Removed %d duplicate root folder rows", removed)
            self._invalidate()
        return removed

    # ----------------------------
    # Internals
    # ----------------------------
    def _require_principal(self) -> Principal:
        principal = self._principal_provider()
        if principal is None:
            raise NotAuthorizedError("Not authorized")
        return principal

    def _invalidate(self) -> None:
        if self._on_invalidate is not None:
            self._on_invalidate(list(VIEW_PATHS))

    def _get_folder_row(self, folder_id: int) -> Folder:
        folder = self.folders.find_by_id(folder_id)
        if folder is None:
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        return folder

    def _get_file_row(self, file_id: int) -> File:
        file = self.files.find_by_id(file_id)
        if file is None:
            raise NotFoundError("File not found", details={"file_id": file_id})
        return file

    def _folder_or_root(self, folder_id: Optional[int]) -> Folder:
        if folder_id is not None:
            return self._get_folder_row(folder_id)
        root = self.folders.find_root()
        if root is None:
            raise NotFoundError("Root folder is not mirrored yet; run a full sync first")
        return root

    def _delete_remote(self, google_id: str) -> None:
        try:
            self._controller.delete(google_id)
        except NotFoundError:
            logger.warning("Remote item %s was already gone", google_id)

    def _delete_remote_quietly(self, google_id: str) -> None:
        try:
            self._controller.delete(google_id)
        except Exception as e:
            logger.error("Could not remove remote item %s: %s", google_id, e)

    def _delete_local_bytes(self, file: File) -> None:
        if not file.local_path:
            return
        try:
            self._storage.delete(file.local_path)
        except LocalStorageError as e:
            logger.warning("Could not remove local copy of %s: %s", file.google_id, e)


def _require_title(title: Optional[str]) -> str:
    clean = (title or "").strip()
    if not clean:
        raise ValidationError("Title is required")
    return clean


def _auth_info_from_config(auth: AuthConfig) -> AuthInfo:
    if auth.kind == "service_account":
        return AuthInfo(
            kind="service_account",
            data={"service_account_file": auth.service_account_file},
        )
    return AuthInfo(
        kind="oauth",
        data={
            "client_secrets_file": auth.client_secrets_file,
            "token_file": auth.token_file,
        },
    )
