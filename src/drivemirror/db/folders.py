"""Folder persistence gateway."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import selectinload

from drivemirror.errors import ConflictError, NotFoundError
from drivemirror.models import UpsertResult

from .base import apply_changes
from .database import Database
from .models import File, Folder

logger = logging.getLogger(__name__)

_UNSET: Any = object()

SEARCH_LIMIT = 40


class FolderGateway:
    """CRUD and upsert operations for mirrored folders."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ----------------------------
    # Reads
    # ----------------------------
    def find_by_id(self, folder_id: int, *, with_contents: bool = False) -> Optional[Folder]:
        """Return the folder, optionally with its files (and their tags) and children."""
        stmt = select(Folder).where(Folder.id == folder_id)
        if with_contents:
            stmt = stmt.options(
                selectinload(Folder.files),
                selectinload(Folder.children),
            )
        with self._db.session() as session:
            return session.scalars(stmt).first()

    def find_by_google_id(self, google_id: str) -> Optional[Folder]:
        with self._db.session() as session:
            return session.scalars(
                select(Folder).where(Folder.google_id == google_id)
            ).first()

    def find_roots(self) -> list[Folder]:
        """All rows flagged as root, oldest first. More than one is an anomaly."""
        with self._db.session() as session:
            return list(
                session.scalars(
                    select(Folder)
                    .where(Folder.is_root.is_(True))
                    .order_by(Folder.created_at, Folder.id)
                )
            )

    def find_root(self) -> Optional[Folder]:
        roots = self.find_roots()
        return roots[0] if roots else None

    def find_many(
        self,
        *,
        parent_id: Any = _UNSET,
        is_favorite: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> list[Folder]:
        stmt = select(Folder).order_by(Folder.created_at.desc(), Folder.id.desc())
        if parent_id is not _UNSET:
            if parent_id is None:
                stmt = stmt.where(Folder.parent_id.is_(None))
            else:
                stmt = stmt.where(Folder.parent_id == parent_id)
        if is_favorite is not None:
            stmt = stmt.where(Folder.is_favorite.is_(is_favorite))
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._db.session() as session:
            return list(session.scalars(stmt))

    def search(self, query: str, *, limit: int = SEARCH_LIMIT) -> list[Folder]:
        """Case-insensitive match on title or description."""
        pattern = f"%{query}%"
        stmt = (
            select(Folder)
            .where(or_(Folder.title.ilike(pattern), Folder.description.ilike(pattern)))
            .order_by(Folder.created_at.desc(), Folder.id.desc())
            .limit(limit)
        )
        with self._db.session() as session:
            return list(session.scalars(stmt))

    def descendant_files(self, folder_id: int) -> list[File]:
        """Files of the folder and of every folder below it."""
        with self._db.session() as session:
            folder_ids = _subtree_ids(session, folder_id)
            return list(session.scalars(select(File).where(File.folder_id.in_(folder_ids))))

    def would_create_cycle(self, folder_id: int, new_parent_id: int) -> bool:
        """True if new_parent_id is folder_id itself or one of its descendants."""
        with self._db.session() as session:
            return _is_in_parent_chain(session, start_id=new_parent_id, target_id=folder_id)

    # ----------------------------
    # Writes
    # ----------------------------
    def create(self, google_id: str, **fields: Any) -> Folder:
        with self._db.session() as session:
            folder = Folder(google_id=google_id, **fields)
            session.add(folder)
            session.flush()
            return folder

    def update(self, folder_id: int, **fields: Any) -> Folder:
        with self._db.session() as session:
            folder = _get_or_raise(session, folder_id)
            apply_changes(folder, fields)
            session.flush()
            return folder

    def delete(self, folder_id: int) -> Folder:
        """Delete the row; child folders and member files cascade."""
        with self._db.session() as session:
            folder = _get_or_raise(session, folder_id)
            session.delete(folder)
            return folder

    def upsert(
        self,
        google_id: str,
        fields: dict[str, Any],
        *,
        defaults: Optional[dict[str, Any]] = None,
    ) -> UpsertResult:
        """
        Create or update the folder keyed by its remote id.

        `fields` are written on create and on update (only when they differ);
        `defaults` are written on create only.
        """
        try:
            return self._upsert_once(google_id, fields, defaults or {})
        except ConflictError:
            # A concurrent writer inserted the same google_id first.
            return self._upsert_once(google_id, fields, defaults or {})

    def _upsert_once(
        self,
        google_id: str,
        fields: dict[str, Any],
        defaults: dict[str, Any],
    ) -> UpsertResult:
        with self._db.session() as session:
            folder = session.scalars(
                select(Folder).where(Folder.google_id == google_id)
            ).first()
            if folder is None:
                folder = Folder(google_id=google_id, **{**defaults, **fields})
                session.add(folder)
                session.flush()
                return UpsertResult(folder, "created")
            changed = apply_changes(folder, fields)
            session.flush()
            return UpsertResult(folder, "updated" if changed else "unchanged")

    def move(self, folder_id: int, parent_id: int) -> Folder:
        """Reassign the parent. Raises ConflictError when it would form a cycle."""
        with self._db.session() as session:
            folder = _get_or_raise(session, folder_id)
            _get_or_raise(session, parent_id)
            if _is_in_parent_chain(session, start_id=parent_id, target_id=folder_id):
                raise ConflictError(
                    "Cannot move a folder into itself or its descendants",
                    details={"folder_id": folder_id, "parent_id": parent_id},
                )
            folder.parent_id = parent_id
            session.flush()
            return folder

    def toggle_favorite(self, folder_id: int) -> Folder:
        with self._db.session() as session:
            folder = _get_or_raise(session, folder_id)
            folder.is_favorite = not folder.is_favorite
            session.flush()
            return folder

    def advance_last_sync_time(self, folder_id: int, when: datetime) -> bool:
        """
        Move last_sync_time forward to `when`.

        Conditional update: an older `when` never rewinds the watermark.
        Returns True if the row was updated.
        """
        with self._db.session() as session:
            result = session.execute(
                update(Folder)
                .where(Folder.id == folder_id)
                .where(or_(Folder.last_sync_time.is_(None), Folder.last_sync_time < when))
                .values(last_sync_time=when)
            )
            return bool(result.rowcount)

    def repair_duplicate_roots(self) -> int:
        """
        Collapse duplicate root rows into the oldest one.

        Files and child folders of each duplicate are re-parented to the kept
        root before the duplicate is deleted. Returns the number removed.
        """
        with self._db.session() as session:
            roots = list(
                session.scalars(
                    select(Folder)
                    .where(Folder.is_root.is_(True))
                    .order_by(Folder.created_at, Folder.id)
                )
            )
            if len(roots) <= 1:
                return 0

            keep, duplicates = roots[0], roots[1:]
            for dup in duplicates:
                logger.info(
                    "Merging duplicate root %s (id=%s) into %s (id=%s)",
                    dup.google_id,
                    dup.id,
                    keep.google_id,
                    keep.id,
                )
                session.execute(
                    update(File).where(File.folder_id == dup.id).values(folder_id=keep.id)
                )
                session.execute(
                    update(Folder).where(Folder.parent_id == dup.id).values(parent_id=keep.id)
                )
                session.delete(dup)
            return len(duplicates)


def _get_or_raise(session: Any, folder_id: int) -> Folder:
    folder = session.get(Folder, folder_id)
    if folder is None:
        raise NotFoundError("Folder not found", details={"folder_id": folder_id})
    return folder


def _is_in_parent_chain(session: Any, *, start_id: Optional[int], target_id: int) -> bool:
    seen: set[int] = set()
    current = start_id
    while current is not None and current not in seen:
        if current == target_id:
            return True
        seen.add(current)
        current = session.scalar(select(Folder.parent_id).where(Folder.id == current))
    return False


def _subtree_ids(session: Any, folder_id: int) -> list[int]:
    ids: list[int] = []
    queue = [folder_id]
    seen: set[int] = set()
    while queue:
        current = queue.pop(0)
        if current in seen:
            continue
        seen.add(current)
        ids.append(current)
        queue.extend(session.scalars(select(Folder.id).where(Folder.parent_id == current)))
    return ids
