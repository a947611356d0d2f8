"""File persistence gateway."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import selectinload

from drivemirror.errors import ConflictError, NotFoundError
from drivemirror.models import UpsertResult
from drivemirror.util.mime import Category

from .base import apply_changes
from .database import Database
from .models import File, Tag
from .tags import get_or_create_tags

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 40


class FileGateway:
    """CRUD, search and upsert operations for mirrored files."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ----------------------------
    # Reads
    # ----------------------------
    def find_by_id(self, file_id: int) -> Optional[File]:
        stmt = select(File).where(File.id == file_id).options(selectinload(File.folder))
        with self._db.session() as session:
            return session.scalars(stmt).first()

    def find_by_google_id(self, google_id: str) -> Optional[File]:
        with self._db.session() as session:
            return session.scalars(select(File).where(File.google_id == google_id)).first()

    def find_many(self, *, limit: Optional[int] = None) -> list[File]:
        stmt = select(File).order_by(File.created_at.desc(), File.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._db.session() as session:
            return list(session.scalars(stmt))

    def find_by_folder(self, folder_id: int) -> list[File]:
        stmt = (
            select(File)
            .where(File.folder_id == folder_id)
            .order_by(File.created_at.desc(), File.id.desc())
        )
        with self._db.session() as session:
            return list(session.scalars(stmt))

    def find_by_tag(self, tag_name: str) -> list[File]:
        stmt = (
            select(File)
            .where(File.tags.any(Tag.name == tag_name))
            .order_by(File.created_at.desc(), File.id.desc())
        )
        with self._db.session() as session:
            return list(session.scalars(stmt))

    def search(
        self,
        query: str,
        *,
        category: Optional[Category] = None,
        tags: Optional[Sequence[str]] = None,
        limit: int = SEARCH_LIMIT,
    ) -> list[File]:
        """Case-insensitive match on title, original filename or description."""
        pattern = f"%{query}%"
        conditions = [
            or_(
                File.title.ilike(pattern),
                File.original_filename.ilike(pattern),
                File.description.ilike(pattern),
            )
        ]
        if category is not None:
            conditions.append(File.category == category)
        if tags:
            conditions.append(File.tags.any(Tag.name.in_(list(tags))))

        stmt = (
            select(File)
            .where(and_(*conditions))
            .order_by(File.updated_at.desc(), File.id.desc())
            .limit(limit)
        )
        with self._db.session() as session:
            return list(session.scalars(stmt))

    # ----------------------------
    # Writes
    # ----------------------------
    def create(
        self,
        google_id: str,
        *,
        tag_names: Iterable[str] = (),
        **fields: Any,
    ) -> File:
        """Insert a file row, attaching tags by name (created on first use)."""
        with self._db.session() as session:
            file = File(google_id=google_id, **fields)
            file.tags = get_or_create_tags(session, tag_names)
            session.add(file)
            session.flush()
            return file

    def update(
        self,
        file_id: int,
        *,
        tag_names: Optional[Iterable[str]] = None,
        **fields: Any,
    ) -> File:
        """
        Update metadata. When tag_names is given, the tag set is replaced.
        """
        with self._db.session() as session:
            file = _get_or_raise(session, file_id)
            apply_changes(file, fields)
            if tag_names is not None:
                file.tags = get_or_create_tags(session, tag_names)
            session.flush()
            return file

    def add_tags(self, file_ids: Sequence[int], tag_names: Iterable[str]) -> list[File]:
        """Attach tags to every file, keeping the tags they already have."""
        with self._db.session() as session:
            tags = get_or_create_tags(session, tag_names)
            files = [_get_or_raise(session, file_id) for file_id in file_ids]
            for file in files:
                for tag in tags:
                    if tag not in file.tags:
                        file.tags.append(tag)
            session.flush()
            return files

    def set_thumbnail(self, file_id: int, thumbnail_link: str) -> File:
        return self.update(file_id, thumbnail_link=thumbnail_link)

    def upsert(
        self,
        google_id: str,
        fields: dict[str, Any],
        *,
        defaults: Optional[dict[str, Any]] = None,
    ) -> UpsertResult:
        """
        Create or update the file keyed by its remote id.

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
            file = session.scalars(select(File).where(File.google_id == google_id)).first()
            if file is None:
                file = File(google_id=google_id, **{**defaults, **fields})
                file.tags = []
                session.add(file)
                session.flush()
                return UpsertResult(file, "created")
            changed = apply_changes(file, fields)
            session.flush()
            return UpsertResult(file, "updated" if changed else "unchanged")

    def move(self, file_ids: Sequence[int], folder_id: int) -> int:
        """Reassign files to another folder. Returns the number of rows moved."""
        if not file_ids:
            return 0
        with self._db.session() as session:
            result = session.execute(
                update(File)
                .where(File.id.in_(list(file_ids)))
                .values(folder_id=folder_id)
            )
            return int(result.rowcount or 0)

    def delete(self, file_id: int) -> File:
        with self._db.session() as session:
            file = _get_or_raise(session, file_id)
            session.delete(file)
            return file


def _get_or_raise(session: Any, file_id: int) -> File:
    file = session.get(File, file_id)
    if file is None:
        raise NotFoundError("File not found", details={"file_id": file_id})
    return file
