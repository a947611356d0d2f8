"""Tag persistence gateway. Tags are keyed by name."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, select

from drivemirror.errors import NotFoundError, ValidationError
from drivemirror.models import UpsertResult

from .database import Database
from .models import Tag, file_tags

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TagSummary:
    """A tag together with its derived file count."""

    id: int
    name: str
    file_count: int
    created_at: datetime


def normalize_tag_name(name: Optional[str]) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Tag name cannot be empty")
    return trimmed


def get_or_create_tags(session: Any, names: Iterable[str]) -> list[Tag]:
    """Resolve tag names inside an open session, creating missing tags."""
    wanted: list[str] = []
    for name in names:
        clean = normalize_tag_name(name)
        if clean not in wanted:
            wanted.append(clean)
    if not wanted:
        return []

    existing = {
        tag.name: tag for tag in session.scalars(select(Tag).where(Tag.name.in_(wanted)))
    }
    tags: list[Tag] = []
    for name in wanted:
        tag = existing.get(name)
        if tag is None:
            tag = Tag(name=name)
            session.add(tag)
        tags.append(tag)
    session.flush()
    return tags


class TagGateway:
    """Create, rename and delete tags; associations live on files."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def find_many(self) -> list[TagSummary]:
        stmt = (
            select(Tag, func.count(file_tags.c.file_id))
            .outerjoin(file_tags, file_tags.c.tag_id == Tag.id)
            .group_by(Tag.id)
            .order_by(Tag.created_at.desc(), Tag.id.desc())
        )
        with self._db.session() as session:
            return [
                TagSummary(id=tag.id, name=tag.name, file_count=count, created_at=tag.created_at)
                for tag, count in session.execute(stmt)
            ]

    def find_by_name(self, name: str) -> Optional[Tag]:
        with self._db.session() as session:
            return session.scalars(select(Tag).where(Tag.name == name)).first()

    def upsert(self, name: str) -> UpsertResult:
        clean = normalize_tag_name(name)
        with self._db.session() as session:
            tag = session.scalars(select(Tag).where(Tag.name == clean)).first()
            if tag is not None:
                return UpsertResult(tag, "unchanged")
            tag = Tag(name=clean)
            session.add(tag)
            session.flush()
            return UpsertResult(tag, "created")

    def delete(self, name: str) -> Tag:
        """Delete the tag; files keep existing, only their associations go."""
        with self._db.session() as session:
            tag = session.scalars(select(Tag).where(Tag.name == name)).first()
            if tag is None:
                raise NotFoundError("Tag not found", details={"name": name})
            session.delete(tag)
            return tag

    def rename(self, old_name: str, new_name: str) -> Tag:
        """
        Rename a tag, keeping every file association.

        If a tag called `new_name` already exists the two are merged: the old
        tag's files are attached to it and the old tag is removed. Runs in a
        single transaction.
        """
        clean = normalize_tag_name(new_name)
        with self._db.session() as session:
            tag = session.scalars(select(Tag).where(Tag.name == old_name)).first()
            if tag is None:
                raise NotFoundError("Tag not found", details={"name": old_name})
            if clean == tag.name:
                return tag

            target = session.scalars(select(Tag).where(Tag.name == clean)).first()
            if target is None:
                tag.name = clean
                session.flush()
                return tag

            for file in list(tag.files):
                file.tags.remove(tag)
                if target not in file.tags:
                    file.tags.append(target)
            session.delete(tag)
            session.flush()
            logger.info("Merged tag %r into existing tag %r", old_name, clean)
            return target
