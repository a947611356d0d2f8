"""ORM models for the local mirror: folders, files and tags."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from drivemirror.util.mime import Category
from drivemirror.util.time import EPOCH, now_utc

from .base import Base, UTCDateTime


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None

file_tags = Table(
    "file_tags",
    Base.metadata,
    Column("file_id", ForeignKey("files.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    google_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_root: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_shortcut: Mapped[bool] = mapped_column(Boolean, default=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    last_sync_time: Mapped[datetime] = mapped_column(UTCDateTime, default=lambda: EPOCH)
    owner_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc, onupdate=now_utc)

    parent: Mapped[Optional["Folder"]] = relationship(
        back_populates="children", remote_side=[id]
    )
    children: Mapped[list["Folder"]] = relationship(
        back_populates="parent", cascade="all, delete-orphan", passive_deletes=True
    )
    files: Mapped[list["File"]] = relationship(
        back_populates="folder", cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "googleId": self.google_id,
            "title": self.title,
            "description": self.description,
            "isRoot": self.is_root,
            "isShortcut": self.is_shortcut,
            "isFavorite": self.is_favorite,
            "parentId": self.parent_id,
            "lastSyncTime": _iso(self.last_sync_time),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"Folder(id={self.id!r}, google_id={self.google_id!r}, title={self.title!r})"


class File(Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    google_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(512))
    original_filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    file_extension: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    mime_type: Mapped[str] = mapped_column(String(255))
    category: Mapped[Category] = mapped_column(Enum(Category, native_enum=False, length=16))
    file_size: Mapped[int] = mapped_column(BigInteger, default=0)
    web_view_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    web_content_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    local_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    local_filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    folder_id: Mapped[int] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), index=True
    )
    owner_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc, onupdate=now_utc)

    folder: Mapped[Folder] = relationship(back_populates="files")
    tags: Mapped[list["Tag"]] = relationship(
        secondary=file_tags, back_populates="files", lazy="selectin"
    )

    @property
    def tag_names(self) -> list[str]:
        return sorted(tag.name for tag in self.tags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "googleId": self.google_id,
            "title": self.title,
            "originalFilename": self.original_filename,
            "fileExtension": self.file_extension,
            "mimeType": self.mime_type,
            "category": self.category.value if self.category else None,
            "fileSize": self.file_size,
            "webViewLink": self.web_view_link,
            "webContentLink": self.web_content_link,
            "thumbnailLink": self.thumbnail_link,
            "iconLink": self.icon_link,
            "localPath": self.local_path,
            "localFilename": self.local_filename,
            "description": self.description,
            "folderId": self.folder_id,
            "tags": self.tag_names,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"File(id={self.id!r}, google_id={self.google_id!r}, title={self.title!r})"


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc, onupdate=now_utc)

    files: Mapped[list[File]] = relationship(secondary=file_tags, back_populates="tags")

    def __repr__(self) -> str:
        return f"Tag(id={self.id!r}, name={self.name!r})"
