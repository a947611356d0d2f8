"""Persistence gateway exports for drivemirror."""

from __future__ import annotations

from .database import Database
from .files import FileGateway
from .folders import FolderGateway
from .models import File, Folder, Tag
from .tags import TagGateway, TagSummary

__all__ = [
    "Database",
    "FileGateway",
    "FolderGateway",
    "TagGateway",
    "TagSummary",
    "File",
    "Folder",
    "Tag",
]
