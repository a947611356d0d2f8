from __future__ import annotations

from enum import Enum
from typing import Optional

FOLDER_MIME: str = "application/vnd.google-apps.folder"
SHORTCUT_MIME: str = "application/vnd.google-apps.shortcut"


class Category(str, Enum):
    """File category derived from a MIME type."""

    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"


def is_folder(mime_type: str) -> bool:
    return mime_type == FOLDER_MIME


def is_shortcut(mime_type: str) -> bool:
    return mime_type == SHORTCUT_MIME


def category_from_mime_type(mime_type: Optional[str]) -> Optional[Category]:
    """
    Derive the file category from a MIME type.

    Returns None when the type is not recognized; callers decide whether
    that means "skip" (sync) or "reject" (upload).
    """
    if not mime_type:
        return None
    if mime_type.startswith("image/"):
        return Category.IMAGE
    if mime_type.startswith("video/"):
        return Category.VIDEO
    if (
        mime_type.startswith("application/pdf")
        or "document" in mime_type
        or "sheet" in mime_type
    ):
        return Category.DOCUMENT
    return None


def has_deferred_thumbnail(category: Optional[Category]) -> bool:
    """Drive generates thumbnails for these categories after upload."""
    return category in (Category.IMAGE, Category.VIDEO)
