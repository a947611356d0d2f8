"""Translate remote Drive items into mirror row fields."""

from __future__ import annotations

from typing import Any, Optional

from drivemirror.models import DriveItem
from drivemirror.util.mime import Category

ROOT_TITLE = "Root"
ROOT_DESCRIPTION = "Main folder of the project."


def icon_link_64(link: Optional[str]) -> Optional[str]:
    """Drive returns 16px icons; the UI shows the 64px variant."""
    if not link:
        return link
    return link.replace("/16/", "/64/", 1)


def folder_fields_from_item(
    item: DriveItem,
    *,
    parent_id: Optional[int],
    is_shortcut: bool = False,
) -> dict[str, Any]:
    return {
        "title": item.name,
        "description": item.description,
        "parent_id": parent_id,
        "is_root": parent_id is None,
        "is_shortcut": is_shortcut,
    }


def root_fields() -> dict[str, Any]:
    return {"title": ROOT_TITLE, "is_root": True, "parent_id": None}


def file_fields_from_item(
    item: DriveItem,
    category: Category,
    *,
    folder_id: int,
) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "title": item.name,
        "original_filename": item.original_filename or item.name,
        "file_extension": item.file_extension,
        "mime_type": item.mime_type,
        "category": category,
        "file_size": item.size or 0,
        "web_view_link": item.web_view_link,
        "web_content_link": item.web_content_link,
        "icon_link": icon_link_64(item.icon_link),
        "description": item.description,
        "folder_id": folder_id,
    }
    # Thumbnails appear asynchronously; never blank out one we already have.
    if item.thumbnail_link:
        fields["thumbnail_link"] = item.thumbnail_link
    return fields


# Views to refresh after the mirror changes: the dashboard and folder pages.
VIEW_PATHS: tuple[str, ...] = ("/", "/folder/:id")
