"""Data model for remote Drive items."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from drivemirror.util.mime import is_folder, is_shortcut


@dataclass(slots=True)
class DriveItem:
    """
    A file, folder or shortcut as reported by the Drive API.

    Notes:
        - `parents` holds remote ids; Drive items normally have one parent.
        - `shortcut_target_id`/`shortcut_target_mime_type` are only set for
          shortcuts.
    """

    item_id: str
    name: str
    mime_type: str
    parents: list[str] = field(default_factory=list)

    trashed: bool = False
    description: Optional[str] = None
    modified_time: Optional[datetime] = None
    created_time: Optional[datetime] = None
    size: Optional[int] = None

    original_filename: Optional[str] = None
    file_extension: Optional[str] = None
    web_view_link: Optional[str] = None
    web_content_link: Optional[str] = None
    thumbnail_link: Optional[str] = None
    icon_link: Optional[str] = None

    shortcut_target_id: Optional[str] = None
    shortcut_target_mime_type: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return is_folder(self.mime_type)

    @property
    def is_shortcut(self) -> bool:
        return is_shortcut(self.mime_type)

    @property
    def parent_id(self) -> Optional[str]:
        return self.parents[0] if self.parents else None


@dataclass(slots=True)
class DrivePage:
    """One page of a paginated listing."""

    items: list[DriveItem]
    next_page_token: Optional[str] = None
