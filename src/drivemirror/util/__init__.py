from .mime import (
    FOLDER_MIME,
    SHORTCUT_MIME,
    Category,
    category_from_mime_type,
    has_deferred_thumbnail,
    is_folder,
    is_shortcut,
)
from .time import EPOCH, as_utc, normalize_dt, now_utc, parse_rfc3339, to_query_time

__all__ = [
    "FOLDER_MIME",
    "SHORTCUT_MIME",
    "Category",
    "category_from_mime_type",
    "has_deferred_thumbnail",
    "is_folder",
    "is_shortcut",
    "EPOCH",
    "now_utc",
    "parse_rfc3339",
    "to_query_time",
    "normalize_dt",
    "as_utc",
]
