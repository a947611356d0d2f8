"""Field definitions for Google Drive API responses."""

from __future__ import annotations

FILE_FIELDS: str = (
    "id,"
    "name,"
    "mimeType,"
    "parents,"
    "trashed,"
    "description,"
    "modifiedTime,"
    "createdTime,"
    "size,"
    "originalFilename,"
    "fileExtension,"
    "webViewLink,"
    "webContentLink,"
    "thumbnailLink,"
    "iconLink,"
    "shortcutDetails(targetId,targetMimeType)"
)

LIST_FIELDS: str = f"nextPageToken,files({FILE_FIELDS})"

PAGE_SIZE: int = 1000
