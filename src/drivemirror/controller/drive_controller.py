"""Google Drive API controller: the remote store client of the mirror."""

from __future__ import annotations

import io
import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence, TypeVar

from drivemirror.auth import AuthInfo, CredentialsClient
from drivemirror.errors import (
    ApiError,
    AuthError,
    HttpErrorInfo,
    InvalidArgumentError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    map_http_error,
)
from drivemirror.models import DriveItem, DrivePage
from drivemirror.util.mime import FOLDER_MIME
from drivemirror.util.time import parse_rfc3339, to_query_time

from .fields import FILE_FIELDS, LIST_FIELDS, PAGE_SIZE

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RetryPolicy:
    max_retries: int = 3
    initial_delay_sec: float = 1.0


class GoogleDriveController:
    """
    Drive API controller.

    Notes:
        - The Drive `service` object is NOT exposed.
        - `supports_all_drives` is applied to all requests consistently.
        - Requests are serialized on an internal lock; the underlying HTTP
          transport is not thread-safe.
    """

    DEFAULT_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/drive",)

    def __init__(
        self,
        auth_info: AuthInfo,
        *,
        scopes: Optional[Sequence[str]] = None,
        supports_all_drives: bool = True,
        root_folder_id: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        share_uploads: bool = True,
    ) -> None:
        self._supports_all_drives = supports_all_drives
        self._root_folder_id = root_folder_id
        self._share_uploads = share_uploads
        self._retry_policy = _RetryPolicy()
        self._lock = threading.RLock()

        use_scopes = list(scopes) if scopes is not None else list(self.DEFAULT_SCOPES)
        client = CredentialsClient(auth_info)
        self._service = client.build_drive_service(
            use_scopes,
            timeout_sec=timeout_sec,
            ensure_valid=True,
        )

    @classmethod
    def from_service(
        cls,
        service: Any,
        *,
        supports_all_drives: bool = True,
        root_folder_id: Optional[str] = None,
        share_uploads: bool = True,
    ) -> "GoogleDriveController":
        """Create controller from a pre-built Drive service (useful for tests)."""
        obj = cls.__new__(cls)
        obj._supports_all_drives = supports_all_drives
        obj._root_folder_id = root_folder_id
        obj._share_uploads = share_uploads
        obj._retry_policy = _RetryPolicy()
        obj._lock = threading.RLock()
        obj._service = service
        return obj

    # ----------------------------
    # Read API
    # ----------------------------
    def get(self, item_id: str) -> DriveItem:
        req = self._service.files().get(
            fileId=item_id,
            fields=FILE_FIELDS,
            **self._common_get_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_drive_item(data)

    def get_root_folder(self) -> DriveItem:
        """
        Return the folder the mirror treats as its root.

        Uses the configured root id when set; otherwise the first folder
        without parents, which is how a service account's drive appears.
        """
        if self._root_folder_id:
            return self.get(self._root_folder_id)

        folders = self._list_all(f"mimeType = '{FOLDER_MIME}' and trashed=false")
        for folder in folders:
            if not folder.parents:
                return folder
        raise NotFoundError("Root folder not found")

    def list_children_page(
        self,
        parent_id: str,
        page_token: Optional[str] = None,
    ) -> DrivePage:
        return self._list_page(_build_parent_query(parent_id), page_token)

    def list_modified_since(self, since: datetime) -> list[DriveItem]:
        """Return all non-trashed items modified after `since`, across drives."""
        return self._list_all(_build_modified_query(since))

    # ----------------------------
    # Write API
    # ----------------------------
    def create_folder(
        self,
        name: str,
        parent_id: str,
        *,
        description: Optional[str] = None,
    ) -> DriveItem:
        body: dict[str, Any] = {
            "name": name,
            "mimeType": FOLDER_MIME,
            "parents": [parent_id],
        }
        if description is not None:
            body["description"] = description
        req = self._service.files().create(
            body=body,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_drive_item(data)

    def upload_bytes(
        self,
        data: bytes,
        name: str,
        mime_type: str,
        parent_id: str,
        *,
        description: Optional[str] = None,
    ) -> DriveItem:
        if not name:
            raise InvalidArgumentError("name must be a non-empty string")

        try:
            from googleapiclient.http import MediaIoBaseUpload
        except Exception as exc:  # pragma: no cover
            raise AuthError(
                "google-api-python-client is not available",
                cause=exc,
            ) from exc

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=True)
        body: dict[str, Any] = {
            "name": name,
            "mimeType": mime_type,
            "parents": [parent_id],
        }
        if description is not None:
            body["description"] = description

        req = self._service.files().create(
            body=body,
            media_body=media,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        created = _file_dict_to_drive_item(self._execute(req.execute))

        if self._share_uploads:
            perm = self._service.permissions().create(
                fileId=created.item_id,
                body={"role": "reader", "type": "anyone"},
                **self._common_write_kwargs(),
            )
            self._execute(perm.execute)
        return created

    def rename(self, item_id: str, new_name: str) -> DriveItem:
        req = self._service.files().update(
            fileId=item_id,
            body={"name": new_name},
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_drive_item(data)

    def move(self, item_id: str, new_parent_id: str) -> DriveItem:
        """Replace all current parents with new_parent_id."""
        current = self._service.files().get(
            fileId=item_id,
            fields="parents",
            **self._common_get_kwargs(),
        )
        current_data = self._execute(current.execute)
        old_parents = current_data.get("parents", []) or []
        remove_parents = ",".join(old_parents) if old_parents else ""

        req = self._service.files().update(
            fileId=item_id,
            addParents=new_parent_id,
            removeParents=remove_parents or None,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_drive_item(data)

    def delete(self, item_id: str) -> None:
        req = self._service.files().delete(
            fileId=item_id,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)

    # ----------------------------
    # Internals
    # ----------------------------
    def _common_get_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _list_page(self, q: str, page_token: Optional[str]) -> DrivePage:
        req = self._service.files().list(
            q=q,
            fields=LIST_FIELDS,
            pageSize=PAGE_SIZE,
            pageToken=page_token,
            **self._common_list_kwargs(),
        )
        data = self._execute(req.execute)
        items = [_file_dict_to_drive_item(f) for f in data.get("files", []) or []]
        return DrivePage(items=items, next_page_token=data.get("nextPageToken") or None)

    def _list_all(self, q: str) -> list[DriveItem]:
        all_items: list[DriveItem] = []
        page_token: Optional[str] = None

        while True:
            page = self._list_page(q, page_token)
            all_items.extend(page.items)
            page_token = page.next_page_token
            if not page_token:
                break

        return all_items

    def _execute(self, func: Callable[[], T]) -> T:
        delay = self._retry_policy.initial_delay_sec
        with self._lock:
            for attempt in range(self._retry_policy.max_retries + 1):
                try:
                    return func()
                except Exception as exc:
                    mapped = self._map_exception(exc)
                    if self._should_retry(mapped) and attempt < self._retry_policy.max_retries:
                        logger.warning(
                            "Drive request failed (%s), retrying in %.1fs",
                            mapped.__class__.__name__,
                            delay,
                        )
                        time.sleep(delay)
                        delay *= 2
                        continue
                    raise mapped from exc

        raise ApiError("Unexpected retry loop termination")

    def _should_retry(self, exc: Exception) -> bool:
        if isinstance(exc, RateLimitError):
            return True
        if isinstance(exc, NetworkError):
            return True
        if isinstance(exc, ApiError):
            status_code = getattr(exc, "details", {}).get("status_code")
            return isinstance(status_code, int) and 500 <= status_code <= 599
        return False

    def _map_exception(self, exc: Exception) -> Exception:
        try:
            from googleapiclient.errors import HttpError
        except Exception:  # pragma: no cover
            HttpError = None  # type: ignore[assignment]

        if HttpError is not None and isinstance(exc, HttpError):
            info = _http_error_to_info(exc)
            return map_http_error(info, cause=exc)

        if isinstance(exc, (OSError, TimeoutError)):
            return NetworkError("Network error", cause=exc)

        return ApiError("Drive API error", cause=exc)


def _build_parent_query(parent_id: str) -> str:
    return f"'{parent_id}' in parents and trashed=false"


def _build_modified_query(since: datetime) -> str:
    return f"modifiedTime > '{to_query_time(since)}' and trashed=false"


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _opt_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return parse_rfc3339(value)
    except ValueError:
        return None


def _file_dict_to_drive_item(data: dict[str, Any]) -> DriveItem:
    item_id = data.get("id")
    name = data.get("name", "")
    mime_type = data.get("mimeType", "")
    parents = data.get("parents", []) or []

    size = None
    if isinstance(data.get("size"), str) and data["size"].isdigit():
        size = int(data["size"])
    elif isinstance(data.get("size"), int):
        size = data["size"]

    shortcut = data.get("shortcutDetails") or {}
    if not isinstance(shortcut, dict):
        shortcut = {}

    return DriveItem(
        item_id=item_id if isinstance(item_id, str) else "",
        name=name if isinstance(name, str) else "",
        mime_type=mime_type if isinstance(mime_type, str) else "",
        parents=list(parents) if isinstance(parents, list) else [],
        trashed=bool(data.get("trashed", False)),
        description=_opt_str(data.get("description")),
        modified_time=_opt_time(data.get("modifiedTime")),
        created_time=_opt_time(data.get("createdTime")),
        size=size,
        original_filename=_opt_str(data.get("originalFilename")),
        file_extension=_opt_str(data.get("fileExtension")),
        web_view_link=_opt_str(data.get("webViewLink")),
        web_content_link=_opt_str(data.get("webContentLink")),
        thumbnail_link=_opt_str(data.get("thumbnailLink")),
        icon_link=_opt_str(data.get("iconLink")),
        shortcut_target_id=_opt_str(shortcut.get("targetId")),
        shortcut_target_mime_type=_opt_str(shortcut.get("targetMimeType")),
    )


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    status_code = getattr(getattr(exc, "resp", None), "status", None)
    reason = getattr(getattr(exc, "resp", None), "reason", None)

    message = None
    details: dict[str, Any] = {}

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            payload = {}
        err = payload.get("error", {}) if isinstance(payload, dict) else {}
        if isinstance(err, dict):
            message = err.get("message") or None
            errors = err.get("errors") or []
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                details["domain"] = errors[0].get("domain")
                details["reason_detail"] = errors[0].get("reason")
                if isinstance(errors[0].get("reason"), str):
                    reason = errors[0]["reason"]

    if not isinstance(status_code, int):
        try:
            status_code = int(status_code)
        except (TypeError, ValueError):
            status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message,
        details=details or None,
    )
