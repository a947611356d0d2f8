from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Header, UploadFile
from fastapi.responses import JSONResponse

from drivemirror.errors import (
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
    user_message,
)
from drivemirror.manager import DriveMirror
from drivemirror.upload import UploadRequest

from .principal import acting_as, principal_from_header

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_mirror: Optional[DriveMirror] = None


def set_mirror(mirror: Optional[DriveMirror]) -> None:
    global _mirror
    _mirror = mirror


def get_mirror() -> DriveMirror:
    if _mirror is None:
        raise InvalidStateError("DriveMirror is not configured")
    return _mirror


def parse_tag_names(raw: Optional[str]) -> list[str]:
    """Decode a JSON array of tag names. Anything malformed becomes []."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        logger.info("Ignoring malformed tagNames: %r", raw)
        return []
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


@router.post("/upload")
def upload(
    file: Optional[UploadFile] = File(None),
    folderId: Optional[str] = Form(None),
    tagNames: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    x_user_id: Optional[str] = Header(None),
    mirror: DriveMirror = Depends(get_mirror),
) -> Any:
    if file is None:
        logger.error("No file provided in request")
        return _failure(400, "No file provided")

    folder_id: Optional[int] = None
    if folderId:
        try:
            folder_id = int(folderId)
        except ValueError:
            return _failure(400, "folderId must be an integer")

    data = file.file.read()
    logger.info(
        "Processing upload: name=%s size=%d type=%s folder=%s",
        file.filename,
        len(data),
        file.content_type,
        folder_id,
    )
    request = UploadRequest(
        data=data,
        filename=file.filename or "",
        mime_type=file.content_type,
        folder_id=folder_id,
        tag_names=parse_tag_names(tagNames),
        description=description or None,
    )

    try:
        with acting_as(principal_from_header(x_user_id)):
            result = mirror.upload_file(request)
    except NotAuthorizedError as e:
        return _failure(401, user_message(e))
    except ValidationError as e:
        return _failure(400, str(e))
    except NotFoundError as e:
        return _failure(404, str(e))
    except Exception as e:
        logger.exception("Upload failed")
        return _failure(500, user_message(e))

    return result.to_dict()


@router.post("/folder/{google_id}/sync")
def sync_folder(
    google_id: str,
    x_user_id: Optional[str] = Header(None),
    mirror: DriveMirror = Depends(get_mirror),
) -> Any:
    try:
        with acting_as(principal_from_header(x_user_id)):
            mirror.quick_sync(google_id)
    except NotAuthorizedError as e:
        return _failure(401, user_message(e))
    except NotFoundError:
        return _failure(404, "Folder not found")
    except Exception:
        logger.exception("Quick sync of folder %s failed", google_id)
        return _failure(500, "Failed to sync folder")

    return {"success": True}
