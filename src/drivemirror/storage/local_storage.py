"""Local byte copies of uploaded files."""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from drivemirror.errors import LocalStorageError, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\- ]+")


@dataclass(frozen=True, slots=True)
class StoredBytes:
    path: str
    filename: str


class LocalByteStorage:
    """
    Append-only directory of uploaded bytes.

    Filenames are `<epoch millis>-<original name>`, so concurrent uploads do
    not collide and no locking is needed.
    """

    def __init__(
        self,
        upload_dir: Union[str, os.PathLike[str]],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self._clock = clock

    def save(self, data: bytes, original_name: str) -> StoredBytes:
        filename = f"{int(self._clock() * 1000)}-{safe_filename(original_name)}"
        path = self.upload_dir / filename
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            # "x" refuses to overwrite an existing copy.
            with open(path, "xb") as fh:
                fh.write(data)
        except OSError as e:
            raise LocalStorageError(
                "Failed to write local copy",
                details={"path": str(path)},
                cause=e,
            ) from e
        logger.debug("Stored %d bytes at %s", len(data), path)
        return StoredBytes(path=str(path), filename=filename)

    def delete(self, path: Union[str, os.PathLike[str], None]) -> bool:
        """Remove a stored copy. Returns False if it was already gone."""
        if not path:
            return False
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise LocalStorageError(
                "Failed to remove local copy",
                details={"path": str(path)},
                cause=e,
            ) from e
        return True


def safe_filename(name: str) -> str:
    """Strip directory components and characters unsafe in a filename."""
    base = os.path.basename(name.replace("\\", "/")).strip()
    cleaned = _UNSAFE_CHARS.sub("_", base).strip(". ")
    if not cleaned:
        raise ValidationError("Filename is required", details={"name": name})
    return cleaned
