"""Per-request principal, read by DriveMirror through its principal provider."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from drivemirror.manager import Principal

PRINCIPAL_HEADER = "X-User-Id"

_current: ContextVar[Optional[Principal]] = ContextVar("drivemirror_principal", default=None)


def request_principal() -> Optional[Principal]:
    return _current.get()


def principal_from_header(value: Optional[str]) -> Optional[Principal]:
    user_id = (value or "").strip()
    return Principal(id=user_id) if user_id else None


@contextmanager
def acting_as(principal: Optional[Principal]) -> Iterator[None]:
    token = _current.set(principal)
    try:
        yield
    finally:
        _current.reset(token)
