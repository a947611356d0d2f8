from __future__ import annotations

from datetime import datetime, timezone

# Watermark of a folder that has never been quick-synced.
EPOCH: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)

_QUERY_FORMAT = "%Y-%m-%dT%H:%M:%S"


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse a Drive timestamp (RFC3339) into a tz-aware UTC datetime.

    Drive sends `2025-01-01T12:34:56.789Z`; offsets such as `+09:00` are
    accepted as well.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("RFC3339 value must be a non-empty string")

    s = value.strip()
    # fromisoformat only learned the 'Z' suffix in 3.11.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return normalize_dt(datetime.fromisoformat(s)).astimezone(timezone.utc)


def to_query_time(dt: datetime) -> str:
    """
    Format a watermark for a Drive `modifiedTime` query.

    Drive compares in UTC at second precision; fractions are dropped.
    """
    return normalize_dt(dt).astimezone(timezone.utc).strftime(_QUERY_FORMAT)


def normalize_dt(dt: datetime) -> datetime:
    """Ensure datetime is tz-aware. Raises if naive."""
    if not isinstance(dt, datetime):
        raise TypeError("dt must be a datetime")
    if dt.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return dt


def as_utc(dt: datetime) -> datetime:
    """Interpret naive datetimes as UTC (database round-trips drop tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
