"""
Time handling for schedules.

Every stored `time` is a UTC instant serialized as ISO-8601 with millisecond
precision and a trailing "Z". All due/not-due comparisons go through
`to_comparable()` against `now()`, both aware UTC datetimes. The fixed-offset
rendering from `to_display()` is for humans only.
"""
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from push_scheduler.errors import InvalidTimeFormat

IST_OFFSET_MINUTES = 330


def now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(s: str) -> datetime:
    # expects ISO like 2026-01-20T12:34:56Z or with +00:00
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def _parse_string(s: str) -> datetime:
    s = s.strip()
    if not s:
        raise ValueError("empty time string")
    try:
        return _parse_iso(s)
    except ValueError:
        pass
    # "Mon, 01 Jan 2024 00:00:00 GMT"
    try:
        return parsedate_to_datetime(s)
    except (TypeError, ValueError, IndexError):
        raise ValueError(f"unrecognised time string {s!r}")


def _to_utc(value: Any) -> datetime:
    if isinstance(value, bool):
        raise ValueError("boolean is not a time value")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        dt = _parse_string(value)
    else:
        raise ValueError(f"unsupported time type {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_canonical(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize(value: Any) -> str:
    """
    Convert an input time (ISO-8601 / RFC 2822 string, epoch milliseconds or
    datetime) to the canonical stored form, e.g. "2023-12-31T18:30:00.000Z".
    Naive values are taken as UTC. Raises InvalidTimeFormat.
    """
    try:
        dt = _to_utc(value)
    except (ValueError, OverflowError, OSError) as e:
        raise InvalidTimeFormat(value) from e
    return format_canonical(dt)


def to_comparable(canonical: str) -> datetime:
    """Aware UTC datetime for a stored canonical time."""
    try:
        dt = _parse_iso(canonical)
    except (TypeError, ValueError) as e:
        raise InvalidTimeFormat(canonical) from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_display(instant: datetime, offset_minutes: int = IST_OFFSET_MINUTES) -> str:
    """Render an instant in a fixed offset, e.g. 2024-01-01T05:30:00.000+05:30."""
    tz = timezone(timedelta(minutes=offset_minutes))
    return instant.astimezone(tz).isoformat(timespec="milliseconds")
