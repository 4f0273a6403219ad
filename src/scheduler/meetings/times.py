"""Wall-clock time helpers.

Meeting times are opaque client strings. They only take part in window
filtering when they parse as ISO-8601; values without an offset are read as
UTC. Parsed times are stored as naive UTC datetimes, the form BSON dates
round-trip as.
"""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil.parser import isoparse


def parse_time(value: str) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime, or None if it does not parse."""
    try:
        parsed = isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_storage_time(value: datetime) -> datetime:
    """Convert an aware datetime to the naive-UTC form used in storage."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def window_is_ordered(start_time: str, end_time: str) -> bool:
    """False only when both times parse and start is after end."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    if start is None or end is None:
        return True
    return start <= end


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
