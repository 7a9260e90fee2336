"""Time helpers for UTC storage and day-based arithmetic."""

from __future__ import annotations

from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    """Return fractional days from start to end, floored at zero."""
    delta = to_utc(end) - to_utc(start)
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)
