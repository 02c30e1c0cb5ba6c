from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso_z(dt: datetime | None = None) -> str:
    dt = dt or utcnow()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def history_date(value: date | datetime | str) -> str:
    """
    Format a date the way the /coins/{id}/history endpoint expects (DD-MM-YYYY).
    Strings are passed through untouched.
    """
    if isinstance(value, str):
        return value
    return f"{value.day:02d}-{value.month:02d}-{value.year:04d}"
