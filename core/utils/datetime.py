"""Datetime utilities for common operations."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values for timezone-aware columns; everything the
    application writes is UTC, so the naive value is read as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def window_start(window: timedelta, reference: Optional[datetime] = None) -> datetime:
    """
    Get the start of a trailing window ending at ``reference``.

    Args:
        window: Length of the window
        reference: End of the window (defaults to now)

    Returns:
        Datetime at ``reference - window``
    """
    return (reference or now()) - window


def days_ago(days: int, reference: Optional[datetime] = None) -> datetime:
    """Get the datetime ``days`` days before ``reference``."""
    return window_start(timedelta(days=days), reference)


def iso_day(dt: datetime) -> str:
    """Format a datetime as its UTC calendar day (YYYY-MM-DD)."""
    return ensure_utc(dt).date().isoformat()
