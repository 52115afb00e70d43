"""
Datetime utility functions for handling timezone-aware datetimes.
"""
from datetime import datetime, timezone
from typing import Callable, Optional

# A clock is any zero-argument callable returning an aware UTC datetime.
# Engines receive one at construction so scheduling checks never read the
# wall clock directly.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    This is the default clock for the engines. Tests pass their own clock
    instead of patching this function.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from app.core.datetime_utils import utc_now
        >>> current_time = utc_now()
        >>> current_time.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, floored and never negative."""
    delta = ensure_timezone_aware(end) - ensure_timezone_aware(start)
    return max(0, int(delta.total_seconds()))
