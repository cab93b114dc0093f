"""Timestamp utilities for the host-local clock.

Schedules are expressed in host-local wall-clock time, so every timestamp the
scheduler stores or compares is a naive ``datetime`` in local time. Aware
datetimes coming from elsewhere are converted to local time and stripped of
their tzinfo before use.
"""

import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
BACKUP_SUFFIX_FORMAT = "%Y%m%d_%H%M%S"

_DIGITS = re.compile(r"[0-9]+")


def local_now() -> datetime:
    """Current host-local time, truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def ensure_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to naive host-local time.

    Naive datetimes are assumed to already be local and returned unchanged.

    Example:
        >>> from datetime import timezone
        >>> ensure_local(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)).tzinfo is None
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt

    return dt.astimezone().replace(tzinfo=None)


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse an "HH:MM" 24-hour string into (hour, minute).

    Raises:
        ValueError: If the string is not HH:MM or a component is out of range
    """
    parts = value.split(":") if isinstance(value, str) else []
    if len(parts) != 2:
        raise ValueError("time must be in HH:MM format")

    hour_str, minute_str = parts

    if not _DIGITS.fullmatch(hour_str):
        raise ValueError(f"invalid hour: {parts[0]!r}")
    if not _DIGITS.fullmatch(minute_str):
        raise ValueError(f"invalid minute: {parts[1]!r}")

    hour, minute = int(hour_str), int(minute_str)
    if not 0 <= hour <= 23:
        raise ValueError("hour must be between 00 and 23")
    if not 0 <= minute <= 59:
        raise ValueError("minute must be between 00 and 59")

    return hour, minute


def format_timestamp(dt: Optional[datetime], default: str = "Never") -> str:
    """Format a timestamp for display, e.g. ``2025-03-01 09:00:00``."""
    if dt is None:
        return default
    return ensure_local(dt).strftime(DISPLAY_FORMAT)


def format_duration(delta: timedelta) -> str:
    """Compact human-readable duration.

    Example:
        >>> format_duration(timedelta(hours=26, minutes=5))
        '1d 2h'
        >>> format_duration(timedelta(minutes=90))
        '1h 30m'
    """
    total_seconds = max(int(delta.total_seconds()), 0)

    if total_seconds < 60:
        return f"{total_seconds}s"
    if total_seconds < 3600:
        return f"{total_seconds // 60}m"
    if total_seconds < 86400:
        return f"{total_seconds // 3600}h {(total_seconds % 3600) // 60}m"
    return f"{total_seconds // 86400}d {(total_seconds % 86400) // 3600}h"


def backup_suffix(dt: datetime) -> str:
    """Filename-safe timestamp used for backup copies."""
    return dt.strftime(BACKUP_SUFFIX_FORMAT)
