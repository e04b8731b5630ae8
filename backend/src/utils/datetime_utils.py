"""
Datetime utilities for consistent timezone handling across the application.

Every facility runs on one wall clock (FACILITY_TIMEZONE). Slot and exception
timestamps are stored naive and represent that wall clock; audit timestamps
(created_at/updated_at) are timezone-aware.
"""

import logging
from datetime import date, datetime, time
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import FACILITY_TIMEZONE

logger = logging.getLogger(__name__)

FACILITY_TZ = ZoneInfo(FACILITY_TIMEZONE)

# Last second of a calendar day, used for inclusive day windows
END_OF_DAY = time(23, 59, 59)


def facility_now() -> datetime:
    """
    Get the current timezone-aware datetime on the facility clock.

    Returns:
        Current datetime with FACILITY_TZ attached
    """
    return datetime.now(FACILITY_TZ)


def facility_today() -> date:
    """Get today's date on the facility clock."""
    return facility_now().date()


def to_wall_clock(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a datetime to a naive facility wall-clock datetime.

    Naive inputs are assumed to already be facility wall-clock time and are
    returned unchanged. Aware inputs are converted to FACILITY_TZ and stripped.

    Args:
        dt: Datetime to normalise

    Returns:
        Naive datetime on the facility clock, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(FACILITY_TZ).replace(tzinfo=None)


def wall_clock_now() -> datetime:
    """Current naive facility wall-clock time, comparable with stored slot timestamps."""
    return facility_now().replace(tzinfo=None)


def sunday_first_weekday(d: date) -> int:
    """
    Day of week with Sunday first: 0=Sunday, 1=Monday, ..., 6=Saturday.

    Availability rules store day_of_week in this convention. Python's
    date.weekday() is Monday-first (0=Monday), so it is rotated by one.
    """
    return (d.weekday() + 1) % 7


def day_window(d: date) -> Tuple[datetime, datetime]:
    """
    Inclusive window covering a whole calendar day: [00:00:00, 23:59:59].

    Args:
        d: Calendar date

    Returns:
        Tuple of (start of day, last second of day) as naive datetimes
    """
    return datetime.combine(d, time.min), datetime.combine(d, END_OF_DAY)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Single-digit months/days are accepted ("2025-1-6").

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e
