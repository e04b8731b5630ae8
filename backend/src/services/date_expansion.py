"""
Date expansion for weekly availability rules.

Turns a rule's day_of_week into the concrete calendar dates it fires on
within a date range.
"""

from datetime import date, timedelta
from typing import List

from utils.datetime_utils import sunday_first_weekday

ONE_WEEK = timedelta(days=7)


def expand_weekday_dates(day_of_week: int, range_start: date, range_end: date) -> List[date]:
    """
    Get every date in [range_start, range_end] that falls on day_of_week.

    day_of_week uses the Sunday-first convention (0=Sunday ... 6=Saturday).
    Walks forward from range_start to the first matching weekday, then steps a
    week at a time. Both ends of the range are inclusive.

    Example:
        expand_weekday_dates(1, date(2025, 1, 1), date(2025, 1, 31))
        -> [2025-01-06, 2025-01-13, 2025-01-20, 2025-01-27]

    Args:
        day_of_week: Target weekday (0=Sunday, 6=Saturday)
        range_start: First date of the range
        range_end: Last date of the range

    Returns:
        Matching dates in ascending order; empty if none fall in the range
    """
    if range_end < range_start:
        return []

    offset = (day_of_week - sunday_first_weekday(range_start)) % 7
    current = range_start + timedelta(days=offset)

    dates: List[date] = []
    while current <= range_end:
        dates.append(current)
        current += ONE_WEEK
    return dates
