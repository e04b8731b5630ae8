"""
Unit tests for facility clock helpers.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from utils.datetime_utils import (
    FACILITY_TZ, day_window, facility_now, parse_date_string, sunday_first_weekday, to_wall_clock,
    wall_clock_now,
)


class TestSundayFirstWeekday:
    """Test the rule weekday convention."""

    @pytest.mark.parametrize("d,expected", [
        (date(2025, 1, 5), 0),   # Sunday
        (date(2025, 1, 6), 1),   # Monday
        (date(2025, 1, 10), 5),  # Friday
        (date(2025, 1, 11), 6),  # Saturday
    ])
    def test_weekdays(self, d, expected):
        """Test Sunday maps to 0 and Saturday to 6."""
        assert sunday_first_weekday(d) == expected


class TestWallClock:
    """Test conversion to naive facility time."""

    def test_naive_passes_through(self):
        """Test that naive values are treated as facility time already."""
        dt = datetime(2025, 7, 1, 9, 0)
        assert to_wall_clock(dt) is dt

    def test_none_passes_through(self):
        assert to_wall_clock(None) is None

    def test_aware_converted_across_dst(self):
        """Test that winter and summer offsets are both applied."""
        utc = ZoneInfo("UTC")
        assert to_wall_clock(datetime(2025, 1, 6, 15, 0, tzinfo=utc)) == datetime(2025, 1, 6, 9, 0)
        assert to_wall_clock(datetime(2025, 7, 1, 14, 0, tzinfo=utc)) == datetime(2025, 7, 1, 9, 0)

    def test_now_helpers(self):
        """Test that facility_now is aware and wall_clock_now is naive."""
        assert facility_now().tzinfo == FACILITY_TZ
        assert wall_clock_now().tzinfo is None


class TestDayWindow:
    """Test inclusive day windows."""

    def test_day_window(self):
        start, end = day_window(date(2025, 2, 1))
        assert start == datetime(2025, 2, 1, 0, 0, 0)
        assert end == datetime.combine(date(2025, 2, 1), time(23, 59, 59))


class TestParseDateString:
    """Test date string parsing used by the operator scripts."""

    @pytest.mark.parametrize("raw", ["2025-01-06", "2025/01/06", "2025-1-6", " 2025/1/6 "])
    def test_accepted_formats(self, raw):
        assert parse_date_string(raw) == date(2025, 1, 6)

    @pytest.mark.parametrize("raw", ["", "   ", "20250106", "2025-01", "2025-13-01", "2025-02-30"])
    def test_rejected_formats(self, raw):
        with pytest.raises(ValueError):
            parse_date_string(raw)
