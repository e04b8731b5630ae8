"""
Exception resolution for slot generation.

Decides whether availability exceptions block a rule on a given date. The
generation job builds one resolver per rule, loading the relevant exceptions
once for the whole date range, then asks it about each candidate date.
"""

import logging
from datetime import date, datetime
from typing import List, Sequence

from sqlalchemy.orm import Session

from models import AvailabilityException, AvailabilityRule
from utils.availability_queries import get_exceptions_affecting_rule
from utils.datetime_utils import day_window

logger = logging.getLogger(__name__)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """
    Inclusive overlap test for two closed intervals.

    Covers an interval starting inside the other, ending inside it, or
    spanning it entirely. Touching endpoints count as overlapping.
    """
    return start_a <= end_b and end_a >= start_b


def exception_blocks_date(
    exception: AvailabilityException, rule: AvailabilityRule, candidate: date
) -> bool:
    """
    Check whether a single exception blocks a rule on a candidate date.

    An exception blocks when it references the rule itself, or when it belongs
    to the rule's facility/doctor pair and overlaps the candidate's full day
    [00:00:00, 23:59:59]. The exception type does not matter.
    """
    if exception.availability_rule_id is not None and exception.availability_rule_id == rule.id:
        return True

    if exception.facility_id != rule.facility_id or exception.doctor_id != rule.doctor_id:
        return False

    day_start, day_end = day_window(candidate)
    return intervals_overlap(exception.start_at, exception.end_at, day_start, day_end)


def is_date_blocked(db: Session, rule: AvailabilityRule, candidate: date) -> bool:
    """
    Query whether any exception blocks a rule on one date.

    Convenience for single-date checks (e.g. previewing a day in the
    calendar); the generation job uses ExceptionResolver to avoid one query
    per date.
    """
    day_start, day_end = day_window(candidate)
    exceptions = get_exceptions_affecting_rule(db, rule, day_start, day_end)
    return any(exception_blocks_date(exc, rule, candidate) for exc in exceptions)


class ExceptionResolver:
    """
    Answers "is this rule blocked on this date?" for one rule.

    Holds the exceptions that can affect the rule in memory, so checking each
    expanded date does not hit the database again. Read-only.
    """

    def __init__(self, rule: AvailabilityRule, exceptions: Sequence[AvailabilityException]):
        self.rule = rule
        self.exceptions: List[AvailabilityException] = list(exceptions)

    @classmethod
    def for_rule(
        cls, db: Session, rule: AvailabilityRule, range_start: date, range_end: date
    ) -> "ExceptionResolver":
        """
        Build a resolver with every exception that may block the rule in a date range.

        Args:
            db: Database session
            rule: Rule being expanded
            range_start: First candidate date
            range_end: Last candidate date (inclusive)
        """
        window_start, _ = day_window(range_start)
        _, window_end = day_window(range_end)
        exceptions = get_exceptions_affecting_rule(db, rule, window_start, window_end)
        if exceptions:
            logger.debug(f"Rule {rule.id}: {len(exceptions)} exception(s) may block generation")
        return cls(rule, exceptions)

    def is_blocked(self, candidate: date) -> bool:
        """Whether any loaded exception blocks the rule on the candidate date."""
        return any(exception_blocks_date(exc, self.rule, candidate) for exc in self.exceptions)

    def unblocked_dates(self, candidates: Sequence[date]) -> List[date]:
        """Filter candidate dates down to the ones no exception blocks."""
        return [d for d in candidates if not self.is_blocked(d)]
