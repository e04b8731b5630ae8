"""
Utility functions for availability rule, exception and slot queries.

These are the read paths of the three availability stores. Keeping them here
means the generation job, the booking flow and the API all apply the same
filters (e.g. what counts as an "active" rule, or an overlapping exception).
"""

from datetime import datetime
from typing import List, Optional, Set, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from models import AvailabilityException, AvailabilityRule, AvailabilitySlot


def is_active_rule(rule: AvailabilityRule) -> bool:
    """Whether a rule should be expanded into slots."""
    return bool(rule.active)


def filter_active_rules(query: Query[AvailabilityRule]) -> Query[AvailabilityRule]:
    """Apply the active-rule predicate to a rule query."""
    return query.filter(AvailabilityRule.active.is_(True))


def get_active_rules(
    db: Session,
    facility_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
) -> List[AvailabilityRule]:
    """
    Load active availability rules, optionally filtered by facility and doctor.

    Args:
        db: Database session
        facility_id: Only rules at this facility (None = all facilities)
        doctor_id: Only rules for this doctor (None = all doctors)

    Returns:
        Active rules ordered by id
    """
    query = filter_active_rules(db.query(AvailabilityRule))
    if facility_id is not None:
        query = query.filter(AvailabilityRule.facility_id == facility_id)
    if doctor_id is not None:
        query = query.filter(AvailabilityRule.doctor_id == doctor_id)
    return query.order_by(AvailabilityRule.id).all()


def overlaps_window(window_start: datetime, window_end: datetime):
    """
    SQL predicate: exception interval intersects [window_start, window_end].

    Both ends are inclusive, so an exception ending exactly at window_start
    (or starting exactly at window_end) still counts as overlapping.
    """
    return and_(
        AvailabilityException.start_at <= window_end,
        AvailabilityException.end_at >= window_start,
    )


def get_exceptions_affecting_rule(
    db: Session,
    rule: AvailabilityRule,
    window_start: datetime,
    window_end: datetime,
) -> List[AvailabilityException]:
    """
    Load every exception that can block the rule inside a window.

    That is exceptions referencing the rule itself (regardless of their own
    dates) plus exceptions for the rule's facility/doctor pair that overlap
    the window.

    Args:
        db: Database session
        rule: Rule being expanded
        window_start: Start of the generation window
        window_end: End of the generation window (inclusive)

    Returns:
        Matching exceptions ordered by start_at
    """
    return db.query(AvailabilityException).filter(
        or_(
            AvailabilityException.availability_rule_id == rule.id,
            and_(
                AvailabilityException.facility_id == rule.facility_id,
                AvailabilityException.doctor_id == rule.doctor_id,
                overlaps_window(window_start, window_end),
            ),
        )
    ).order_by(AvailabilityException.start_at).all()


def get_existing_slot_windows(
    db: Session,
    facility_id: int,
    doctor_id: int,
    range_start: datetime,
    range_end: datetime,
) -> Set[Tuple[datetime, datetime]]:
    """
    Collect (start_at, end_at) keys of persisted slots for a facility/doctor pair.

    Only slots whose start_at falls within [range_start, range_end] are
    considered, which covers every draft produced for the same range.

    Returns:
        Set of (start_at, end_at) tuples
    """
    rows = db.query(AvailabilitySlot.start_at, AvailabilitySlot.end_at).filter(
        AvailabilitySlot.facility_id == facility_id,
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.start_at >= range_start,
        AvailabilitySlot.start_at <= range_end,
    ).all()
    return {(start_at, end_at) for start_at, end_at in rows}


def find_slot_by_window(
    db: Session,
    facility_id: int,
    doctor_id: int,
    start_at: datetime,
    end_at: datetime,
) -> Optional[AvailabilitySlot]:
    """Find the slot holding a (facility, doctor, start, end) key, if any."""
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.facility_id == facility_id,
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.start_at == start_at,
        AvailabilitySlot.end_at == end_at,
    ).first()
