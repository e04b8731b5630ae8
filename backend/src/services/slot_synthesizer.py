"""
Slot synthesis: one rule on one date becomes a list of draft slots.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List

from models import AvailabilityRule
from shared_types.availability import SlotDraft

logger = logging.getLogger(__name__)


def synthesize_slots(rule: AvailabilityRule, slot_date: date) -> List[SlotDraft]:
    """
    Produce the draft slots a rule yields on a date.

    The first slot starts at rule.start_time on slot_date. Each slot lasts
    slot_duration_minutes; the next one starts slot_interval_minutes later
    (defaulting to the duration). A slot is emitted only if it ends at or
    before rule.end_time, so a window shorter than one slot yields nothing.
    An interval shorter than the duration produces overlapping slots.

    Rules with a non-positive duration or interval yield no slots instead of
    raising, so one misconfigured rule cannot stop a generation run.

    Args:
        rule: Availability rule to expand
        slot_date: Date the rule fires on

    Returns:
        Draft slots ordered by start time
    """
    duration_minutes = rule.slot_duration_minutes or 0
    interval_minutes = rule.effective_interval_minutes or 0
    if duration_minutes <= 0 or interval_minutes <= 0:
        logger.warning(
            f"Rule {rule.id} has non-positive slot sizing "
            f"(duration={rule.slot_duration_minutes}, interval={rule.slot_interval_minutes}); skipping"
        )
        return []

    duration = timedelta(minutes=duration_minutes)
    interval = timedelta(minutes=interval_minutes)
    window_end = datetime.combine(slot_date, rule.end_time.replace(second=0, microsecond=0))
    slot_start = datetime.combine(slot_date, rule.start_time.replace(second=0, microsecond=0))

    drafts: List[SlotDraft] = []
    while slot_start + duration <= window_end:
        drafts.append(SlotDraft(
            facility_id=rule.facility_id,
            doctor_id=rule.doctor_id,
            service_offering_id=rule.service_offering_id,
            start_at=slot_start,
            end_at=slot_start + duration,
            created_from_rule_id=rule.id,
        ))
        slot_start += interval

    return drafts
