"""
Slot generation service.

Expands active availability rules into bookable slots for a date range:

    rule -> weekday dates -> drop dates blocked by exceptions
         -> synthesize slots per date -> dedupe against stored slots -> insert

Runs from the daily scheduler, the operator script, and the on-demand API
endpoint. Each rule is committed on its own so one failing rule never
prevents the others from getting slots.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from models import AvailabilityRule
from services.date_expansion import expand_weekday_dates
from services.exception_resolver import ExceptionResolver
from services.slot_synthesizer import synthesize_slots
from services.slot_writer import SlotBatchWriter
from shared_types.availability import GenerationSummary, SlotDraft
from utils.availability_queries import get_active_rules

logger = logging.getLogger(__name__)


class SlotGenerationService:
    """Generates availability slots from active rules."""

    def __init__(self, db: Session, writer: Optional[SlotBatchWriter] = None):
        self.db = db
        self.writer = writer or SlotBatchWriter(db)

    def run(
        self,
        start_date: date,
        end_date: date,
        facility_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
    ) -> GenerationSummary:
        """
        Generate slots for every active rule in [start_date, end_date].

        Args:
            start_date: First date to generate (inclusive)
            end_date: Last date to generate (inclusive)
            facility_id: Only rules at this facility (None = all facilities)
            doctor_id: Only rules for this doctor (None = all doctors)

        Returns:
            GenerationSummary with rules processed, slots created and failed rule ids
        """
        facility_info = f"facility {facility_id}" if facility_id else "all facilities"
        doctor_info = f"doctor {doctor_id}" if doctor_id else "all doctors"
        logger.info(
            f"Generating slots for {facility_info}, {doctor_info} "
            f"from {start_date.isoformat()} to {end_date.isoformat()}"
        )

        rules = get_active_rules(self.db, facility_id=facility_id, doctor_id=doctor_id)
        summary = GenerationSummary(rules_processed=len(rules))

        for rule in rules:
            # Read before any rollback can expire the instance
            rule_id, rule_facility_id, rule_doctor_id = rule.id, rule.facility_id, rule.doctor_id
            try:
                created = self.generate_for_rule(rule, start_date, end_date)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                summary.failed_rule_ids.append(rule_id)
                logger.exception(f"Slot generation failed for rule ID {rule_id}: {e}")
                continue

            summary.total_slots_created += created
            logger.info(
                f"Created {created} slots for rule ID {rule_id} "
                f"(facility {rule_facility_id}, doctor {rule_doctor_id})"
            )

        logger.info(
            f"Slot generation completed. Total slots created: {summary.total_slots_created}, "
            f"rules processed: {summary.rules_processed}, rules failed: {summary.rules_failed}"
        )
        return summary

    def generate_for_rule(self, rule: AvailabilityRule, start_date: date, end_date: date) -> int:
        """
        Generate and write the slots of one rule. Does not commit.

        All drafts of the rule go to the writer in one call so duplicates are
        checked across the whole range with a single query.

        Returns:
            Number of slots inserted for the rule
        """
        drafts = self.build_drafts(rule, start_date, end_date)
        return self.writer.write(drafts)

    def build_drafts(self, rule: AvailabilityRule, start_date: date, end_date: date) -> List[SlotDraft]:
        """Collect the draft slots of one rule over a date range, skipping blocked dates."""
        candidate_dates = expand_weekday_dates(rule.day_of_week, start_date, end_date)
        if not candidate_dates:
            return []

        resolver = ExceptionResolver.for_rule(self.db, rule, candidate_dates[0], candidate_dates[-1])

        drafts: List[SlotDraft] = []
        for slot_date in candidate_dates:
            if resolver.is_blocked(slot_date):
                logger.debug(f"Rule {rule.id}: {slot_date.isoformat()} blocked by an exception")
                continue
            drafts.extend(synthesize_slots(rule, slot_date))
        return drafts
