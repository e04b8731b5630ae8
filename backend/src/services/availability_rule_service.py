"""
Availability rule management.

Creates, updates and deactivates weekly availability rules. Validation lives
here so a bad window never reaches the generation job; rules are deactivated
rather than deleted so generated slots keep their back-reference.
"""

import logging
from datetime import time
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.sentinels import MISSING
from models import AvailabilityRule, Doctor, ServiceOffering
from utils.availability_queries import filter_active_rules, is_active_rule

logger = logging.getLogger(__name__)


class RuleValidationError(ValueError):
    """Raised when an availability rule's fields are inconsistent."""
    pass


class RuleNotFoundError(LookupError):
    """Raised when a rule does not exist at the given facility."""
    pass


class AvailabilityRuleService:
    """Service for availability rule operations."""

    @staticmethod
    def validate_rule_fields(
        day_of_week: int,
        start_time: time,
        end_time: time,
        slot_duration_minutes: int,
        slot_interval_minutes: Optional[int],
    ) -> None:
        """
        Validate the fields that drive slot generation.

        Raises:
            RuleValidationError: If any field is out of range
        """
        if not 0 <= day_of_week <= 6:
            raise RuleValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        if start_time >= end_time:
            raise RuleValidationError("start_time must be before end_time")
        if slot_duration_minutes <= 0:
            raise RuleValidationError("slot_duration_minutes must be positive")
        if slot_interval_minutes is not None and slot_interval_minutes <= 0:
            raise RuleValidationError("slot_interval_minutes must be positive when set")

    @staticmethod
    def validate_rule_references(
        db: Session,
        facility_id: int,
        doctor_id: int,
        service_offering_id: Optional[int],
    ) -> None:
        """
        Check that the doctor exists and that a service offering, when set,
        belongs to the same facility and doctor.

        Raises:
            RuleValidationError: If a referenced row is missing or mismatched
        """
        if db.query(Doctor.id).filter(Doctor.id == doctor_id).first() is None:
            raise RuleValidationError(f"Doctor {doctor_id} does not exist")
        if service_offering_id is not None:
            offering = db.query(ServiceOffering).filter(ServiceOffering.id == service_offering_id).first()
            if offering is None or offering.facility_id != facility_id or offering.doctor_id != doctor_id:
                raise RuleValidationError(
                    "service_offering_id must reference an offering of the same facility and doctor"
                )

    @staticmethod
    def create_rule(
        db: Session,
        facility_id: int,
        doctor_id: int,
        day_of_week: int,
        start_time: time,
        end_time: time,
        slot_duration_minutes: int,
        slot_interval_minutes: Optional[int] = None,
        service_offering_id: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> AvailabilityRule:
        """
        Create an active availability rule.

        Args:
            db: Database session (committed here)
            facility_id: Facility the rule belongs to
            doctor_id: Doctor the rule generates slots for
            day_of_week: 0=Sunday ... 6=Saturday
            start_time: Start of the working window
            end_time: End of the working window
            slot_duration_minutes: Length of each slot
            slot_interval_minutes: Spacing between slot starts (None = duration)
            service_offering_id: Optional service offering scope
            meta: Opaque metadata

        Returns:
            The created rule

        Raises:
            RuleValidationError: If the rule is inconsistent
        """
        AvailabilityRuleService.validate_rule_fields(
            day_of_week, start_time, end_time, slot_duration_minutes, slot_interval_minutes
        )
        AvailabilityRuleService.validate_rule_references(db, facility_id, doctor_id, service_offering_id)

        rule = AvailabilityRule(
            facility_id=facility_id,
            doctor_id=doctor_id,
            service_offering_id=service_offering_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            slot_duration_minutes=slot_duration_minutes,
            slot_interval_minutes=slot_interval_minutes,
            active=True,
            meta=meta,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)

        logger.info(
            f"Created availability rule {rule.id} for doctor {doctor_id} at facility {facility_id} "
            f"(day {day_of_week}, {start_time}-{end_time})"
        )
        return rule

    @staticmethod
    def get_rule(db: Session, facility_id: int, rule_id: int) -> AvailabilityRule:
        """
        Get a rule belonging to a facility.

        Raises:
            RuleNotFoundError: If the rule does not exist at the facility
        """
        rule = db.query(AvailabilityRule).filter(
            AvailabilityRule.id == rule_id,
            AvailabilityRule.facility_id == facility_id,
        ).first()
        if rule is None:
            raise RuleNotFoundError(f"Availability rule {rule_id} not found")
        return rule

    @staticmethod
    def update_rule(
        db: Session,
        facility_id: int,
        rule_id: int,
        day_of_week: Optional[int] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        slot_duration_minutes: Optional[int] = None,
        slot_interval_minutes: Any = MISSING,
        service_offering_id: Any = MISSING,
        meta: Any = MISSING,
    ) -> AvailabilityRule:
        """
        Partially update a rule. Omitted fields keep their value.

        Already generated slots are left alone; the next generation run
        produces slots for the new window.

        Raises:
            RuleNotFoundError: If the rule does not exist at the facility
            RuleValidationError: If the resulting rule is inconsistent
        """
        rule = AvailabilityRuleService.get_rule(db, facility_id, rule_id)

        new_day = rule.day_of_week if day_of_week is None else day_of_week
        new_start = rule.start_time if start_time is None else start_time
        new_end = rule.end_time if end_time is None else end_time
        new_duration = rule.slot_duration_minutes if slot_duration_minutes is None else slot_duration_minutes
        new_interval = rule.slot_interval_minutes if slot_interval_minutes is MISSING else slot_interval_minutes

        AvailabilityRuleService.validate_rule_fields(new_day, new_start, new_end, new_duration, new_interval)
        if service_offering_id is not MISSING:
            AvailabilityRuleService.validate_rule_references(db, facility_id, rule.doctor_id, service_offering_id)

        rule.day_of_week = new_day
        rule.start_time = new_start
        rule.end_time = new_end
        rule.slot_duration_minutes = new_duration
        rule.slot_interval_minutes = new_interval
        if service_offering_id is not MISSING:
            rule.service_offering_id = service_offering_id
        if meta is not MISSING:
            rule.meta = meta

        db.commit()
        db.refresh(rule)
        logger.info(f"Updated availability rule {rule.id}")
        return rule

    @staticmethod
    def deactivate_rule(db: Session, facility_id: int, rule_id: int) -> AvailabilityRule:
        """
        Deactivate a rule so it no longer generates slots.

        Raises:
            RuleNotFoundError: If the rule does not exist at the facility
        """
        rule = AvailabilityRuleService.get_rule(db, facility_id, rule_id)
        if is_active_rule(rule):
            rule.active = False
            db.commit()
            db.refresh(rule)
            logger.info(f"Deactivated availability rule {rule.id}")
        return rule

    @staticmethod
    def list_rules(
        db: Session,
        facility_id: int,
        doctor_id: Optional[int] = None,
        include_inactive: bool = False,
    ) -> List[AvailabilityRule]:
        """List a facility's rules ordered by weekday and start time."""
        query = db.query(AvailabilityRule).filter(AvailabilityRule.facility_id == facility_id)
        if doctor_id is not None:
            query = query.filter(AvailabilityRule.doctor_id == doctor_id)
        if not include_inactive:
            query = filter_active_rules(query)
        return query.order_by(
            AvailabilityRule.day_of_week, AvailabilityRule.start_time, AvailabilityRule.id
        ).all()
