"""
Availability exception management.

Facility staff block a doctor's days (vacation, conference, emergencies) by
creating exceptions. The next slot generation run skips every date an
exception overlaps; slots that already exist are not removed.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.constants import EXCEPTION_TYPE_BLOCKED, EXCEPTION_TYPES, MAX_EXCEPTION_REASON_LENGTH
from core.sentinels import MISSING
from models import AvailabilityException, AvailabilityRule, Doctor
from utils.availability_queries import overlaps_window
from utils.datetime_utils import day_window, to_wall_clock

logger = logging.getLogger(__name__)


class ExceptionValidationError(ValueError):
    """Raised when an availability exception's fields are inconsistent."""
    pass


class ExceptionNotFoundError(LookupError):
    """Raised when an exception does not exist at the given facility."""
    pass


class AvailabilityExceptionService:
    """Service for availability exception operations."""

    @staticmethod
    def _validate(
        db: Session,
        facility_id: int,
        doctor_id: int,
        start_at: datetime,
        end_at: datetime,
        exception_type: str,
        reason: Optional[str],
        availability_rule_id: Optional[int],
    ) -> None:
        if start_at > end_at:
            raise ExceptionValidationError("start_at must be before or equal to end_at")
        if exception_type not in EXCEPTION_TYPES:
            raise ExceptionValidationError(
                f"type must be one of: {', '.join(EXCEPTION_TYPES)}"
            )
        if reason is not None and len(reason) > MAX_EXCEPTION_REASON_LENGTH:
            raise ExceptionValidationError(
                f"reason must be at most {MAX_EXCEPTION_REASON_LENGTH} characters"
            )
        if db.query(Doctor.id).filter(Doctor.id == doctor_id).first() is None:
            raise ExceptionValidationError(f"Doctor {doctor_id} does not exist")
        if availability_rule_id is not None:
            rule = db.query(AvailabilityRule).filter(AvailabilityRule.id == availability_rule_id).first()
            if rule is None or rule.facility_id != facility_id or rule.doctor_id != doctor_id:
                raise ExceptionValidationError(
                    "availability_rule_id must reference a rule of the same facility and doctor"
                )

    @staticmethod
    def create_exception(
        db: Session,
        facility_id: int,
        doctor_id: int,
        start_at: datetime,
        end_at: datetime,
        exception_type: str = EXCEPTION_TYPE_BLOCKED,
        reason: Optional[str] = None,
        availability_rule_id: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> AvailabilityException:
        """
        Create an availability exception.

        Args:
            db: Database session (committed here)
            facility_id: Facility the exception belongs to
            doctor_id: Doctor whose availability is blocked
            start_at: Start of the blocked period (aware values are converted to facility time)
            end_at: End of the blocked period, inclusive
            exception_type: 'blocked', 'override' or 'emergency'
            reason: Optional free-text reason
            availability_rule_id: Optional rule to block entirely
            meta: Opaque metadata

        Returns:
            The created exception

        Raises:
            ExceptionValidationError: If the exception is inconsistent
        """
        start_at = to_wall_clock(start_at)
        end_at = to_wall_clock(end_at)
        AvailabilityExceptionService._validate(
            db, facility_id, doctor_id, start_at, end_at, exception_type, reason, availability_rule_id
        )

        exception = AvailabilityException(
            availability_rule_id=availability_rule_id,
            facility_id=facility_id,
            doctor_id=doctor_id,
            start_at=start_at,
            end_at=end_at,
            type=exception_type,
            reason=reason or None,
            meta=meta,
        )
        db.add(exception)
        db.commit()
        db.refresh(exception)

        logger.info(
            f"Created {exception_type} exception {exception.id} for doctor {doctor_id} "
            f"at facility {facility_id} ({start_at} - {end_at})"
        )
        return exception

    @staticmethod
    def get_exception(db: Session, facility_id: int, exception_id: int) -> AvailabilityException:
        """
        Get an exception belonging to a facility.

        Raises:
            ExceptionNotFoundError: If the exception does not exist at the facility
        """
        exception = db.query(AvailabilityException).filter(
            AvailabilityException.id == exception_id,
            AvailabilityException.facility_id == facility_id,
        ).first()
        if exception is None:
            raise ExceptionNotFoundError(f"Availability exception {exception_id} not found")
        return exception

    @staticmethod
    def update_exception(
        db: Session,
        facility_id: int,
        exception_id: int,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        exception_type: Optional[str] = None,
        reason: Any = MISSING,
    ) -> AvailabilityException:
        """
        Partially update an exception. Omitted fields keep their value;
        passing reason=None clears the reason.

        Raises:
            ExceptionNotFoundError: If the exception does not exist at the facility
            ExceptionValidationError: If the resulting exception is inconsistent
        """
        exception = AvailabilityExceptionService.get_exception(db, facility_id, exception_id)

        new_start = exception.start_at if start_at is None else to_wall_clock(start_at)
        new_end = exception.end_at if end_at is None else to_wall_clock(end_at)
        new_type = exception.type if exception_type is None else exception_type
        new_reason = exception.reason if reason is MISSING else (reason or None)

        AvailabilityExceptionService._validate(
            db, facility_id, exception.doctor_id, new_start, new_end, new_type, new_reason,
            exception.availability_rule_id,
        )

        exception.start_at = new_start
        exception.end_at = new_end
        exception.type = new_type
        exception.reason = new_reason
        db.commit()
        db.refresh(exception)
        logger.info(f"Updated availability exception {exception.id}")
        return exception

    @staticmethod
    def delete_exception(db: Session, facility_id: int, exception_id: int) -> None:
        """
        Delete an exception. Dates it blocked become eligible on the next generation run.

        Raises:
            ExceptionNotFoundError: If the exception does not exist at the facility
        """
        exception = AvailabilityExceptionService.get_exception(db, facility_id, exception_id)
        db.delete(exception)
        db.commit()
        logger.info(f"Deleted availability exception {exception_id}")

    @staticmethod
    def list_exceptions(
        db: Session,
        facility_id: int,
        doctor_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        """
        List a facility's exceptions overlapping a date range, ordered by start_at.

        Either end of the range may be omitted to leave it open.
        """
        query = db.query(AvailabilityException).filter(AvailabilityException.facility_id == facility_id)
        if doctor_id is not None:
            query = query.filter(AvailabilityException.doctor_id == doctor_id)
        if start_date is not None or end_date is not None:
            window_start = day_window(start_date)[0] if start_date is not None else datetime.min
            window_end = day_window(end_date)[1] if end_date is not None else datetime.max
            query = query.filter(overlaps_window(window_start, window_end))
        return query.order_by(AvailabilityException.start_at, AvailabilityException.id).all()
