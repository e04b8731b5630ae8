# pyright: reportMissingTypeStubs=false
"""
Facility availability API endpoints.

Rule and exception management, the slot calendar, on-demand slot generation
and the booking-side slot transitions, all scoped to one facility.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from core.config import SLOT_GENERATION_DAYS_AHEAD
from core.constants import EXCEPTION_TYPE_BLOCKED, MAX_EXCEPTION_REASON_LENGTH
from core.database import get_db
from models import Appointment, AvailabilitySlot, Facility
from services.availability_exception_service import (
    AvailabilityExceptionService, ExceptionNotFoundError, ExceptionValidationError,
)
from services.availability_rule_service import AvailabilityRuleService, RuleNotFoundError, RuleValidationError
from services.slot_booking_service import (
    AppointmentNotFoundError, SlotBookingService, SlotNotFoundError, SlotUnavailableError,
)
from services.slot_calendar_service import SlotCalendarService
from services.slot_generation_service import SlotGenerationService
from utils.datetime_utils import facility_today

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request/Response Models =====

class AvailabilityRuleCreateRequest(BaseModel):
    """Request model for creating an availability rule."""
    doctor_id: int
    day_of_week: int = Field(..., ge=0, le=6)  # 0=Sunday ... 6=Saturday
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(..., gt=0)
    slot_interval_minutes: Optional[int] = Field(None, gt=0)  # None = back-to-back slots
    service_offering_id: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None


class AvailabilityRuleUpdateRequest(BaseModel):
    """Request model for updating an availability rule. Omitted fields are unchanged."""
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    slot_duration_minutes: Optional[int] = Field(None, gt=0)
    slot_interval_minutes: Optional[int] = Field(None, gt=0)
    service_offering_id: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None


class AvailabilityRuleResponse(BaseModel):
    """Response model for an availability rule."""
    id: int
    facility_id: int
    doctor_id: int
    service_offering_id: Optional[int] = None
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration_minutes: int
    slot_interval_minutes: Optional[int] = None
    active: bool
    meta: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityExceptionCreateRequest(BaseModel):
    """Request model for creating an availability exception."""
    doctor_id: int
    start_at: datetime
    end_at: datetime
    type: str = EXCEPTION_TYPE_BLOCKED  # blocked, override or emergency
    reason: Optional[str] = Field(None, max_length=MAX_EXCEPTION_REASON_LENGTH)
    availability_rule_id: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None


class AvailabilityExceptionUpdateRequest(BaseModel):
    """Request model for updating an availability exception. Omitted fields are unchanged."""
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    type: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=MAX_EXCEPTION_REASON_LENGTH)


class AvailabilityExceptionResponse(BaseModel):
    """Response model for an availability exception."""
    id: int
    facility_id: int
    doctor_id: int
    availability_rule_id: Optional[int] = None
    start_at: datetime
    end_at: datetime
    type: str
    reason: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilitySlotResponse(BaseModel):
    """Response model for a slot. Virtual slots have negative ids."""
    id: int
    facility_id: int
    doctor_id: int
    service_offering_id: Optional[int] = None
    start_at: datetime
    end_at: datetime
    status: str
    capacity: int
    reserved_until: Optional[datetime] = None
    created_from_rule_id: Optional[int] = None
    appointment_id: Optional[int] = None
    patient_id: Optional[int] = None
    is_virtual: bool = False

    model_config = ConfigDict(from_attributes=True)


class SlotGenerationRequest(BaseModel):
    """Request model for on-demand slot generation."""
    doctor_id: Optional[int] = None
    start_date: Optional[date] = None  # Default: today (facility time)
    end_date: Optional[date] = None  # Default: start_date + SLOT_GENERATION_DAYS_AHEAD


class SlotGenerationResponse(BaseModel):
    """Response model for a slot generation run."""
    start_date: date
    end_date: date
    rules_processed: int
    total_slots_created: int
    rules_failed: int
    failed_rule_ids: List[int] = []


class SlotBookingRequest(BaseModel):
    """Request model for booking a slot."""
    patient_id: int


class AppointmentResponse(BaseModel):
    """Response model for an appointment created or cancelled through a slot."""
    id: int
    patient_id: int
    facility_id: int
    doctor_id: int
    service_offering_id: Optional[int] = None
    availability_slot_id: Optional[int] = None
    start_at: datetime
    end_at: datetime
    status: str

    model_config = ConfigDict(from_attributes=True)


# ===== Helpers =====

def _ensure_facility(db: Session, facility_id: int) -> Facility:
    facility = db.query(Facility).filter(Facility.id == facility_id).first()
    if facility is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Facility {facility_id} not found"
        )
    return facility


def _ensure_slot_in_facility(db: Session, facility_id: int, slot_id: int) -> None:
    slot = db.query(AvailabilitySlot.id).filter(
        AvailabilitySlot.id == slot_id,
        AvailabilitySlot.facility_id == facility_id,
    ).first()
    if slot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Availability slot {slot_id} not found"
        )


# ===== Availability Rules =====

@router.get("/{facility_id}/availability-rules",
            response_model=List[AvailabilityRuleResponse],
            summary="List availability rules")
async def list_availability_rules(
    facility_id: int,
    doctor_id: Optional[int] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List a facility's rules, active only unless include_inactive is set."""
    _ensure_facility(db, facility_id)
    return AvailabilityRuleService.list_rules(
        db, facility_id, doctor_id=doctor_id, include_inactive=include_inactive
    )


@router.post("/{facility_id}/availability-rules",
             response_model=AvailabilityRuleResponse,
             status_code=status.HTTP_201_CREATED,
             summary="Create an availability rule")
async def create_availability_rule(
    facility_id: int,
    request: AvailabilityRuleCreateRequest,
    db: Session = Depends(get_db),
):
    """Create a weekly availability rule. Slots appear on the next generation run."""
    _ensure_facility(db, facility_id)
    try:
        return AvailabilityRuleService.create_rule(
            db,
            facility_id=facility_id,
            doctor_id=request.doctor_id,
            day_of_week=request.day_of_week,
            start_time=request.start_time,
            end_time=request.end_time,
            slot_duration_minutes=request.slot_duration_minutes,
            slot_interval_minutes=request.slot_interval_minutes,
            service_offering_id=request.service_offering_id,
            meta=request.meta,
        )
    except RuleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/{facility_id}/availability-rules/{rule_id}",
            response_model=AvailabilityRuleResponse,
            summary="Update an availability rule")
async def update_availability_rule(
    facility_id: int,
    rule_id: int,
    request: AvailabilityRuleUpdateRequest,
    db: Session = Depends(get_db),
):
    """Partially update a rule. Existing slots are not regenerated."""
    try:
        return AvailabilityRuleService.update_rule(
            db, facility_id, rule_id, **request.model_dump(exclude_unset=True)
        )
    except RuleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RuleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{facility_id}/availability-rules/{rule_id}/deactivate",
             response_model=AvailabilityRuleResponse,
             summary="Deactivate an availability rule")
async def deactivate_availability_rule(
    facility_id: int,
    rule_id: int,
    db: Session = Depends(get_db),
):
    """Stop a rule from generating slots. Rules are never deleted."""
    try:
        return AvailabilityRuleService.deactivate_rule(db, facility_id, rule_id)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ===== Availability Exceptions =====

@router.get("/{facility_id}/availability-exceptions",
            response_model=List[AvailabilityExceptionResponse],
            summary="List availability exceptions")
async def list_availability_exceptions(
    facility_id: int,
    doctor_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    """List exceptions overlapping [start_date, end_date], ordered by start_at."""
    _ensure_facility(db, facility_id)
    return AvailabilityExceptionService.list_exceptions(
        db, facility_id, doctor_id=doctor_id, start_date=start_date, end_date=end_date
    )


@router.post("/{facility_id}/availability-exceptions",
             response_model=AvailabilityExceptionResponse,
             status_code=status.HTTP_201_CREATED,
             summary="Create an availability exception")
async def create_availability_exception(
    facility_id: int,
    request: AvailabilityExceptionCreateRequest,
    db: Session = Depends(get_db),
):
    """Block a doctor's availability for a period, or block one rule entirely."""
    _ensure_facility(db, facility_id)
    try:
        return AvailabilityExceptionService.create_exception(
            db,
            facility_id=facility_id,
            doctor_id=request.doctor_id,
            start_at=request.start_at,
            end_at=request.end_at,
            exception_type=request.type,
            reason=request.reason,
            availability_rule_id=request.availability_rule_id,
            meta=request.meta,
        )
    except ExceptionValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/{facility_id}/availability-exceptions/{exception_id}",
            response_model=AvailabilityExceptionResponse,
            summary="Update an availability exception")
async def update_availability_exception(
    facility_id: int,
    exception_id: int,
    request: AvailabilityExceptionUpdateRequest,
    db: Session = Depends(get_db),
):
    """Partially update an exception."""
    changes = request.model_dump(exclude_unset=True)
    if "type" in changes:
        changes["exception_type"] = changes.pop("type")
    try:
        return AvailabilityExceptionService.update_exception(db, facility_id, exception_id, **changes)
    except ExceptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExceptionValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{facility_id}/availability-exceptions/{exception_id}",
               status_code=status.HTTP_204_NO_CONTENT,
               summary="Delete an availability exception")
async def delete_availability_exception(
    facility_id: int,
    exception_id: int,
    db: Session = Depends(get_db),
) -> Response:
    """Delete an exception. Its dates become eligible on the next generation run."""
    try:
        AvailabilityExceptionService.delete_exception(db, facility_id, exception_id)
    except ExceptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== Availability Slots =====

@router.get("/{facility_id}/availability-slots",
            response_model=List[AvailabilitySlotResponse],
            summary="List slots for the calendar")
async def list_availability_slots(
    facility_id: int,
    doctor_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    """
    List stored slots plus virtual slots for appointments without a listed slot.

    Virtual slots carry id = -appointment_id and is_virtual = true.
    """
    _ensure_facility(db, facility_id)
    return SlotCalendarService.list_calendar_slots(
        db, facility_id, doctor_id=doctor_id, start_date=start_date, end_date=end_date
    )


@router.post("/{facility_id}/availability-slots/generate",
             response_model=SlotGenerationResponse,
             summary="Generate slots on demand")
async def generate_availability_slots(
    facility_id: int,
    request: Optional[SlotGenerationRequest] = None,
    db: Session = Depends(get_db),
) -> SlotGenerationResponse:
    """
    Generate slots for the facility's active rules.

    Safe to call repeatedly: existing slots are skipped, so a second call
    with the same range creates nothing.
    """
    _ensure_facility(db, facility_id)
    request = request or SlotGenerationRequest()
    start_date = request.start_date or facility_today()
    end_date = request.end_date or start_date + timedelta(days=SLOT_GENERATION_DAYS_AHEAD)
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be on or after start_date"
        )

    summary = SlotGenerationService(db).run(
        start_date=start_date,
        end_date=end_date,
        facility_id=facility_id,
        doctor_id=request.doctor_id,
    )
    return SlotGenerationResponse(start_date=start_date, end_date=end_date, **summary.to_dict())


@router.post("/{facility_id}/availability-slots/{slot_id}/reserve",
             response_model=AvailabilitySlotResponse,
             summary="Hold a slot while booking is confirmed")
async def reserve_availability_slot(
    facility_id: int,
    slot_id: int,
    db: Session = Depends(get_db),
):
    """Reserve an open slot for RESERVATION_HOLD_MINUTES."""
    _ensure_slot_in_facility(db, facility_id, slot_id)
    try:
        return SlotBookingService.reserve_slot(db, slot_id)
    except SlotNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SlotUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{facility_id}/availability-slots/{slot_id}/book",
             response_model=AppointmentResponse,
             status_code=status.HTTP_201_CREATED,
             summary="Book a slot")
async def book_availability_slot(
    facility_id: int,
    slot_id: int,
    request: SlotBookingRequest,
    db: Session = Depends(get_db),
):
    """Book an open (or validly reserved) slot and create the appointment."""
    _ensure_slot_in_facility(db, facility_id, slot_id)
    try:
        return SlotBookingService.book_slot(db, slot_id, request.patient_id)
    except SlotNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SlotUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{facility_id}/appointments/{appointment_id}/cancel",
             response_model=AppointmentResponse,
             summary="Cancel an appointment and reopen its slot")
async def cancel_appointment(
    facility_id: int,
    appointment_id: int,
    db: Session = Depends(get_db),
):
    """Cancel an appointment. A booked slot it occupied becomes open again."""
    appointment = db.query(Appointment.id).filter(
        Appointment.id == appointment_id,
        Appointment.facility_id == facility_id,
    ).first()
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Appointment {appointment_id} not found"
        )
    try:
        return SlotBookingService.cancel_appointment(db, appointment_id)
    except AppointmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
