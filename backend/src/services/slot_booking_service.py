"""
Booking-side slot transitions.

The booking flow shares the slot store with the generation job. It finds (or
creates) an open slot for a requested time, holds it while the patient
confirms, books it by attaching an appointment, and reopens it when the
appointment is cancelled. Slots created here carry no rule back-reference.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import RESERVATION_HOLD_MINUTES
from core.constants import (
    APPOINTMENT_STATUS_CANCELLED, APPOINTMENT_STATUS_SCHEDULED, DEFAULT_APPOINTMENT_DURATION_MINUTES,
    DEFAULT_SLOT_CAPACITY, SLOT_STATUS_BOOKED, SLOT_STATUS_OPEN, SLOT_STATUS_RESERVED,
)
from models import Appointment, AvailabilitySlot, ServiceOffering
from utils.availability_queries import find_slot_by_window
from utils.datetime_utils import facility_now, to_wall_clock, wall_clock_now

logger = logging.getLogger(__name__)


class SlotNotFoundError(LookupError):
    """Raised when a slot does not exist."""
    pass


class AppointmentNotFoundError(LookupError):
    """Raised when an appointment does not exist."""
    pass


class SlotUnavailableError(ValueError):
    """Raised when a slot is not in a state that allows the requested transition."""
    pass


class SlotBookingService:
    """Service for slot reservation and booking transitions."""

    @staticmethod
    def _get_slot_for_update(db: Session, slot_id: int) -> AvailabilitySlot:
        slot = db.query(AvailabilitySlot).filter(
            AvailabilitySlot.id == slot_id
        ).with_for_update().first()
        if slot is None:
            raise SlotNotFoundError(f"Availability slot {slot_id} not found")
        return slot

    @staticmethod
    def resolve_duration_minutes(
        db: Session,
        service_offering_id: Optional[int],
        duration_minutes: Optional[int] = None,
    ) -> int:
        """
        Duration of a booking: explicit value, else the offering's default,
        else DEFAULT_APPOINTMENT_DURATION_MINUTES.
        """
        if duration_minutes is not None:
            if duration_minutes <= 0:
                raise SlotUnavailableError("duration_minutes must be positive")
            return duration_minutes
        if service_offering_id is not None:
            offering = db.query(ServiceOffering).filter(ServiceOffering.id == service_offering_id).first()
            if offering is not None and offering.default_duration_minutes:
                return offering.default_duration_minutes
        return DEFAULT_APPOINTMENT_DURATION_MINUTES

    @staticmethod
    def find_or_create_open_slot(
        db: Session,
        facility_id: int,
        doctor_id: int,
        start_at: datetime,
        duration_minutes: Optional[int] = None,
        service_offering_id: Optional[int] = None,
    ) -> AvailabilitySlot:
        """
        Find an open slot covering start_at, or create a standalone one.

        Lookup order:
        1. An open slot of the pair with start_at <= t <= end_at (and the same
           service offering when one is given). The latest-starting match wins.
        2. A slot holding the exact (facility, doctor, start, end) key of the
           requested window, if it is open.
        3. A new open slot with no rule back-reference.

        The session is flushed, not committed. A concurrent insert of the same
        window rolls the session back and returns the winner if it is open.

        Raises:
            SlotUnavailableError: If the exact window already exists but is not open
        """
        start_at = to_wall_clock(start_at)

        query = db.query(AvailabilitySlot).filter(
            AvailabilitySlot.facility_id == facility_id,
            AvailabilitySlot.doctor_id == doctor_id,
            AvailabilitySlot.status == SLOT_STATUS_OPEN,
            AvailabilitySlot.start_at <= start_at,
            AvailabilitySlot.end_at >= start_at,
        )
        if service_offering_id is not None:
            query = query.filter(AvailabilitySlot.service_offering_id == service_offering_id)
        covering = query.order_by(AvailabilitySlot.start_at.desc(), AvailabilitySlot.id).first()
        if covering is not None:
            return covering

        duration = SlotBookingService.resolve_duration_minutes(db, service_offering_id, duration_minutes)
        end_at = start_at + timedelta(minutes=duration)

        existing = find_slot_by_window(db, facility_id, doctor_id, start_at, end_at)
        if existing is not None:
            if existing.status != SLOT_STATUS_OPEN:
                raise SlotUnavailableError(
                    f"Slot {existing.id} ({start_at} - {end_at}) is {existing.status}"
                )
            return existing

        slot = AvailabilitySlot(
            facility_id=facility_id,
            doctor_id=doctor_id,
            service_offering_id=service_offering_id,
            start_at=start_at,
            end_at=end_at,
            status=SLOT_STATUS_OPEN,
            capacity=DEFAULT_SLOT_CAPACITY,
        )
        db.add(slot)
        try:
            db.flush()
        except IntegrityError:
            # Race condition: another writer inserted the same window
            db.rollback()
            logger.debug(
                f"Slot window {start_at} - {end_at} for doctor {doctor_id} at facility {facility_id} "
                "was created concurrently, fetching it"
            )
            existing = find_slot_by_window(db, facility_id, doctor_id, start_at, end_at)
            if existing is None or existing.status != SLOT_STATUS_OPEN:
                raise SlotUnavailableError(f"Slot {start_at} - {end_at} is no longer available")
            return existing

        logger.info(
            f"Created standalone slot {slot.id} for doctor {doctor_id} at facility {facility_id} "
            f"({start_at} - {end_at})"
        )
        return slot

    @staticmethod
    def reserve_slot(
        db: Session,
        slot_id: int,
        now: Optional[datetime] = None,
        hold_minutes: int = RESERVATION_HOLD_MINUTES,
    ) -> AvailabilitySlot:
        """
        Hold an open slot for hold_minutes.

        Raises:
            SlotNotFoundError: If the slot does not exist
            SlotUnavailableError: If the slot is not open
        """
        current = to_wall_clock(now) if now is not None else wall_clock_now()
        slot = SlotBookingService._get_slot_for_update(db, slot_id)
        if slot.status != SLOT_STATUS_OPEN:
            raise SlotUnavailableError(f"Slot {slot_id} is {slot.status}, not open")

        slot.status = SLOT_STATUS_RESERVED
        slot.reserved_until = current + timedelta(minutes=hold_minutes)
        db.commit()
        db.refresh(slot)
        logger.info(f"Reserved slot {slot_id} until {slot.reserved_until}")
        return slot

    @staticmethod
    def book_slot(
        db: Session,
        slot_id: int,
        patient_id: int,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Book a slot and create the appointment occupying it.

        An open slot, or a reserved slot whose hold has not elapsed, becomes
        booked. The appointment takes the slot's window and service offering.

        Returns:
            The created appointment (status 'scheduled')

        Raises:
            SlotNotFoundError: If the slot does not exist
            SlotUnavailableError: If the slot is booked, cancelled or its hold has elapsed
        """
        current = to_wall_clock(now) if now is not None else wall_clock_now()
        slot = SlotBookingService._get_slot_for_update(db, slot_id)

        if slot.status == SLOT_STATUS_RESERVED:
            if slot.reserved_until is not None and slot.reserved_until < current:
                raise SlotUnavailableError(f"Reservation on slot {slot_id} expired at {slot.reserved_until}")
        elif slot.status != SLOT_STATUS_OPEN:
            raise SlotUnavailableError(f"Slot {slot_id} is {slot.status}")

        slot.status = SLOT_STATUS_BOOKED
        slot.reserved_until = None

        appointment = Appointment(
            patient_id=patient_id,
            facility_id=slot.facility_id,
            doctor_id=slot.doctor_id,
            service_offering_id=slot.service_offering_id,
            availability_slot_id=slot.id,
            start_at=slot.start_at,
            end_at=slot.end_at,
            status=APPOINTMENT_STATUS_SCHEDULED,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(f"Booked slot {slot_id} for patient {patient_id} (appointment {appointment.id})")
        return appointment

    @staticmethod
    def book_appointment(
        db: Session,
        facility_id: int,
        doctor_id: int,
        patient_id: int,
        start_at: datetime,
        service_offering_id: Optional[int] = None,
        duration_minutes: Optional[int] = None,
    ) -> Appointment:
        """
        Book the open slot covering start_at, creating the slot when none exists.

        Raises:
            SlotUnavailableError: If the requested window is taken
        """
        try:
            slot = SlotBookingService.find_or_create_open_slot(
                db, facility_id, doctor_id, start_at,
                duration_minutes=duration_minutes,
                service_offering_id=service_offering_id,
            )
            return SlotBookingService.book_slot(db, slot.id, patient_id)
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def cancel_appointment(db: Session, appointment_id: int) -> Appointment:
        """
        Cancel an appointment and reopen the slot it occupied.

        Only a linked slot that is currently booked is reopened. Cancelling an
        already cancelled appointment changes nothing.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
        """
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if appointment.status == APPOINTMENT_STATUS_CANCELLED:
            return appointment

        appointment.status = APPOINTMENT_STATUS_CANCELLED
        appointment.canceled_at = facility_now()

        if appointment.availability_slot_id is not None:
            slot = SlotBookingService._get_slot_for_update(db, appointment.availability_slot_id)
            if slot.status == SLOT_STATUS_BOOKED:
                slot.status = SLOT_STATUS_OPEN
                slot.reserved_until = None
                logger.info(f"Reopened slot {slot.id} after cancelling appointment {appointment_id}")

        db.commit()
        db.refresh(appointment)
        logger.info(f"Cancelled appointment {appointment_id}")
        return appointment
