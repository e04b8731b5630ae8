"""
Calendar view of a facility's slots.

Staff calendars show stored slots plus appointments that have no slot in the
result (created without one, or linked to a slot outside the filters). Those
appointments are shown as virtual slots with a negative id so the frontend
can tell them apart.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from core.constants import (
    APPOINTMENT_STATUS_CANCELLED, DEFAULT_SLOT_CAPACITY, SLOT_STATUS_BOOKED, SLOT_STATUS_CANCELLED,
)
from models import Appointment, AvailabilitySlot
from utils.datetime_utils import day_window

logger = logging.getLogger(__name__)


@dataclass
class CalendarSlot:
    """A slot as shown on the calendar, either stored or virtual."""
    id: int
    facility_id: int
    doctor_id: int
    service_offering_id: Optional[int]
    start_at: datetime
    end_at: datetime
    status: str
    capacity: int
    reserved_until: Optional[datetime]
    created_from_rule_id: Optional[int]
    appointment_id: Optional[int] = None
    patient_id: Optional[int] = None
    is_virtual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "facility_id": self.facility_id,
            "doctor_id": self.doctor_id,
            "service_offering_id": self.service_offering_id,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "status": self.status,
            "capacity": self.capacity,
            "reserved_until": self.reserved_until.isoformat() if self.reserved_until else None,
            "created_from_rule_id": self.created_from_rule_id,
            "appointment_id": self.appointment_id,
            "patient_id": self.patient_id,
            "is_virtual": self.is_virtual,
        }


class SlotCalendarService:
    """Service for the facility slot calendar."""

    @staticmethod
    def _active_appointment(slot: AvailabilitySlot) -> Optional[Appointment]:
        """Latest non-cancelled appointment holding the slot, if any."""
        active = [a for a in slot.appointments if a.status != APPOINTMENT_STATUS_CANCELLED]
        return max(active, key=lambda a: a.id) if active else None

    @staticmethod
    def _from_slot(slot: AvailabilitySlot) -> CalendarSlot:
        appointment = SlotCalendarService._active_appointment(slot)
        return CalendarSlot(
            id=slot.id,
            facility_id=slot.facility_id,
            doctor_id=slot.doctor_id,
            service_offering_id=slot.service_offering_id,
            start_at=slot.start_at,
            end_at=slot.end_at,
            status=slot.status,
            capacity=slot.capacity,
            reserved_until=slot.reserved_until,
            created_from_rule_id=slot.created_from_rule_id,
            appointment_id=appointment.id if appointment is not None else None,
            patient_id=appointment.patient_id if appointment is not None else None,
        )

    @staticmethod
    def _virtual_from_appointment(appointment: Appointment) -> CalendarSlot:
        linked = appointment.availability_slot
        start_at = linked.start_at if linked is not None else appointment.start_at
        end_at = linked.end_at if linked is not None else appointment.end_at
        status = SLOT_STATUS_CANCELLED if appointment.status == APPOINTMENT_STATUS_CANCELLED else SLOT_STATUS_BOOKED
        return CalendarSlot(
            id=-appointment.id,
            facility_id=appointment.facility_id,
            doctor_id=appointment.doctor_id,
            service_offering_id=appointment.service_offering_id,
            start_at=start_at,
            end_at=end_at,
            status=status,
            capacity=DEFAULT_SLOT_CAPACITY,
            reserved_until=None,
            created_from_rule_id=None,
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            is_virtual=True,
        )

    @staticmethod
    def list_calendar_slots(
        db: Session,
        facility_id: int,
        doctor_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[CalendarSlot]:
        """
        List stored and virtual slots for a facility, sorted by start_at.

        Args:
            db: Database session
            facility_id: Facility to list
            doctor_id: Only this doctor (None = all doctors)
            start_date: Earliest start date, inclusive (None = open)
            end_date: Latest start date, inclusive (None = open)

        Returns:
            Calendar slots; virtual ones have id = -appointment.id
        """
        slot_query = db.query(AvailabilitySlot).options(
            selectinload(AvailabilitySlot.appointments)
        ).filter(AvailabilitySlot.facility_id == facility_id)
        appointment_query = db.query(Appointment).options(
            joinedload(Appointment.availability_slot)
        ).filter(Appointment.facility_id == facility_id)

        if doctor_id is not None:
            slot_query = slot_query.filter(AvailabilitySlot.doctor_id == doctor_id)
            appointment_query = appointment_query.filter(Appointment.doctor_id == doctor_id)

        slot_range = []
        appointment_range = []
        if start_date is not None:
            range_start = day_window(start_date)[0]
            slot_range.append(AvailabilitySlot.start_at >= range_start)
            appointment_range.append(Appointment.start_at >= range_start)
        if end_date is not None:
            range_end = day_window(end_date)[1]
            slot_range.append(AvailabilitySlot.start_at <= range_end)
            appointment_range.append(Appointment.start_at <= range_end)
        if slot_range:
            slot_query = slot_query.filter(*slot_range)
            # An appointment is in range by its own start or by its linked slot's start
            appointment_query = appointment_query.filter(or_(
                and_(*appointment_range),
                Appointment.availability_slot.has(and_(*slot_range)),
            ))

        slots = slot_query.all()
        listed_slot_ids = {slot.id for slot in slots}
        calendar = [SlotCalendarService._from_slot(slot) for slot in slots]

        virtual_count = 0
        for appointment in appointment_query.all():
            if appointment.availability_slot_id is not None and appointment.availability_slot_id in listed_slot_ids:
                continue
            calendar.append(SlotCalendarService._virtual_from_appointment(appointment))
            virtual_count += 1

        calendar.sort(key=lambda s: (s.start_at, s.id))
        logger.debug(
            f"Calendar for facility {facility_id}: {len(slots)} slots, {virtual_count} virtual"
        )
        return calendar
