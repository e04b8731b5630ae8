"""
Unit tests for booking-side slot transitions.
"""

from datetime import datetime, timedelta

import pytest

from factories import (
    create_appointment, create_doctor, create_facility, create_service_offering, create_slot,
)
from models import Appointment, AvailabilitySlot
from services.slot_booking_service import (
    AppointmentNotFoundError, SlotBookingService, SlotNotFoundError, SlotUnavailableError,
)


NOW = datetime(2025, 1, 6, 8, 0)
NINE = datetime(2025, 1, 6, 9, 0)


class TestFindOrCreateOpenSlot:
    """Test locating or creating the slot for a requested time."""

    def test_returns_covering_open_slot(self, db_session):
        """Test that an open slot containing the requested time is reused."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()

        found = SlotBookingService.find_or_create_open_slot(
            db_session, facility.id, doctor.id, NINE + timedelta(minutes=10)
        )

        assert found.id == slot.id
        assert db_session.query(AvailabilitySlot).count() == 1

    def test_prefers_slot_starting_at_requested_time(self, db_session):
        """Test that at a boundary the slot starting at the time wins over the one ending there."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        later = create_slot(db_session, facility, doctor, NINE + timedelta(minutes=30), NINE + timedelta(minutes=60))
        db_session.commit()

        found = SlotBookingService.find_or_create_open_slot(
            db_session, facility.id, doctor.id, NINE + timedelta(minutes=30)
        )

        assert found.id == later.id

    def test_creates_standalone_slot_with_default_duration(self, db_session):
        """Test that with no covering slot a 30-minute slot without a rule is created."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        db_session.commit()

        slot = SlotBookingService.find_or_create_open_slot(db_session, facility.id, doctor.id, NINE)
        db_session.commit()

        assert slot.id is not None
        assert slot.start_at == NINE
        assert slot.end_at == NINE + timedelta(minutes=30)
        assert slot.status == "open"
        assert slot.created_from_rule_id is None

    def test_uses_service_offering_default_duration(self, db_session):
        """Test that the offering's default duration sizes a new slot."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        offering = create_service_offering(db_session, facility, doctor, default_duration_minutes=45)
        db_session.commit()

        slot = SlotBookingService.find_or_create_open_slot(
            db_session, facility.id, doctor.id, NINE, service_offering_id=offering.id
        )

        assert slot.end_at == NINE + timedelta(minutes=45)
        assert slot.service_offering_id == offering.id

    def test_explicit_duration_wins(self, db_session):
        """Test that an explicit duration overrides the defaults."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        db_session.commit()

        slot = SlotBookingService.find_or_create_open_slot(
            db_session, facility.id, doctor.id, NINE, duration_minutes=60
        )

        assert slot.end_at == NINE + timedelta(minutes=60)

    def test_covering_slot_must_match_service_offering(self, db_session):
        """Test that a slot for a different offering is not reused."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        offering_a = create_service_offering(db_session, facility, doctor, name="A")
        offering_b = create_service_offering(db_session, facility, doctor, name="B", default_duration_minutes=20)
        create_slot(
            db_session, facility, doctor, NINE, NINE + timedelta(minutes=30), service_offering_id=offering_a.id
        )
        db_session.commit()

        slot = SlotBookingService.find_or_create_open_slot(
            db_session, facility.id, doctor.id, NINE, service_offering_id=offering_b.id
        )

        assert slot.service_offering_id == offering_b.id
        assert slot.end_at == NINE + timedelta(minutes=20)

    def test_taken_exact_window_is_not_duplicated(self, db_session):
        """Test that a booked slot with the requested key raises instead of creating a duplicate."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30), status="booked")
        db_session.commit()

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.find_or_create_open_slot(db_session, facility.id, doctor.id, NINE)

        assert db_session.query(AvailabilitySlot).count() == 1

    def test_non_positive_duration_rejected(self, db_session):
        """Test that a zero duration is rejected."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        db_session.commit()

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.find_or_create_open_slot(
                db_session, facility.id, doctor.id, NINE, duration_minutes=0
            )


class TestReserveSlot:
    """Test holding a slot."""

    def test_reserve_open_slot(self, db_session):
        """Test that an open slot becomes reserved until now + hold."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()

        reserved = SlotBookingService.reserve_slot(db_session, slot.id, now=NOW, hold_minutes=10)

        assert reserved.status == "reserved"
        assert reserved.reserved_until == NOW + timedelta(minutes=10)

    def test_reserve_non_open_slot_fails(self, db_session):
        """Test that booked or reserved slots cannot be reserved again."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(
            db_session, facility, doctor, NINE, NINE + timedelta(minutes=30),
            status="reserved", reserved_until=NOW + timedelta(minutes=5),
        )
        db_session.commit()

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.reserve_slot(db_session, slot.id, now=NOW)

    def test_reserve_missing_slot(self, db_session):
        """Test that an unknown slot id raises SlotNotFoundError."""
        with pytest.raises(SlotNotFoundError):
            SlotBookingService.reserve_slot(db_session, 999, now=NOW)


class TestBookSlot:
    """Test booking a slot."""

    def test_book_open_slot_creates_appointment(self, db_session):
        """Test that booking an open slot marks it booked and links a scheduled appointment."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()

        appointment = SlotBookingService.book_slot(db_session, slot.id, patient_id=77, now=NOW)

        db_session.refresh(slot)
        assert slot.status == "booked"
        assert slot.reserved_until is None
        assert appointment.availability_slot_id == slot.id
        assert appointment.patient_id == 77
        assert appointment.status == "scheduled"
        assert (appointment.start_at, appointment.end_at) == (slot.start_at, slot.end_at)

    def test_book_reserved_slot_within_hold(self, db_session):
        """Test that a reservation can be converted to a booking before it expires."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()
        SlotBookingService.reserve_slot(db_session, slot.id, now=NOW, hold_minutes=10)

        SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW + timedelta(minutes=9))

        db_session.refresh(slot)
        assert slot.status == "booked"
        assert slot.reserved_until is None

    def test_book_reserved_slot_after_hold_fails(self, db_session):
        """Test that an elapsed reservation cannot be booked."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(
            db_session, facility, doctor, NINE, NINE + timedelta(minutes=30),
            status="reserved", reserved_until=NOW,
        )
        db_session.commit()

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW + timedelta(seconds=1))

        assert db_session.query(Appointment).count() == 0

    def test_book_booked_slot_fails(self, db_session):
        """Test that a slot cannot be double-booked."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()
        SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW)

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.book_slot(db_session, slot.id, patient_id=2, now=NOW)

    def test_book_cancelled_slot_fails(self, db_session):
        """Test that a withdrawn slot cannot be booked."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30), status="cancelled")
        db_session.commit()

        with pytest.raises(SlotUnavailableError):
            SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW)

    def test_book_appointment_end_to_end(self, db_session):
        """Test booking by time creates the slot and the appointment together."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        db_session.commit()

        appointment = SlotBookingService.book_appointment(db_session, facility.id, doctor.id, 5, NINE)

        slot = db_session.query(AvailabilitySlot).one()
        assert slot.status == "booked"
        assert appointment.availability_slot_id == slot.id


class TestCancelAppointment:
    """Test cancelling an appointment."""

    def test_cancel_reopens_booked_slot(self, db_session):
        """Test that cancelling frees the slot for rebooking."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()
        appointment = SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW)

        cancelled = SlotBookingService.cancel_appointment(db_session, appointment.id)

        db_session.refresh(slot)
        assert cancelled.status == "cancelled"
        assert cancelled.canceled_at is not None
        assert slot.status == "open"
        SlotBookingService.book_slot(db_session, slot.id, patient_id=2, now=NOW)

    def test_cancel_appointment_without_slot(self, db_session):
        """Test that appointments with no linked slot can be cancelled."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        appointment = create_appointment(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()

        assert SlotBookingService.cancel_appointment(db_session, appointment.id).status == "cancelled"

    def test_cancel_twice_is_a_no_op(self, db_session):
        """Test that cancelling an already cancelled appointment changes nothing."""
        facility, doctor = create_facility(db_session), create_doctor(db_session)
        slot = create_slot(db_session, facility, doctor, NINE, NINE + timedelta(minutes=30))
        db_session.commit()
        appointment = SlotBookingService.book_slot(db_session, slot.id, patient_id=1, now=NOW)
        SlotBookingService.cancel_appointment(db_session, appointment.id)
        SlotBookingService.reserve_slot(db_session, slot.id, now=NOW)

        SlotBookingService.cancel_appointment(db_session, appointment.id)

        db_session.refresh(slot)
        assert slot.status == "reserved"

    def test_cancel_missing_appointment(self, db_session):
        """Test that an unknown appointment id raises AppointmentNotFoundError."""
        with pytest.raises(AppointmentNotFoundError):
            SlotBookingService.cancel_appointment(db_session, 999)
