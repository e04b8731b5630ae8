"""
Integration tests for the facility availability API.

Requests go through the full FastAPI stack against the in-memory test
database.
"""

from datetime import datetime

import pytest

from factories import (
    create_appointment, create_doctor, create_facility, create_rule, create_service_offering, create_slot,
)
from models import AvailabilitySlot


pytestmark = pytest.mark.integration


@pytest.fixture
def facility_and_doctor(db_session):
    facility, doctor = create_facility(db_session), create_doctor(db_session)
    db_session.commit()
    return facility, doctor


def _rule_payload(doctor_id: int, **overrides):
    payload = {
        "doctor_id": doctor_id,
        "day_of_week": 1,
        "start_time": "09:00:00",
        "end_time": "12:00:00",
        "slot_duration_minutes": 30,
    }
    payload.update(overrides)
    return payload


class TestAvailabilityRuleEndpoints:
    """Test rule management endpoints."""

    def test_create_and_list_rule(self, client, facility_and_doctor):
        """Test creating a rule and listing it back."""
        facility, doctor = facility_and_doctor

        response = client.post(f"/api/facilities/{facility.id}/availability-rules", json=_rule_payload(doctor.id))

        assert response.status_code == 201
        created = response.json()
        assert created["active"] is True
        assert created["slot_interval_minutes"] is None

        listed = client.get(f"/api/facilities/{facility.id}/availability-rules").json()
        assert [r["id"] for r in listed] == [created["id"]]

    def test_inverted_window_rejected(self, client, facility_and_doctor):
        """Test that start_time after end_time is a 400."""
        facility, doctor = facility_and_doctor

        response = client.post(
            f"/api/facilities/{facility.id}/availability-rules",
            json=_rule_payload(doctor.id, start_time="12:00:00", end_time="09:00:00"),
        )

        assert response.status_code == 400

    def test_out_of_range_weekday_rejected(self, client, facility_and_doctor):
        """Test that request validation rejects day_of_week 7."""
        facility, doctor = facility_and_doctor

        response = client.post(
            f"/api/facilities/{facility.id}/availability-rules", json=_rule_payload(doctor.id, day_of_week=7)
        )

        assert response.status_code == 422

    def test_unknown_doctor_rejected(self, client, facility_and_doctor):
        """Test that a rule for a doctor who does not exist is a 400 and stores nothing."""
        facility, _ = facility_and_doctor
        base = f"/api/facilities/{facility.id}/availability-rules"

        response = client.post(base, json=_rule_payload(9999))

        assert response.status_code == 400
        assert client.get(base).json() == []

    def test_foreign_service_offering_rejected(self, client, db_session, facility_and_doctor):
        """Test that a service offering of another doctor or a missing one is a 400."""
        facility, doctor = facility_and_doctor
        other = create_doctor(db_session, "Dr. Other")
        offering = create_service_offering(db_session, facility, other)
        db_session.commit()
        base = f"/api/facilities/{facility.id}/availability-rules"

        foreign = client.post(base, json=_rule_payload(doctor.id, service_offering_id=offering.id))
        missing = client.post(base, json=_rule_payload(doctor.id, service_offering_id=9999))

        assert foreign.status_code == 400
        assert missing.status_code == 400

    def test_update_and_deactivate_rule(self, client, db_session, facility_and_doctor):
        """Test a partial update followed by deactivation."""
        facility, doctor = facility_and_doctor
        rule = create_rule(db_session, facility, doctor)
        db_session.commit()
        base = f"/api/facilities/{facility.id}/availability-rules/{rule.id}"

        updated = client.put(base, json={"end_time": "13:00:00"})
        assert updated.status_code == 200
        assert updated.json()["end_time"] == "13:00:00"
        assert updated.json()["start_time"] == "09:00:00"

        deactivated = client.post(f"{base}/deactivate")
        assert deactivated.status_code == 200
        assert deactivated.json()["active"] is False
        assert client.get(f"/api/facilities/{facility.id}/availability-rules").json() == []

    def test_unknown_facility_and_rule(self, client, facility_and_doctor):
        """Test 404s for missing facilities and rules."""
        facility, _ = facility_and_doctor

        assert client.get("/api/facilities/999/availability-rules").status_code == 404
        assert client.post(f"/api/facilities/{facility.id}/availability-rules/999/deactivate").status_code == 404


class TestAvailabilityExceptionEndpoints:
    """Test exception management endpoints."""

    def test_exception_crud(self, client, facility_and_doctor):
        """Test create, list by range, update and delete."""
        facility, doctor = facility_and_doctor
        base = f"/api/facilities/{facility.id}/availability-exceptions"

        created = client.post(base, json={
            "doctor_id": doctor.id,
            "start_at": "2025-02-01T00:00:00",
            "end_at": "2025-02-03T23:59:00",
            "reason": "Conference",
        })
        assert created.status_code == 201
        exception_id = created.json()["id"]
        assert created.json()["type"] == "blocked"

        in_range = client.get(base, params={"start_date": "2025-02-02", "end_date": "2025-02-10"}).json()
        out_of_range = client.get(base, params={"start_date": "2025-03-01"}).json()
        assert [e["id"] for e in in_range] == [exception_id]
        assert out_of_range == []

        updated = client.put(f"{base}/{exception_id}", json={"type": "emergency"})
        assert updated.status_code == 200
        assert updated.json()["type"] == "emergency"
        assert updated.json()["reason"] == "Conference"

        assert client.delete(f"{base}/{exception_id}").status_code == 204
        assert client.delete(f"{base}/{exception_id}").status_code == 404

    def test_invalid_exception_rejected(self, client, facility_and_doctor):
        """Test that an inverted period and an unknown type are 400s."""
        facility, doctor = facility_and_doctor
        base = f"/api/facilities/{facility.id}/availability-exceptions"

        inverted = client.post(base, json={
            "doctor_id": doctor.id, "start_at": "2025-02-03T00:00:00", "end_at": "2025-02-01T00:00:00",
        })
        unknown_type = client.post(base, json={
            "doctor_id": doctor.id, "start_at": "2025-02-01T00:00:00", "end_at": "2025-02-01T10:00:00",
            "type": "holiday",
        })

        assert inverted.status_code == 400
        assert unknown_type.status_code == 400

    def test_unknown_doctor_rejected(self, client, facility_and_doctor):
        """Test that an exception for a doctor who does not exist is a 400."""
        facility, _ = facility_and_doctor
        base = f"/api/facilities/{facility.id}/availability-exceptions"

        response = client.post(base, json={
            "doctor_id": 9999, "start_at": "2025-02-01T00:00:00", "end_at": "2025-02-01T10:00:00",
        })

        assert response.status_code == 400
        assert client.get(base).json() == []


class TestSlotGenerationEndpoint:
    """Test on-demand generation."""

    def test_generate_is_idempotent(self, client, db_session, facility_and_doctor):
        """Test a January Monday rule yields 24 slots once, then nothing."""
        facility, doctor = facility_and_doctor
        create_rule(db_session, facility, doctor, day_of_week=1)
        db_session.commit()
        url = f"/api/facilities/{facility.id}/availability-slots/generate"
        body = {"start_date": "2025-01-01", "end_date": "2025-01-31"}

        first = client.post(url, json=body)
        second = client.post(url, json=body)

        assert first.status_code == 200
        assert first.json() == {
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
            "rules_processed": 1,
            "total_slots_created": 24,
            "rules_failed": 0,
            "failed_rule_ids": [],
        }
        assert second.json()["total_slots_created"] == 0
        assert db_session.query(AvailabilitySlot).count() == 24

    def test_generate_only_touches_requested_facility(self, client, db_session):
        """Test that other facilities' rules are not processed."""
        facility, other = create_facility(db_session, "A"), create_facility(db_session, "B")
        doctor = create_doctor(db_session)
        create_rule(db_session, facility, doctor)
        create_rule(db_session, other, doctor)
        db_session.commit()

        response = client.post(
            f"/api/facilities/{facility.id}/availability-slots/generate",
            json={"start_date": "2025-01-01", "end_date": "2025-01-31"},
        )

        assert response.json()["rules_processed"] == 1

    def test_generate_without_body_uses_default_window(self, client, facility_and_doctor):
        """Test that an empty request covers today through the configured days ahead."""
        facility, _ = facility_and_doctor

        response = client.post(f"/api/facilities/{facility.id}/availability-slots/generate")

        assert response.status_code == 200
        data = response.json()
        start = datetime.fromisoformat(data["start_date"]).date()
        end = datetime.fromisoformat(data["end_date"]).date()
        assert (end - start).days == 30

    def test_generate_inverted_range_rejected(self, client, facility_and_doctor):
        """Test that end_date before start_date is a 400."""
        facility, _ = facility_and_doctor

        response = client.post(
            f"/api/facilities/{facility.id}/availability-slots/generate",
            json={"start_date": "2025-01-31", "end_date": "2025-01-01"},
        )

        assert response.status_code == 400


class TestSlotCalendarAndBookingEndpoints:
    """Test the slot calendar and booking transitions."""

    def test_calendar_includes_virtual_slots(self, client, db_session, facility_and_doctor):
        """Test that a slotless appointment appears with a negative id."""
        facility, doctor = facility_and_doctor
        slot = create_slot(db_session, facility, doctor, datetime(2025, 1, 6, 9, 0), datetime(2025, 1, 6, 9, 30))
        appointment = create_appointment(
            db_session, facility, doctor, datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 6, 10, 30)
        )
        db_session.commit()

        slots = client.get(
            f"/api/facilities/{facility.id}/availability-slots",
            params={"start_date": "2025-01-06", "end_date": "2025-01-06"},
        ).json()

        assert [s["id"] for s in slots] == [slot.id, -appointment.id]
        assert slots[1]["is_virtual"] is True
        assert slots[1]["status"] == "booked"

    def test_reserve_book_cancel_flow(self, client, db_session, facility_and_doctor):
        """Test an open slot through reserve, book and cancel."""
        facility, doctor = facility_and_doctor
        slot = create_slot(db_session, facility, doctor, datetime(2030, 1, 7, 9, 0), datetime(2030, 1, 7, 9, 30))
        db_session.commit()
        base = f"/api/facilities/{facility.id}"

        reserved = client.post(f"{base}/availability-slots/{slot.id}/reserve")
        assert reserved.status_code == 200
        assert reserved.json()["status"] == "reserved"
        assert reserved.json()["reserved_until"] is not None

        assert client.post(f"{base}/availability-slots/{slot.id}/reserve").status_code == 409

        booked = client.post(f"{base}/availability-slots/{slot.id}/book", json={"patient_id": 42})
        assert booked.status_code == 201
        appointment = booked.json()
        assert appointment["availability_slot_id"] == slot.id
        assert appointment["status"] == "scheduled"

        calendar = client.get(
            f"{base}/availability-slots", params={"start_date": "2030-01-07", "end_date": "2030-01-07"}
        ).json()
        assert (calendar[0]["appointment_id"], calendar[0]["patient_id"]) == (appointment["id"], 42)

        assert client.post(f"{base}/availability-slots/{slot.id}/book", json={"patient_id": 43}).status_code == 409

        cancelled = client.post(f"{base}/appointments/{appointment['id']}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        db_session.refresh(slot)
        assert slot.status == "open"

    def test_slot_of_other_facility_not_found(self, client, db_session):
        """Test that slot transitions are scoped by facility."""
        facility, other = create_facility(db_session, "A"), create_facility(db_session, "B")
        doctor = create_doctor(db_session)
        slot = create_slot(db_session, other, doctor, datetime(2030, 1, 7, 9, 0), datetime(2030, 1, 7, 9, 30))
        db_session.commit()

        assert client.post(f"/api/facilities/{facility.id}/availability-slots/{slot.id}/reserve").status_code == 404
        assert client.post(f"/api/facilities/{facility.id}/appointments/999/cancel").status_code == 404
