"""
Availability rule model for recurring weekly schedules.

A rule says "doctor D works at facility F every <weekday> from <start> to
<end>, in slots of N minutes". The slot generation job expands active rules
into concrete AvailabilitySlot rows. Rules are deactivated, never deleted, so
generated slots keep a valid back-reference.
"""

from datetime import time, datetime
from typing import Any, Dict, Optional

from sqlalchemy import Time, TIMESTAMP, ForeignKey, Index, CheckConstraint, Boolean, JSON, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AvailabilityRule(Base):
    """
    Recurring weekly availability for one (doctor, facility, service) triple.

    Multiple rules per day are allowed (e.g. a morning and an afternoon
    session). Slot starts are spaced by slot_interval_minutes, which defaults
    to the slot duration; a smaller interval produces overlapping slots and a
    larger one leaves gaps.
    """

    __tablename__ = "availability_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the rule."""

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    """Doctor the rule generates slots for."""

    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"))
    """Facility where the slots take place."""

    service_offering_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("service_offerings.id", ondelete="CASCADE"), nullable=True
    )
    """Optional service offering the slots are reserved for."""

    day_of_week: Mapped[int] = mapped_column(SmallInteger)
    """
    Day of the week, Sunday first (0=Sunday, 1=Monday, ..., 6=Saturday).
    """

    start_time: Mapped[time] = mapped_column(Time)
    """Start of the working window (time of day)."""

    end_time: Mapped[time] = mapped_column(Time)
    """End of the working window (time of day). Must be after start_time."""

    slot_duration_minutes: Mapped[int] = mapped_column()
    """Length of each generated slot in minutes."""

    slot_interval_minutes: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Minutes between consecutive slot starts. Null means back-to-back slots."""

    active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Only active rules are expanded by the generation job."""

    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    """Opaque metadata passed through for the calendar UI."""

    # Metadata
    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp when the rule was created."""

    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp when the rule was last updated."""

    # Relationships
    doctor = relationship("Doctor", back_populates="availability_rules")
    facility = relationship("Facility", back_populates="availability_rules")
    availability_exceptions = relationship("AvailabilityException", back_populates="availability_rule")
    availability_slots = relationship("AvailabilitySlot", back_populates="created_from_rule")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_rule_day_of_week"),
        CheckConstraint("start_time < end_time", name="check_rule_time_window"),
        CheckConstraint("slot_duration_minutes > 0", name="check_rule_slot_duration"),
        CheckConstraint(
            "slot_interval_minutes IS NULL OR slot_interval_minutes > 0",
            name="check_rule_slot_interval",
        ),
        Index('idx_availability_rules_doctor_facility', 'doctor_id', 'facility_id'),
        Index('idx_availability_rules_active', 'active'),
    )

    @property
    def effective_interval_minutes(self) -> int:
        """Spacing between slot starts, defaulting to the slot duration."""
        return self.slot_interval_minutes or self.slot_duration_minutes

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRule(id={self.id}, doctor_id={self.doctor_id}, facility_id={self.facility_id}, "
            f"day={self.day_of_week}, {self.start_time}-{self.end_time}, active={self.active})>"
        )
