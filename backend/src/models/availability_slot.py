"""
Availability slot model: a concrete bookable unit of time.

Slots are created open by the generation job (with a back-reference to the
rule) or on demand by the booking flow (no rule). They move between open,
reserved, booked and cancelled and are never hard-deleted.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, TIMESTAMP, ForeignKey, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import DEFAULT_SLOT_CAPACITY, SLOT_STATUS_OPEN, SLOT_STATUSES
from core.database import Base


class AvailabilitySlot(Base):
    """
    Bookable slot for a doctor at a facility.

    No two slots may share (facility_id, doctor_id, start_at, end_at). The
    generation job deduplicates before inserting; the unique constraint is the
    backstop when two writers race on the same pair.
    """

    __tablename__ = "availability_slots"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the slot."""

    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"))
    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    service_offering_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("service_offerings.id", ondelete="CASCADE"), nullable=True
    )

    start_at: Mapped[datetime] = mapped_column(DateTime)
    """Slot start (facility wall-clock time)."""

    end_at: Mapped[datetime] = mapped_column(DateTime)
    """Slot end, exclusive (facility wall-clock time)."""

    status: Mapped[str] = mapped_column(String(20), default=SLOT_STATUS_OPEN)
    """
    Lifecycle status. Valid values:
    - 'open': bookable
    - 'reserved': held until reserved_until while booking is confirmed
    - 'booked': an appointment is attached
    - 'cancelled': withdrawn by staff
    """

    capacity: Mapped[int] = mapped_column(default=DEFAULT_SLOT_CAPACITY)
    """Always 1; multi-booking is not supported."""

    reserved_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    """Hold expiry, only meaningful while status is 'reserved'."""

    created_from_rule_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("availability_rules.id", ondelete="SET NULL"), nullable=True
    )
    """Rule that generated this slot. Null for manually created slots."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    facility = relationship("Facility", back_populates="availability_slots")
    doctor = relationship("Doctor", back_populates="availability_slots")
    created_from_rule = relationship("AvailabilityRule", back_populates="availability_slots")
    appointments = relationship("Appointment", back_populates="availability_slot")

    __table_args__ = (
        UniqueConstraint(
            'facility_id', 'doctor_id', 'start_at', 'end_at',
            name='uq_availability_slots_facility_doctor_window',
        ),
        CheckConstraint("start_at < end_at", name="check_slot_time_range"),
        CheckConstraint("capacity >= 1", name="check_slot_capacity"),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{status}'" for status in SLOT_STATUSES) + ")",
            name="check_slot_status",
        ),
        Index('idx_availability_slots_start_at', 'start_at'),
        Index('idx_availability_slots_doctor_start', 'doctor_id', 'start_at'),
        Index('idx_availability_slots_facility_start', 'facility_id', 'start_at'),
        Index('idx_availability_slots_status_reserved_until', 'status', 'reserved_until'),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilitySlot(id={self.id}, facility_id={self.facility_id}, doctor_id={self.doctor_id}, "
            f"{self.start_at}-{self.end_at}, status={self.status})>"
        )
