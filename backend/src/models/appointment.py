"""
Appointment model representing a patient's booking with a doctor.

Appointments are owned by the booking flow. The scheduling core only reads
them (calendar reconciliation) and links them to slots when a slot is booked.
An appointment may exist without a linked slot (e.g. created directly by
staff), so every consumer must tolerate availability_slot_id being null.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Index, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Appointment(Base):
    """
    Appointment entity representing a scheduled visit between a patient and a doctor.

    The appointment carries its own start/end times. When it is linked to a
    slot, the slot's window is authoritative for calendar display.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the appointment."""

    patient_id: Mapped[int] = mapped_column()
    """Reference to the patient who booked this appointment (patients are managed elsewhere)."""

    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"))
    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    service_offering_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("service_offerings.id", ondelete="SET NULL"), nullable=True
    )

    availability_slot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("availability_slots.id", ondelete="SET NULL"), nullable=True
    )
    """Slot this appointment occupies, if any."""

    start_at: Mapped[datetime] = mapped_column(DateTime)
    end_at: Mapped[datetime] = mapped_column(DateTime)

    status: Mapped[str] = mapped_column(String(50))
    """
    Current status of the appointment. Valid values include 'scheduled',
    'checked_in', 'in_progress', 'completed', 'no_show' and 'cancelled'.
    """

    canceled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp when the appointment was canceled (if applicable)."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    availability_slot = relationship("AvailabilitySlot", back_populates="appointments")
    """Relationship to the slot this appointment occupies."""

    # Table indexes for performance
    __table_args__ = (
        Index('idx_appointments_patient', 'patient_id'),
        Index('idx_appointments_status', 'status'),
        Index('idx_appointments_facility_start', 'facility_id', 'start_at'),
        Index('idx_appointments_slot', 'availability_slot_id'),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, "
            f"slot_id={self.availability_slot_id}, {self.start_at}-{self.end_at}, status={self.status})>"
        )
