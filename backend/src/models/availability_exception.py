"""
Availability exception model representing blocked or overridden periods.

Facility staff create exceptions ad hoc (e.g. by drag-selecting a day range
in the calendar) to stop slot generation for a doctor. An exception either
references a specific rule or applies to the whole (facility, doctor) pair.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, TIMESTAMP, ForeignKey, Index, CheckConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_EXCEPTION_REASON_LENGTH
from core.database import Base


class AvailabilityException(Base):
    """
    Blackout or override period for a doctor at a facility.

    The type tag ('blocked', 'override', 'emergency') is for display and
    reporting only: every type blocks slot generation on the dates it covers.
    """

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the availability exception."""

    availability_rule_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("availability_rules.id", ondelete="CASCADE"), nullable=True
    )
    """Rule this exception targets. Null means it applies to the facility/doctor pair."""

    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"))
    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))

    start_at: Mapped[datetime] = mapped_column(DateTime)
    """Start of the exception (facility wall-clock time)."""

    end_at: Mapped[datetime] = mapped_column(DateTime)
    """End of the exception, inclusive (facility wall-clock time)."""

    type: Mapped[str] = mapped_column(String(20), default="blocked")
    """One of 'blocked', 'override', 'emergency'."""

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_EXCEPTION_REASON_LENGTH), nullable=True)
    """Free-text reason shown to staff (e.g. "Conference")."""

    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    """Any other metadata, passed through untouched."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    availability_rule = relationship("AvailabilityRule", back_populates="availability_exceptions")
    facility = relationship("Facility", back_populates="availability_exceptions")

    # Table constraints and indexes
    __table_args__ = (
        CheckConstraint("start_at <= end_at", name="check_exception_time_range"),
        CheckConstraint(
            "type IN ('blocked', 'override', 'emergency')",
            name="check_exception_type",
        ),
        Index('idx_availability_exceptions_pair_range', 'facility_id', 'doctor_id', 'start_at', 'end_at'),
        Index('idx_availability_exceptions_rule', 'availability_rule_id'),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityException(id={self.id}, rule_id={self.availability_rule_id}, "
            f"facility_id={self.facility_id}, doctor_id={self.doctor_id}, "
            f"{self.start_at}-{self.end_at}, type={self.type})>"
        )
