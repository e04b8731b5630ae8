"""
Doctor model.

Doctors are the practitioners whose calendars are generated from availability
rules. A doctor may work at several facilities; each rule pins one pair.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Doctor(Base):
    """Doctor entity."""

    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the doctor."""

    full_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Doctor's display name."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    availability_rules = relationship("AvailabilityRule", back_populates="doctor")
    availability_slots = relationship("AvailabilitySlot", back_populates="doctor")

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, full_name='{self.full_name}')>"
