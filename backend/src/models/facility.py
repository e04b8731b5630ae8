"""
Facility model.

A facility is a clinic location whose staff manage doctor calendars. It is
reference data for the scheduling core: rules, exceptions and slots all
belong to exactly one facility.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Facility(Base):
    """Facility (clinic location) entity."""

    __tablename__ = "facilities"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the facility."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name of the facility."""

    active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Whether the facility is currently operating."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    availability_rules = relationship("AvailabilityRule", back_populates="facility")
    availability_exceptions = relationship("AvailabilityException", back_populates="facility")
    availability_slots = relationship("AvailabilitySlot", back_populates="facility")

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name='{self.name}')>"
