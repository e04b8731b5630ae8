"""
Service offering model.

A service offered by a doctor at a facility (e.g. "New patient consult").
Rules may be scoped to an offering; generated slots inherit it.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, ForeignKey, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class ServiceOffering(Base):
    """Service offered by a doctor at a facility."""

    __tablename__ = "service_offerings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"))
    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    default_duration_minutes: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Default appointment length; booking falls back to 30 minutes when unset."""

    active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ServiceOffering(id={self.id}, facility_id={self.facility_id}, doctor_id={self.doctor_id}, name='{self.name}')>"
