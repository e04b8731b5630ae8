"""
Shared types for slot generation.

This module contains the data classes passed between the generation
pipeline stages (synthesizer -> writer -> orchestrator) so each stage stays
independent of the ORM.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

from core.constants import DEFAULT_SLOT_CAPACITY, SLOT_STATUS_OPEN


@dataclass(frozen=True)
class SlotDraft:
    """
    In-memory candidate slot that has not been persisted yet.

    Drafts are produced by the slot synthesizer and filtered against existing
    slots by the batch writer before insertion.
    """
    facility_id: int
    doctor_id: int
    start_at: datetime  # Facility wall-clock time
    end_at: datetime  # Facility wall-clock time, exclusive
    service_offering_id: Optional[int] = None
    created_from_rule_id: Optional[int] = None
    status: str = SLOT_STATUS_OPEN
    capacity: int = DEFAULT_SLOT_CAPACITY

    @property
    def window_key(self) -> Tuple[datetime, datetime]:
        """(start_at, end_at) pair used for duplicate detection."""
        return (self.start_at, self.end_at)

    def to_row(self, stamped_at: datetime) -> dict[str, Any]:
        """Convert to a row for a bulk INSERT, stamping audit timestamps."""
        return {
            "facility_id": self.facility_id,
            "doctor_id": self.doctor_id,
            "service_offering_id": self.service_offering_id,
            "start_at": self.start_at,
            "end_at": self.end_at,
            "status": self.status,
            "capacity": self.capacity,
            "reserved_until": None,
            "created_from_rule_id": self.created_from_rule_id,
            "created_at": stamped_at,
            "updated_at": stamped_at,
        }


@dataclass
class GenerationSummary:
    """Result of one slot generation run."""
    rules_processed: int = 0
    total_slots_created: int = 0
    failed_rule_ids: List[int] = field(default_factory=list)

    @property
    def rules_failed(self) -> int:
        return len(self.failed_rule_ids)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "rules_processed": self.rules_processed,
            "total_slots_created": self.total_slots_created,
            "rules_failed": self.rules_failed,
            "failed_rule_ids": list(self.failed_rule_ids),
        }
