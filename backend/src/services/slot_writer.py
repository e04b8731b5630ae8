"""
Idempotent batch writer for generated slots.

Drops drafts whose (facility, doctor, start_at, end_at) key already exists,
then inserts the survivors in fixed-size batches.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Sequence, Set, Tuple

from sqlalchemy import insert
from sqlalchemy.orm import Session

from core.constants import SLOT_INSERT_BATCH_SIZE
from models import AvailabilitySlot
from shared_types.availability import SlotDraft
from utils.availability_queries import get_existing_slot_windows
from utils.datetime_utils import facility_now

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]  # (facility_id, doctor_id)
WindowKey = Tuple[datetime, datetime]  # (start_at, end_at)


class SlotBatchWriter:
    """
    Writes draft slots without ever creating a duplicate key.

    The duplicate check and the inserts run in the caller's transaction; the
    caller commits. If the duplicate-check query fails the error propagates
    and nothing is inserted. The unique constraint on availability_slots is
    the backstop for concurrent writers on the same pair.
    """

    def __init__(self, db: Session, batch_size: int = SLOT_INSERT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.db = db
        self.batch_size = batch_size

    def write(self, drafts: Sequence[SlotDraft]) -> int:
        """
        Insert the drafts that do not exist yet.

        Args:
            drafts: Candidate slots, usually every draft of one rule

        Returns:
            Number of slots actually inserted
        """
        if not drafts:
            return 0

        new_drafts = self.filter_new(drafts)
        if not new_drafts:
            return 0

        stamped_at = facility_now()
        rows = [draft.to_row(stamped_at) for draft in new_drafts]
        for offset in range(0, len(rows), self.batch_size):
            batch = rows[offset:offset + self.batch_size]
            self.db.execute(insert(AvailabilitySlot), batch)
            logger.debug(f"Inserted batch of {len(batch)} slot(s)")

        return len(rows)

    def filter_new(self, drafts: Sequence[SlotDraft]) -> List[SlotDraft]:
        """
        Drop drafts whose key is already persisted or repeated earlier in the input.

        Existing slots are looked up once per facility/doctor pair, over the
        range [earliest draft start, latest draft end].
        """
        by_pair: Dict[PairKey, List[SlotDraft]] = defaultdict(list)
        for draft in drafts:
            by_pair[(draft.facility_id, draft.doctor_id)].append(draft)

        survivors: List[SlotDraft] = []
        for (facility_id, doctor_id), pair_drafts in by_pair.items():
            range_start = min(d.start_at for d in pair_drafts)
            range_end = max(d.end_at for d in pair_drafts)
            seen: Set[WindowKey] = get_existing_slot_windows(
                self.db, facility_id, doctor_id, range_start, range_end
            )

            skipped = 0
            for draft in pair_drafts:
                if draft.window_key in seen:
                    skipped += 1
                    continue
                seen.add(draft.window_key)
                survivors.append(draft)

            if skipped:
                logger.debug(
                    f"Skipped {skipped} existing slot(s) for facility {facility_id}, doctor {doctor_id}"
                )

        return survivors
