# pyright: reportMissingTypeStubs=false
"""
Reservation release service.

A slot is reserved while a patient confirms a booking; reserved_until is the
hold expiry. This module periodically flips reservations whose hold has
elapsed back to 'open' using APScheduler, so abandoned holds become bookable
again.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore
from sqlalchemy.orm import Session

from core.config import RESERVATION_RELEASE_INTERVAL_MINUTES
from core.constants import SCHEDULER_MAX_INSTANCES, SLOT_STATUS_OPEN, SLOT_STATUS_RESERVED
from core.database import get_db_context
from models import AvailabilitySlot
from utils.datetime_utils import FACILITY_TZ, facility_now, to_wall_clock, wall_clock_now

logger = logging.getLogger(__name__)

# Global singleton instance
_reservation_release_service: Optional['ReservationReleaseService'] = None


class ReservationReleaseService:
    """
    Service for releasing expired slot reservations.

    The release itself is a single conditional bulk UPDATE, so it either
    applies or it doesn't; there is no partial state to clean up. It only
    touches reserved rows, which slot generation never creates, so it is safe
    to run alongside generation.
    """

    def __init__(self):
        """Initialize the release service."""
        # Configure scheduler to use the facility timezone
        self.scheduler = AsyncIOScheduler(timezone=FACILITY_TZ)
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler for releasing expired reservations.

        This should be called during application startup.
        Runs every RESERVATION_RELEASE_INTERVAL_MINUTES minutes (default 5).
        """
        if self._is_started:
            logger.warning("Reservation release scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_release,
            CronTrigger(minute=f"*/{RESERVATION_RELEASE_INTERVAL_MINUTES}"),
            id="release_expired_reservations",
            name="Release expired slot reservations",
            max_instances=SCHEDULER_MAX_INSTANCES,  # Prevent overlapping runs
            replace_existing=True,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(
            f"Reservation release scheduler started (every {RESERVATION_RELEASE_INTERVAL_MINUTES} minutes)"
        )

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Reservation release scheduler stopped")

    async def _run_release(self) -> None:
        """Scheduler entry point; blocking database work runs in a worker thread."""
        await asyncio.to_thread(self._execute_release_logic)

    def _execute_release_logic(self) -> None:
        """Run one release with a fresh session. Errors are logged, never raised."""
        try:
            with get_db_context() as db:
                ReservationReleaseService.release_expired_reservations(db)
        except Exception as e:
            logger.exception(f"Error during reservation release: {e}")

    @staticmethod
    def release_expired_reservations(db: Session, now: Optional[datetime] = None) -> int:
        """
        Release every reservation whose hold expired before now.

        Matches slots with status='reserved' and a non-null reserved_until
        earlier than now, and sets status='open', reserved_until=NULL in one
        UPDATE. Running it again with nothing newly expired changes nothing.
        Linked appointments are not touched.

        Args:
            db: Database session (committed here)
            now: Reference time (default: current facility time). Aware values
                are converted to facility wall-clock time.

        Returns:
            int: Number of slots released
        """
        cutoff = to_wall_clock(now) if now is not None else wall_clock_now()

        released = db.query(AvailabilitySlot).filter(
            AvailabilitySlot.status == SLOT_STATUS_RESERVED,
            AvailabilitySlot.reserved_until.isnot(None),
            AvailabilitySlot.reserved_until < cutoff,
        ).update(
            {
                AvailabilitySlot.status: SLOT_STATUS_OPEN,
                AvailabilitySlot.reserved_until: None,
                AvailabilitySlot.updated_at: facility_now(),
            },
            synchronize_session=False,
        )
        db.commit()

        released_count = int(released or 0)
        if released_count:
            logger.info(f"Released {released_count} expired reservations")
        else:
            logger.info("No expired reservations found")
        return released_count


def get_reservation_release_service() -> ReservationReleaseService:
    """
    Get the global reservation release service instance.

    Returns:
        ReservationReleaseService: The global service instance
    """
    global _reservation_release_service
    if _reservation_release_service is None:
        _reservation_release_service = ReservationReleaseService()
    return _reservation_release_service


async def start_reservation_release_scheduler() -> None:
    """
    Start the global reservation release scheduler.

    This should be called during application startup.
    """
    service = get_reservation_release_service()
    await service.start_scheduler()


async def stop_reservation_release_scheduler() -> None:
    """
    Stop the global reservation release scheduler.

    This should be called during application shutdown.
    """
    global _reservation_release_service
    if _reservation_release_service:
        await _reservation_release_service.stop_scheduler()
