# pyright: reportMissingTypeStubs=false
"""
Scheduler for daily availability slot generation.

Runs once a day (SLOT_GENERATION_HOUR, facility time) and generates slots for
all facilities and doctors from today through SLOT_GENERATION_DAYS_AHEAD days
ahead. Because generation skips existing slots, each run only fills in the
newly reachable day plus anything added since the last run.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore

from core.config import SLOT_GENERATION_DAYS_AHEAD, SLOT_GENERATION_HOUR
from core.constants import SCHEDULER_MAX_INSTANCES, SCHEDULER_MISFIRE_GRACE_SECONDS
from core.database import get_db_context
from services.slot_generation_service import SlotGenerationService
from shared_types.availability import GenerationSummary
from utils.datetime_utils import FACILITY_TZ, facility_today

logger = logging.getLogger(__name__)

# Global singleton instance
_slot_generation_scheduler: Optional['SlotGenerationScheduler'] = None


class SlotGenerationScheduler:
    """
    Scheduler for running slot generation.

    Note: Database sessions are created fresh for each scheduler run
    to avoid stale session issues.
    """

    def __init__(self):
        # Configure scheduler to use the facility timezone
        self.scheduler = AsyncIOScheduler(timezone=FACILITY_TZ)
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler for slot generation.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Slot generation scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_generation,
            CronTrigger(hour=SLOT_GENERATION_HOUR, minute=0),
            id="generate_availability_slots",
            name="Generate availability slots",
            replace_existing=True,
            max_instances=SCHEDULER_MAX_INSTANCES,  # Prevent overlapping runs
            misfire_grace_time=SCHEDULER_MISFIRE_GRACE_SECONDS,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(
            f"Slot generation scheduler started (runs daily at {SLOT_GENERATION_HOUR:02d}:00, "
            f"{SLOT_GENERATION_DAYS_AHEAD} days ahead)"
        )

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Slot generation scheduler stopped")

    async def _run_generation(self) -> None:
        """
        Run slot generation.

        Offloads the blocking database work to a thread so the FastAPI event
        loop keeps serving requests.
        """
        logger.info("Starting scheduled slot generation...")
        await asyncio.to_thread(self._execute_generation_logic)

    def _execute_generation_logic(self) -> Optional[GenerationSummary]:
        """
        Execute one generation run (synchronous/blocking operations).

        Returns:
            The run summary, or None if the run failed before completing
        """
        start_date = facility_today()
        end_date = start_date + timedelta(days=SLOT_GENERATION_DAYS_AHEAD)
        try:
            with get_db_context() as db:
                summary = SlotGenerationService(db).run(start_date=start_date, end_date=end_date)
        except Exception as e:
            logger.exception(f"❌ Error during scheduled slot generation: {e}")
            # Don't re-raise - allow scheduler to continue
            return None

        logger.info(
            f"✅ Scheduled slot generation completed: {summary.total_slots_created} slots, "
            f"{summary.rules_processed} rules ({summary.rules_failed} failed)"
        )
        return summary


def get_slot_generation_scheduler() -> SlotGenerationScheduler:
    """
    Get the global slot generation scheduler instance.

    Returns:
        SlotGenerationScheduler: The global scheduler instance
    """
    global _slot_generation_scheduler
    if _slot_generation_scheduler is None:
        _slot_generation_scheduler = SlotGenerationScheduler()
    return _slot_generation_scheduler


async def start_slot_generation_scheduler() -> None:
    """
    Start the global slot generation scheduler.

    This should be called during application startup.
    """
    scheduler = get_slot_generation_scheduler()
    await scheduler.start_scheduler()


async def stop_slot_generation_scheduler() -> None:
    """
    Stop the global slot generation scheduler.

    This should be called during application shutdown.
    """
    global _slot_generation_scheduler
    if _slot_generation_scheduler:
        await _slot_generation_scheduler.stop_scheduler()
