"""
Unit tests for the background job schedulers.

The APScheduler instance is replaced with a mock so no real jobs run; the
job bodies are exercised directly.
"""

from datetime import date
from unittest.mock import Mock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from factories import create_doctor, create_facility, create_rule
from models import AvailabilitySlot
from services.reservation_release_service import ReservationReleaseService
from services.slot_generation_scheduler import SlotGenerationScheduler
from utils.datetime_utils import FACILITY_TZ


class TestSlotGenerationScheduler:
    """Test the daily generation job."""

    def test_scheduler_uses_facility_timezone(self):
        """Test that cron times are interpreted on the facility clock."""
        assert SlotGenerationScheduler().scheduler.timezone == FACILITY_TZ

    @pytest.mark.asyncio
    async def test_start_registers_single_instance_daily_job(self):
        """Test the registered job id, trigger and overlap guard."""
        service = SlotGenerationScheduler()
        service.scheduler = Mock()

        await service.start_scheduler()

        service.scheduler.add_job.assert_called_once()
        args, kwargs = service.scheduler.add_job.call_args
        assert isinstance(args[1], CronTrigger)
        assert kwargs["id"] == "generate_availability_slots"
        assert kwargs["max_instances"] == 1
        service.scheduler.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_twice_is_ignored(self):
        """Test that a second start does not register the job again."""
        service = SlotGenerationScheduler()
        service.scheduler = Mock()

        await service.start_scheduler()
        await service.start_scheduler()

        assert service.scheduler.add_job.call_count == 1

    @pytest.mark.asyncio
    async def test_stop_shuts_down_started_scheduler(self):
        """Test that stop only shuts down a running scheduler."""
        service = SlotGenerationScheduler()
        service.scheduler = Mock()

        await service.stop_scheduler()
        service.scheduler.shutdown.assert_not_called()

        await service.start_scheduler()
        await service.stop_scheduler()
        service.scheduler.shutdown.assert_called_once_with(wait=True)

    def test_execute_generation_covers_rolling_window(self, session_factory, patched_db_context):
        """Test a run from today through 30 days ahead, then an idempotent rerun."""
        setup = session_factory()
        create_rule(setup, create_facility(setup), create_doctor(setup), day_of_week=1)
        setup.commit()
        setup.close()

        # 2025-01-01 + 30 days reaches 2025-01-31: four Mondays
        with patch("services.slot_generation_scheduler.facility_today", return_value=date(2025, 1, 1)):
            first = SlotGenerationScheduler()._execute_generation_logic()
            second = SlotGenerationScheduler()._execute_generation_logic()

        assert first.total_slots_created == 24
        assert second.total_slots_created == 0
        check = session_factory()
        assert check.query(AvailabilitySlot).count() == 24
        check.close()

    def test_execute_generation_error_returns_none(self):
        """Test that a run failing before completion is logged, not raised."""
        with patch("services.slot_generation_scheduler.get_db_context", side_effect=RuntimeError("db down")):
            assert SlotGenerationScheduler()._execute_generation_logic() is None


class TestReservationReleaseScheduler:
    """Test the periodic release job registration."""

    @pytest.mark.asyncio
    async def test_start_registers_single_instance_job(self):
        """Test the registered job id, trigger and overlap guard."""
        service = ReservationReleaseService()
        service.scheduler = Mock()

        await service.start_scheduler()

        args, kwargs = service.scheduler.add_job.call_args
        assert isinstance(args[1], CronTrigger)
        assert kwargs["id"] == "release_expired_reservations"
        assert kwargs["max_instances"] == 1

    @pytest.mark.asyncio
    async def test_run_release_offloads_to_thread(self):
        """Test that the async entry point runs the blocking body."""
        service = ReservationReleaseService()

        with patch.object(service, "_execute_release_logic") as body:
            await service._run_release()

        body.assert_called_once()
