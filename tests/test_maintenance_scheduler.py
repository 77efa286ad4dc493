"""Tests for the periodic maintenance scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from modshield.automod.message_tracker import MessageTracker
from modshield.scheduler.maintenance_scheduler import MaintenanceScheduler


@pytest.fixture
def database():
    db = MagicMock()
    db.prune_tracked_messages = AsyncMock(return_value=3)
    db.cleanup_old_violations = AsyncMock(return_value=0)
    return db


class TestMaintenanceScheduler:

    @pytest.mark.asyncio
    async def test_run_once(self, database):
        tracker = MessageTracker(retention_ms=1000)
        tracker.record(1, 2, 3, "stale", 0)
        scheduler = MaintenanceScheduler(database, tracker, lambda: 3600, tracked_message_ttl=120, violation_retention_days=7)

        await scheduler.run_once()

        database.prune_tracked_messages.assert_awaited_once_with(120)
        database.cleanup_old_violations.assert_awaited_once_with(7)
        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_loop_survives_errors_and_shuts_down(self, database):
        database.prune_tracked_messages.side_effect = [RuntimeError("locked"), 0, 0, 0, 0, 0]
        scheduler = MaintenanceScheduler(database, MessageTracker(), lambda: 0.01)

        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.05)
        await scheduler.shutdown()

        assert not scheduler.is_running
        assert database.prune_tracked_messages.await_count >= 2

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, database):
        scheduler = MaintenanceScheduler(database, MessageTracker(), lambda: 60)
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self, database):
        scheduler = MaintenanceScheduler(database, MessageTracker(), lambda: 60)
        await scheduler.shutdown()
        assert not scheduler.is_running
