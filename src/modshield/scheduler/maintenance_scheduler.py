"""Periodic retention for automod data.

Every interval the scheduler:

- deletes durable tracked-message rows older than the tracked message TTL
- deletes violations older than the retention period
- drops idle keys from the in-memory message tracker
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from modshield.automod.message_tracker import MessageTracker
from modshield.database.database import Database
from modshield.util.logger import get_logger

logger = get_logger("maintenance_scheduler")


class MaintenanceScheduler:
    """
    Background task running automod retention on a fixed interval.

    Args:
        database: Database whose tracked messages and violations are pruned.
        tracker: In-memory tracker whose idle keys are purged.
        get_interval: Callable returning the interval in seconds (called at start).
        tracked_message_ttl: Age in seconds after which tracked messages are deleted.
        violation_retention_days: Age in days after which violations are deleted.
    """

    def __init__(
        self,
        database: Database,
        tracker: MessageTracker,
        get_interval: Callable[[], float],
        tracked_message_ttl: float = 3600,
        violation_retention_days: int = 30,
    ) -> None:
        self._database = database
        self._tracker = tracker
        self._get_interval = get_interval
        self._tracked_message_ttl = tracked_message_ttl
        self._violation_retention_days = violation_retention_days
        self._task: asyncio.Task | None = None

    async def run_once(self) -> None:
        """Run one maintenance pass. Each step is independent of the others."""
        pruned = await self._database.prune_tracked_messages(self._tracked_message_ttl)
        if pruned > 0:
            logger.info("[MAINTENANCE] Pruned %d tracked messages", pruned)

        removed = await self._database.cleanup_old_violations(self._violation_retention_days)
        if removed > 0:
            logger.info("[MAINTENANCE] Removed %d expired violations", removed)

        idle = self._tracker.purge_idle(int(time.time() * 1000))
        if idle:
            logger.debug("[MAINTENANCE] Purged %d idle tracker keys", idle)

    async def _run_loop(self, interval: float) -> None:
        """Infinite loop: run maintenance, sleep, repeat."""
        logger.info("[MAINTENANCE] Starting periodic maintenance (interval=%.1fs)", interval)
        try:
            while True:
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[MAINTENANCE] Unexpected error during maintenance: %s", exc)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[MAINTENANCE] Periodic maintenance cancelled")
            raise

    def start(self) -> None:
        """Start the background task if not already running."""
        if self._task and not self._task.done():
            logger.warning("[MAINTENANCE] Maintenance task already running")
            return
        interval = self._get_interval()
        self._task = asyncio.create_task(self._run_loop(interval))

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def shutdown(self) -> None:
        """Stop the task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[MAINTENANCE] Scheduler shutdown complete")
