"""
Database maintenance operations.

Retention of tracked messages and old violations, plus VACUUM and ANALYZE.
Each operation logs its outcome and reports failure through its return value
instead of raising, so a periodic maintenance loop keeps running.
"""

from datetime import datetime

import aiosqlite

from modshield.database.db_perf_mon import DatabasePerformanceMonitor
from modshield.database.violation_store import to_db_timestamp
from modshield.util.logger import get_logger

logger = get_logger("database_maintenance")


class MaintenanceOperations:
    """Handles retention and optimization of the automod database."""

    def __init__(self, performance: DatabasePerformanceMonitor):
        """
        Args:
            performance: Performance monitor for tracking operation times
        """
        self._performance = performance

    async def prune_tracked_messages(self, db: aiosqlite.Connection, older_than: datetime) -> int:
        """
        Delete tracked message rows recorded before ``older_than``.

        Returns:
            Number of rows deleted, or -1 on error
        """
        try:
            with self._performance.timed("prune_tracked_messages"):
                cursor = await db.execute(
                    "DELETE FROM message_tracking WHERE created_at < ?",
                    (to_db_timestamp(older_than),),
                )
            logger.info("[MAINTENANCE] Pruned %d tracked messages older than %s", cursor.rowcount, older_than.isoformat())
            return cursor.rowcount
        except Exception as e:
            logger.error("[MAINTENANCE] Tracked message prune failed: %s", e)
            return -1

    async def cleanup_old_violations(self, db: aiosqlite.Connection, older_than: datetime) -> int:
        """
        Delete violations recorded before ``older_than``.

        Returns:
            Number of rows deleted, or -1 on error
        """
        try:
            with self._performance.timed("cleanup_old_violations"):
                cursor = await db.execute(
                    "DELETE FROM automod_violations WHERE created_at < ?",
                    (to_db_timestamp(older_than),),
                )
            logger.info("[MAINTENANCE] Cleaned up %d violations older than %s", cursor.rowcount, older_than.isoformat())
            return cursor.rowcount
        except Exception as e:
            logger.error("[MAINTENANCE] Violation cleanup failed: %s", e)
            return -1

    async def vacuum(self, db: aiosqlite.Connection) -> bool:
        """
        Reclaim free pages. Must run outside a transaction.

        Returns:
            True if vacuum succeeded, False otherwise
        """
        try:
            logger.info("[MAINTENANCE] Starting VACUUM operation")
            with self._performance.timed("VACUUM"):
                await db.execute("VACUUM")
            return True
        except Exception as e:
            logger.error("[MAINTENANCE] VACUUM failed: %s", e)
            return False

    async def analyze(self, db: aiosqlite.Connection) -> bool:
        """
        Refresh query planner statistics.

        Returns:
            True if analyze succeeded, False otherwise
        """
        try:
            with self._performance.timed("ANALYZE"):
                await db.execute("ANALYZE")
            return True
        except Exception as e:
            logger.error("[MAINTENANCE] ANALYZE failed: %s", e)
            return False
