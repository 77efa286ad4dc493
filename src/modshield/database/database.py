"""
Central database coordinator for Modshield.

The Database class owns the single aiosqlite connection and delegates to
specialized modules:

- schema: table and index creation
- violation store: violations, moderation actions, tracked messages
- config repository: per-guild automod config documents
- maintenance: retention, VACUUM and ANALYZE
- performance: query timing and statistics

It is the violation store the automod engine talks to. Writes go through the
connection's serialised transaction; reads use the shared connection directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from modshield.configuration.app_configuration import app_config
from modshield.database.config_repo import AutomodConfigRepository
from modshield.database.db_connection import ConnectionManager
from modshield.database.db_maintenance import MaintenanceOperations
from modshield.database.db_perf_mon import DatabasePerformanceMonitor
from modshield.database.db_schema import SchemaManager
from modshield.database.violation_store import IdLike, ViolationStore
from modshield.datatypes.action_datatypes import ActionType, ModerationActionRecord, ViolationRecord
from modshield.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/modshield.db").resolve()


class Database:
    """
    Coordinator for all database operations.

    Lifecycle:
        1. ``await initialize()`` at program startup
        2. use the store methods
        3. ``await shutdown()`` at program end
    """

    def __init__(self, db_path: Path = DB_PATH):
        """
        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialized = False

        self._connection = ConnectionManager()
        self.db_perf_mon = DatabasePerformanceMonitor()
        self._violations = ViolationStore(self.db_perf_mon)
        self._configs = AutomodConfigRepository(self.db_perf_mon)
        self._maintenance = MaintenanceOperations(self.db_perf_mon)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema. Safe to call more than once.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self._connection.open(self.db_path)
            await SchemaManager.initialize_schema(self._connection.connection)
            self._initialized = True
            logger.info("[DATABASE] Database initialized at %s", self.db_path)
            return True
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            await self._connection.close()
            return False

    async def shutdown(self) -> None:
        """Close the connection."""
        if not self._initialized:
            return
        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    # ------------------------------------------------------------------
    # Violation store
    # ------------------------------------------------------------------

    async def log_violation(
        self,
        guild_id: IdLike,
        user_id: IdLike,
        channel_id: IdLike,
        message_id: IdLike,
        violation_type: str,
        content: str,
        action_taken: str,
        severity: int,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Persist a violation and return its id."""
        async with self._connection.transaction() as db:
            return await self._violations.log_violation(
                db, guild_id, user_id, channel_id, message_id,
                violation_type, content, action_taken, severity, created_at,
            )

    async def get_violations(
        self,
        guild_id: IdLike,
        user_id: IdLike,
        since: datetime,
        exclude_id: Optional[int] = None,
    ) -> List[ViolationRecord]:
        """Violations of a user at or after ``since``, newest first."""
        async with self._connection.read() as db:
            return await self._violations.get_violations(db, guild_id, user_id, since, exclude_id)

    async def log_moderation_action(
        self,
        guild_id: IdLike,
        user_id: IdLike,
        moderator_id: IdLike,
        action: Union[ActionType, str],
        reason: str,
        duration_ms: int = 0,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Persist a moderation action and return its id."""
        async with self._connection.transaction() as db:
            return await self._violations.log_moderation_action(
                db, guild_id, user_id, moderator_id, action, reason, duration_ms, created_at,
            )

    async def get_moderation_actions(self, guild_id: IdLike, user_id: IdLike, since: datetime) -> List[ModerationActionRecord]:
        """Moderation actions applied to a user at or after ``since``, newest first."""
        async with self._connection.read() as db:
            return await self._violations.get_moderation_actions(db, guild_id, user_id, since)

    async def track_message(
        self,
        guild_id: IdLike,
        user_id: IdLike,
        content: str,
        channel_id: IdLike,
        created_at: Optional[datetime] = None,
    ) -> None:
        """Record a message event durably; only a hash of the content is stored."""
        async with self._connection.transaction() as db:
            await self._violations.track_message(db, guild_id, user_id, content, channel_id, created_at)

    async def get_tracked_message_hashes(self, guild_id: IdLike, user_id: IdLike, since: datetime) -> List[str]:
        async with self._connection.read() as db:
            return await self._violations.get_tracked_message_hashes(db, guild_id, user_id, since)

    # ------------------------------------------------------------------
    # Automod config documents
    # ------------------------------------------------------------------

    async def get_automod_config(self, guild_id: IdLike) -> Optional[Dict[str, Any]]:
        """Stored config document of a guild, or None."""
        async with self._connection.read() as db:
            return await self._configs.get(db, guild_id)

    async def save_automod_config(self, guild_id: IdLike, document: Dict[str, Any]) -> None:
        """Replace the stored config document of a guild."""
        async with self._connection.transaction() as db:
            await self._configs.save(db, guild_id, document)

    async def list_configured_guilds(self) -> List[int]:
        async with self._connection.read() as db:
            return await self._configs.list_guild_ids(db)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def prune_tracked_messages(self, max_age_seconds: float = 3600) -> int:
        """
        Delete tracked messages older than ``max_age_seconds``.

        Returns:
            Number of rows deleted, or -1 on error
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        async with self._connection.transaction() as db:
            return await self._maintenance.prune_tracked_messages(db, cutoff)

    async def cleanup_old_violations(self, days_to_keep: int = 30) -> int:
        """
        Delete violations older than ``days_to_keep`` days.

        Returns:
            Number of rows deleted, or -1 on error
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        async with self._connection.transaction() as db:
            return await self._maintenance.cleanup_old_violations(db, cutoff)

    async def vacuum(self) -> bool:
        async with self._connection.read() as db:
            return await self._maintenance.vacuum(db)

    async def analyze(self) -> bool:
        async with self._connection.transaction() as db:
            return await self._maintenance.analyze(db)

    def get_db_performance_stats(self) -> Dict[str, Dict[str, float]]:
        return self.db_perf_mon.get_statistics()

    def reset_db_performance_stats(self) -> None:
        self.db_perf_mon.reset()


_database: Optional[Database] = None


def get_db() -> Database:
    """
    Get the global Database instance, creating it from the app config on first use.

    Returns:
        Database: The global Database manager instance.
    """
    global _database
    if _database is None:
        _database = Database(app_config.database_path)
    return _database
