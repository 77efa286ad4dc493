"""
Database schema initialization.

Creates the automod tables and their indexes and records the schema version.
All ``created_at``/``updated_at`` columns hold UTC ISO-8601 strings written by
the application, so time-window comparisons are plain string comparisons.
"""

import aiosqlite

from modshield.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes for the automod store."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Per-guild automod config, stored as a camelCase JSON document
        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_config (
                guild_id INTEGER PRIMARY KEY,
                config TEXT NOT NULL DEFAULT '{}',
                updated_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_violations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL DEFAULT 0,
                message_id INTEGER NOT NULL DEFAULT 0,
                violation_type TEXT NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                action_taken TEXT NOT NULL DEFAULT '',
                severity INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                moderator_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                duration_ms INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)

        # Durable message events; only a hash of the content is kept
        await db.execute("""
            CREATE TABLE IF NOT EXISTS message_tracking (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                content_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_violations_lookup ON automod_violations(guild_id, user_id, created_at)"
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_violations_created ON automod_violations(created_at)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_actions_lookup ON moderation_actions(guild_id, user_id, created_at)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_message_tracking_lookup ON message_tracking(guild_id, user_id, created_at)"
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_message_tracking_created ON message_tracking(created_at)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
