"""
Storage of per-guild automod configuration documents.

A guild's configuration is stored as one JSON document and always replaced as
a whole. Merging onto defaults happens above this layer.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import aiosqlite

from modshield.database.db_perf_mon import DatabasePerformanceMonitor
from modshield.database.violation_store import IdLike, to_db_timestamp
from modshield.util.logger import get_logger

logger = get_logger("automod_config_repo")


class AutomodConfigRepository:
    """SQL operations for the ``automod_config`` table."""

    def __init__(self, performance: DatabasePerformanceMonitor):
        self._performance = performance

    async def get(self, db: aiosqlite.Connection, guild_id: IdLike) -> Optional[Dict[str, Any]]:
        """
        Return the stored document of a guild, or None if it has none.

        Raises:
            ValueError: If the stored document is not a JSON object.
        """
        with self._performance.timed("get_automod_config"):
            async with db.execute(
                "SELECT config FROM automod_config WHERE guild_id = ?", (int(guild_id),)
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None

        document = json.loads(row["config"] or "{}")
        if not isinstance(document, dict):
            raise ValueError(f"automod config of guild {guild_id} is not a JSON object")
        return document

    async def save(self, db: aiosqlite.Connection, guild_id: IdLike, document: Dict[str, Any]) -> None:
        """Insert or replace the document of a guild."""
        with self._performance.timed("save_automod_config"):
            await db.execute(
                """
                INSERT INTO automod_config (guild_id, config, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    config = excluded.config,
                    updated_at = excluded.updated_at
                """,
                (int(guild_id), json.dumps(document), to_db_timestamp()),
            )
        logger.debug("[CONFIG REPO] Saved automod config for guild %s", guild_id)

    async def list_guild_ids(self, db: aiosqlite.Connection) -> List[int]:
        async with db.execute("SELECT guild_id FROM automod_config ORDER BY guild_id") as cursor:
            rows = await cursor.fetchall()
        return [row["guild_id"] for row in rows]
