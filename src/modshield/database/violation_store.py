"""
Violation, moderation action and message tracking persistence.

Violations feed the progressive punishment system: the engine sums the
severity of a user's violations over a trailing window. Moderation actions are
the audit trail of punishments applied. Message tracking keeps a durable,
content-hashed record of message events that survives restarts.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import List, Optional, Union

import aiosqlite

from modshield.database.db_perf_mon import DatabasePerformanceMonitor
from modshield.datatypes.action_datatypes import ActionType, ModerationActionRecord, ViolationRecord
from modshield.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from modshield.util.logger import get_logger

logger = get_logger("violation_store")

IdLike = Union[int, str, GuildID, UserID, ChannelID, MessageID]


def to_db_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a datetime as the fixed-width UTC string stored in every table."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def hash_content(content: str) -> str:
    """SHA-256 hex digest of message content; raw text is never stored."""
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


def _id(value: IdLike) -> int:
    return int(value)


class ViolationStore:
    """SQL operations for violations, moderation actions and tracked messages."""

    def __init__(self, performance: DatabasePerformanceMonitor):
        """
        Args:
            performance: Performance monitor for tracking query times
        """
        self._performance = performance

    # ------------------------------------------------------------------
    # Violations
    # ------------------------------------------------------------------

    async def log_violation(
        self,
        db: aiosqlite.Connection,
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
        """
        Insert a violation row.

        Returns:
            The id of the new row
        """
        with self._performance.timed("log_violation"):
            cursor = await db.execute(
                """
                INSERT INTO automod_violations
                    (guild_id, user_id, channel_id, message_id, violation_type, content, action_taken, severity, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _id(guild_id),
                    _id(user_id),
                    _id(channel_id),
                    _id(message_id),
                    str(violation_type),
                    content,
                    action_taken,
                    int(severity),
                    to_db_timestamp(created_at),
                ),
            )
            row_id = cursor.lastrowid

        logger.debug(
            "[VIOLATION STORE] Logged %s (severity %d) for user %s in guild %s",
            violation_type, severity, user_id, guild_id,
        )
        return row_id

    async def get_violations(
        self,
        db: aiosqlite.Connection,
        guild_id: IdLike,
        user_id: IdLike,
        since: datetime,
        exclude_id: Optional[int] = None,
    ) -> List[ViolationRecord]:
        """
        Violations of a user recorded at or after ``since``, newest first.

        Args:
            exclude_id: Optional row id left out of the result
        """
        query = """
            SELECT * FROM automod_violations
            WHERE guild_id = ? AND user_id = ? AND created_at >= ?
        """
        params: list = [_id(guild_id), _id(user_id), to_db_timestamp(since)]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(int(exclude_id))
        query += " ORDER BY created_at DESC, id DESC"

        with self._performance.timed("get_violations"):
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()

        return [
            ViolationRecord(
                id=row["id"],
                guild_id=GuildID(row["guild_id"]),
                user_id=UserID(row["user_id"]),
                channel_id=ChannelID(row["channel_id"]),
                message_id=MessageID(row["message_id"]),
                violation_type=row["violation_type"],
                content=row["content"],
                action_taken=row["action_taken"],
                severity=row["severity"],
                created_at=from_db_timestamp(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Moderation actions
    # ------------------------------------------------------------------

    async def log_moderation_action(
        self,
        db: aiosqlite.Connection,
        guild_id: IdLike,
        user_id: IdLike,
        moderator_id: IdLike,
        action: Union[ActionType, str],
        reason: str,
        duration_ms: int = 0,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Insert a moderation action row.

        Returns:
            The id of the new row
        """
        action_value = action.value if isinstance(action, ActionType) else str(action)
        with self._performance.timed("log_moderation_action"):
            cursor = await db.execute(
                """
                INSERT INTO moderation_actions (guild_id, user_id, moderator_id, action, reason, duration_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _id(guild_id),
                    _id(user_id),
                    _id(moderator_id),
                    action_value,
                    reason,
                    int(duration_ms or 0),
                    to_db_timestamp(created_at),
                ),
            )
            row_id = cursor.lastrowid

        logger.debug("[VIOLATION STORE] Logged moderation action %s on user %s in guild %s", action_value, user_id, guild_id)
        return row_id

    async def get_moderation_actions(
        self,
        db: aiosqlite.Connection,
        guild_id: IdLike,
        user_id: IdLike,
        since: datetime,
    ) -> List[ModerationActionRecord]:
        """Moderation actions applied to a user at or after ``since``, newest first."""
        with self._performance.timed("get_moderation_actions"):
            async with db.execute(
                """
                SELECT * FROM moderation_actions
                WHERE guild_id = ? AND user_id = ? AND created_at >= ?
                ORDER BY created_at DESC, id DESC
                """,
                (_id(guild_id), _id(user_id), to_db_timestamp(since)),
            ) as cursor:
                rows = await cursor.fetchall()

        return [
            ModerationActionRecord(
                id=row["id"],
                guild_id=GuildID(row["guild_id"]),
                user_id=UserID(row["user_id"]),
                moderator_id=UserID(row["moderator_id"]),
                action=ActionType(row["action"]),
                reason=row["reason"],
                duration_ms=row["duration_ms"],
                created_at=from_db_timestamp(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Message tracking
    # ------------------------------------------------------------------

    async def track_message(
        self,
        db: aiosqlite.Connection,
        guild_id: IdLike,
        user_id: IdLike,
        content: str,
        channel_id: IdLike,
        created_at: Optional[datetime] = None,
    ) -> None:
        """Record a message event, storing only the SHA-256 of its content."""
        with self._performance.timed("track_message"):
            await db.execute(
                """
                INSERT INTO message_tracking (guild_id, user_id, channel_id, content_hash, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (_id(guild_id), _id(user_id), _id(channel_id), hash_content(content), to_db_timestamp(created_at)),
            )

    async def get_tracked_message_hashes(
        self,
        db: aiosqlite.Connection,
        guild_id: IdLike,
        user_id: IdLike,
        since: datetime,
    ) -> List[str]:
        """Content hashes of a user's tracked messages at or after ``since``, oldest first."""
        with self._performance.timed("get_tracked_message_hashes"):
            async with db.execute(
                """
                SELECT content_hash FROM message_tracking
                WHERE guild_id = ? AND user_id = ? AND created_at >= ?
                ORDER BY created_at ASC, id ASC
                """,
                (_id(guild_id), _id(user_id), to_db_timestamp(since)),
            ) as cursor:
                rows = await cursor.fetchall()
        return [row["content_hash"] for row in rows]
