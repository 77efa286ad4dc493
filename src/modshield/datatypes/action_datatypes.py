"""
Action types and persisted record structures for automod.

This module defines the ActionType enum used by punishment tiers and the
dataclasses that mirror rows of the violation and moderation action tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List

from modshield.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID


class ActionType(Enum):
    """Enumeration of punishments a severity tier can resolve to."""

    WARN = "warn"
    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ViolationRecord:
    """A persisted automod violation.

    Attributes:
        id: Row id assigned by the store
        guild_id: Guild the message was sent in
        user_id: Author of the offending message
        channel_id: Channel the message was sent in
        message_id: The offending message
        violation_type: Detector tag, e.g. ``spam_frequency``
        content: Violation reason recorded for moderators
        action_taken: Action string of the violation, e.g. ``delete_warn``
        severity: Severity weight counted toward punishments
        created_at: UTC time the violation was recorded
    """
    id: int
    guild_id: GuildID
    user_id: UserID
    channel_id: ChannelID
    message_id: MessageID
    violation_type: str
    content: str
    action_taken: str
    severity: int
    created_at: datetime


@dataclass(slots=True)
class ModerationActionRecord:
    """A persisted punishment applied by automod (or a moderator)."""
    id: int
    guild_id: GuildID
    user_id: UserID
    moderator_id: UserID
    action: ActionType
    reason: str
    duration_ms: int
    created_at: datetime


@dataclass(slots=True)
class UserViolationStats:
    """Summary of one user's violations over a trailing timeframe."""
    total_violations: int
    total_severity: int
    violations_by_type: Dict[str, int] = field(default_factory=dict)
    recent_violations: List[ViolationRecord] = field(default_factory=list)
