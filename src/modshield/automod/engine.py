"""
Automod engine: runs every guild message through the detectors and punishes.

Pipeline for one message::

    ignored? -> config -> exempt? -> track -> detect -> persist -> for each violation:
        delete -> persist -> history -> total severity -> resolve tier
        -> punish (or warn) -> slowmode trigger

The engine never raises out of :meth:`AutomodEngine.process_message`.
Detector, persistence and Discord failures are logged and the pipeline
degrades: defaults when the config cannot be loaded, the current severity
alone when history cannot be read, a warning when a punishment fails.

Collaborators are injected:

- ``config_store``: ``await get_config(guild_id) -> GuildAutomodConfig``
- ``violation_store``: ``log_violation``, ``get_violations``,
  ``log_moderation_action`` and ``track_message`` as provided by
  :class:`modshield.database.database.Database`
- ``tracker``: the :class:`MessageTracker` owned by this engine
"""

from __future__ import annotations

import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import discord

from modshield.automod.config import GuildAutomodConfig
from modshield.automod.detectors import DETECTORS, run_detectors
from modshield.automod.message_tracker import MessageRecord, MessageTracker
from modshield.automod.punishment import PunishmentTier, format_duration, resolve_punishment
from modshield.automod.snapshot import MessageSnapshot
from modshield.automod.violations import Violation
from modshield.datatypes.action_datatypes import ActionType, UserViolationStats
from modshield.util import discord_utils
from modshield.util.logger import get_logger

logger = get_logger("automod_engine")

VIOLATION_WINDOW_MS = 24 * 60 * 60 * 1000
BAN_DELETE_MESSAGE_SECONDS = 24 * 60 * 60


def epoch_ms() -> int:
    return int(time.time() * 1000)


class AutomodEngine:
    """
    Rule-based moderation of guild messages with progressive punishment.

    Args:
        config_store: Source of per-guild automod configs.
        violation_store: Persistence for violations, moderation actions and
            tracked messages.
        tracker: In-memory message history; a fresh one when omitted.
        violation_window_ms: Trailing window whose violations add up toward
            punishment tiers.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        config_store,
        violation_store,
        tracker: Optional[MessageTracker] = None,
        violation_window_ms: int = VIOLATION_WINDOW_MS,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self._config_store = config_store
        self._violations = violation_store
        self.tracker = tracker if tracker is not None else MessageTracker()
        self._violation_window_ms = int(violation_window_ms)
        self._clock = clock
        self._detectors = DETECTORS

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process_message(self, message: discord.Message) -> List[Violation]:
        """
        Moderate one message.

        Returns:
            The violations that were detected and handled (empty when the
            message was ignored, exempt or clean). Never raises.
        """
        try:
            return await self._process(message)
        except Exception:
            logger.exception("[AUTOMOD] Unexpected error while processing message %s", getattr(message, "id", "?"))
            return []

    async def _process(self, message: discord.Message) -> List[Violation]:
        if discord_utils.is_ignored_message(message):
            return []

        config = await self.get_config(message.guild.id)
        if not config.enabled:
            return []

        snapshot = MessageSnapshot.from_message(message)
        if self.is_exempt(snapshot, config):
            logger.debug("[AUTOMOD] Skipping exempt message %s from %s", snapshot.message_id, snapshot.author_id)
            return []

        rule = config.spam_detection
        recent = self.tracker.record(
            snapshot.guild_id,
            snapshot.author_id,
            snapshot.channel_id,
            snapshot.content,
            self._clock(),
            rule.time_window,
            capacity=max(rule.max_messages, rule.max_duplicates),
        )
        # Detect on the history as recorded, before any await lets later
        # messages from the same user into the tracker
        violations = self.run_detectors(snapshot, config, recent)
        await self._track_durably(snapshot)

        for violation in violations:
            await self.handle_violation(message, snapshot, violation, config)
        return violations

    async def get_config(self, guild_id: int) -> GuildAutomodConfig:
        """The guild's config, or the built-in defaults when loading fails."""
        try:
            return await self._config_store.get_config(guild_id)
        except Exception as exc:
            logger.error("[AUTOMOD] Could not load config for guild %s, using defaults: %s", guild_id, exc)
            return GuildAutomodConfig()

    @staticmethod
    def is_exempt(snapshot: MessageSnapshot, config: GuildAutomodConfig) -> bool:
        """Exempt user, exempt channel, exempt role, then the Manage Messages bypass."""
        if snapshot.author_id in config.exempt_users:
            return True
        if snapshot.channel_id in config.exempt_channels:
            return True
        if snapshot.author_role_ids & config.exempt_roles:
            return True
        return snapshot.has_bypass_permission

    def run_detectors(
        self, snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord],
    ) -> List[Violation]:
        """Evaluate the enabled detectors against ``recent`` (current message last). No side effects."""
        return run_detectors(snapshot, config, recent, self._detectors)

    async def _track_durably(self, snapshot: MessageSnapshot) -> None:
        try:
            await self._violations.track_message(
                snapshot.guild_id, snapshot.author_id, snapshot.content, snapshot.channel_id, created_at=self._now(),
            )
        except Exception as exc:
            logger.warning("[AUTOMOD] Failed to persist tracked message %s: %s", snapshot.message_id, exc)

    # ------------------------------------------------------------------
    # Violation handling
    # ------------------------------------------------------------------

    async def handle_violation(
        self,
        message: discord.Message,
        snapshot: MessageSnapshot,
        violation: Violation,
        config: GuildAutomodConfig,
    ) -> None:
        """Delete, persist, total the user's severity and punish for one violation."""
        try:
            if violation.requires_delete:
                await discord_utils.safe_delete_message(message)

            violation_id = await self._log_violation(snapshot, violation)
            total = await self.cumulative_severity(snapshot, violation, violation_id)

            tier = None
            if config.punishments.progressive:
                tier = resolve_punishment(total, config.punishments.severity_levels)

            if tier is not None:
                await self.apply_punishment(message, tier, violation.reason, total)
            else:
                await self.send_warning(message, violation.reason)

            await self._apply_slowmode(message, violation, config)

            logger.info(
                "[AUTOMOD] %s by %s in guild %s (severity %d, total %d)",
                violation.type, snapshot.author_id, snapshot.guild_id, violation.severity, total,
            )
        except Exception as exc:
            logger.error("[AUTOMOD] Error handling %s violation on message %s: %s", violation.type, snapshot.message_id, exc)

    async def _log_violation(self, snapshot: MessageSnapshot, violation: Violation) -> Optional[int]:
        try:
            return await self._violations.log_violation(
                snapshot.guild_id,
                snapshot.author_id,
                snapshot.channel_id,
                snapshot.message_id,
                violation.type.value,
                violation.reason,
                violation.action,
                violation.severity,
                created_at=self._now(),
            )
        except Exception as exc:
            logger.error("[AUTOMOD] Failed to log %s violation for %s: %s", violation.type, snapshot.author_id, exc)
            return None

    async def cumulative_severity(self, snapshot: MessageSnapshot, violation: Violation, violation_id: Optional[int]) -> int:
        """
        Sum of the user's severities inside the violation window plus this violation.

        The row just written for this violation is excluded from the history so
        it is counted once. If history cannot be read, only the current
        severity is used.
        """
        since = self._now() - timedelta(milliseconds=self._violation_window_ms)
        try:
            history = await self._violations.get_violations(
                snapshot.guild_id, snapshot.author_id, since, exclude_id=violation_id,
            )
        except Exception as exc:
            logger.error("[AUTOMOD] Failed to read violation history for %s: %s", snapshot.author_id, exc)
            return violation.severity
        return sum(record.severity for record in history) + violation.severity

    async def apply_punishment(self, message: discord.Message, tier: PunishmentTier, reason: str, total_severity: int) -> bool:
        """
        Apply a punishment tier to the author of ``message``.

        Kicked and banned users are notified before removal. If the punishment
        fails the user is warned instead; nothing is retried.

        Returns:
            True if the punishment was applied.
        """
        member = message.author
        guild = message.guild
        audit_reason = f"Automod: {reason}"

        try:
            if tier.action is ActionType.WARN:
                await self.send_warning(message, reason)
                taken = "Warning issued"
            elif tier.action is ActionType.TIMEOUT:
                until = discord.utils.utcnow() + timedelta(milliseconds=tier.duration_ms)
                await member.timeout(until, reason=audit_reason)
                await self.send_warning(
                    message, f"You have been timed out for {format_duration(tier.duration_ms)}. Reason: {reason}",
                )
                taken = f"Timed out for {format_duration(tier.duration_ms)}"
            elif tier.action is ActionType.KICK:
                await discord_utils.send_dm_to_user(member, f"You have been kicked from **{guild.name}**. Reason: {reason}")
                await member.kick(reason=audit_reason)
                taken = "Kicked from server"
            else:
                await discord_utils.send_dm_to_user(member, f"You have been banned from **{guild.name}**. Reason: {reason}")
                await member.ban(reason=audit_reason, delete_message_seconds=BAN_DELETE_MESSAGE_SECONDS)
                taken = "Banned from server"
        except discord.HTTPException as exc:
            logger.warning("[AUTOMOD] Could not %s %s: %s", tier.action, member.id, exc)
            await self.send_warning(message, reason)
            return False
        except Exception as exc:
            logger.error("[AUTOMOD] Error applying %s to %s: %s", tier.action, member.id, exc)
            await self.send_warning(message, reason)
            return False

        moderator = getattr(guild, "me", None)
        try:
            await self._violations.log_moderation_action(
                guild.id,
                member.id,
                moderator.id if moderator is not None else 0,
                tier.action,
                reason,
                tier.duration_ms,
                created_at=self._now(),
            )
        except Exception as exc:
            logger.error("[AUTOMOD] Failed to log %s action for %s: %s", tier.action, member.id, exc)

        logger.info("[AUTOMOD] Punishment: %s for %s (severity %d)", taken, member.id, total_severity)
        return True

    async def send_warning(self, message: discord.Message, reason: str) -> bool:
        """Warn in the channel, falling back to a DM. Failures are logged only."""
        return await discord_utils.send_warning(message, reason)

    async def _apply_slowmode(self, message: discord.Message, violation: Violation, config: GuildAutomodConfig) -> None:
        rule = config.slowmode
        if not rule.enabled or violation.type.value not in rule.triggers:
            return

        channel = message.channel
        current = getattr(channel, "slowmode_delay", 0)
        if isinstance(current, int) and current >= rule.duration:
            return

        try:
            await channel.edit(slowmode_delay=rule.duration, reason=f"Automod: {violation.type}")
            logger.info("[AUTOMOD] Enabled %ds slowmode in channel %s after %s", rule.duration, channel.id, violation.type)
        except Exception as exc:
            logger.warning("[AUTOMOD] Could not enable slowmode in channel %s: %s", channel.id, exc)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_user_stats(self, guild_id: int, user_id: int, timeframe_ms: int = VIOLATION_WINDOW_MS) -> Optional[UserViolationStats]:
        """
        Summarize a user's violations over the trailing ``timeframe_ms``.

        Returns:
            Totals, counts per violation type and the five most recent
            violations, or None if the store could not be read.
        """
        since = self._now() - timedelta(milliseconds=timeframe_ms)
        try:
            violations = await self._violations.get_violations(guild_id, user_id, since)
        except Exception as exc:
            logger.error("[AUTOMOD] Failed to load stats for user %s in guild %s: %s", user_id, guild_id, exc)
            return None

        return UserViolationStats(
            total_violations=len(violations),
            total_severity=sum(record.severity for record in violations),
            violations_by_type=dict(Counter(record.violation_type for record in violations)),
            recent_violations=list(violations[:5]),
        )
