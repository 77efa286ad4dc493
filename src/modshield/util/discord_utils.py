"""
discord_utils.py
================

Low-level Discord utility functions for Modshield.

Stateless helpers for message deletion, ignore and bypass checks, and warning
delivery. Higher-level components (the automod engine, the message listener)
call these instead of touching py-cord error handling themselves.
"""

from __future__ import annotations

import discord

from modshield.util.logger import get_logger

logger = get_logger("discord_utils")

# Seconds before an in-channel warning removes itself
WARNING_DELETE_AFTER = 15.0


def is_ignored_message(message: discord.Message) -> bool:
    """
    Check if a message should never reach automod (bots, system messages, DMs).

    Args:
        message (discord.Message): The message to check.

    Returns:
        bool: True if the message should be skipped.
    """
    if message.guild is None:
        return True
    if getattr(message.author, "bot", False):
        return True
    return bool(getattr(message, "is_system", lambda: False)())


def has_bypass_permission(member: discord.Member | discord.User, channel: discord.abc.GuildChannel | None = None) -> bool:
    """
    Check if a member may bypass automod (holds Manage Messages).

    Channel overwrites are honoured when a channel is given; otherwise the
    member's guild-wide permissions are used.

    Args:
        member (discord.Member | discord.User): The message author.
        channel (discord.abc.GuildChannel | None): Channel the message was sent in.

    Returns:
        bool: True if the member holds Manage Messages.
    """
    if channel is not None and hasattr(channel, "permissions_for") and isinstance(member, discord.Member):
        try:
            return bool(channel.permissions_for(member).manage_messages)
        except Exception as exc:
            logger.debug("[DISCORD UTILS] Channel permission lookup failed for %s: %s", member.id, exc)

    permissions = getattr(member, "guild_permissions", None)
    return bool(getattr(permissions, "manage_messages", False))


async def safe_delete_message(message: discord.Message) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Args:
        message (discord.Message): The message to delete.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning("[DISCORD UTILS] No permission to delete message %s", message.id)
    except Exception as exc:
        logger.error("[DISCORD UTILS] Error deleting message %s: %s", message.id, exc)
    return False


async def send_warning(message: discord.Message, reason: str, delete_after: float | None = WARNING_DELETE_AFTER) -> bool:
    """
    Warn the author of a message, falling back to a direct message.

    The warning is posted in the message's channel first (removing itself after
    ``delete_after`` seconds). If that fails the author is sent a DM; if that
    fails too the failure is only logged.

    Args:
        message (discord.Message): The message that triggered the warning.
        reason (str): Explanation shown to the user.
        delete_after (float | None): Lifetime of the channel warning.

    Returns:
        bool: True if either delivery succeeded.
    """
    author = message.author
    try:
        await message.channel.send(
            f"⚠️ **Automod Warning** {author.mention}\n{reason}",
            delete_after=delete_after,
        )
        return True
    except Exception as exc:
        logger.debug("[DISCORD UTILS] Channel warning failed for %s, trying DM: %s", author.id, exc)

    guild_name = message.guild.name if message.guild else "this server"
    try:
        await author.send(f"⚠️ **Automod Warning from {guild_name}**\n{reason}")
        return True
    except Exception as exc:
        logger.warning("[DISCORD UTILS] Could not send warning to %s: %s", author.id, exc)
    return False


async def send_dm_to_user(user: discord.User | discord.Member, content: str) -> bool:
    """
    Send a direct message, returning whether it was delivered.

    Args:
        user (discord.User | discord.Member): Recipient.
        content (str): Message text.

    Returns:
        bool: True if the DM was sent.
    """
    try:
        await user.send(content)
        return True
    except discord.Forbidden:
        logger.info("[DISCORD UTILS] User %s has DMs disabled", user.id)
    except Exception as exc:
        logger.warning("[DISCORD UTILS] Failed to DM user %s: %s", user.id, exc)
    return False
