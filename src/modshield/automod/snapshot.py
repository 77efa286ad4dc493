"""
Immutable view of a Discord message as seen by the detectors.

Detectors never touch py-cord objects directly. The message listener builds a
:class:`MessageSnapshot` once per message, which keeps every detector a pure
function of plain data and lets tests construct messages without Discord.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

import discord

from modshield.util import discord_utils


@dataclass(frozen=True, slots=True)
class MessageSnapshot:
    """Plain data extracted from a guild message.

    Attributes:
        content: Raw message text
        guild_id: Guild the message was sent in
        channel_id: Channel the message was sent in
        author_id: Author of the message
        message_id: The message itself
        attachment_names: Filename of every attachment
        user_mention_ids: Distinct users mentioned
        role_mention_ids: Distinct roles mentioned
        author_role_ids: Roles held by the author
        has_bypass_permission: Author may manage messages in the channel
        own_invite_codes: Invite codes that point at this guild
    """
    content: str
    guild_id: int
    channel_id: int
    author_id: int
    message_id: int = 0
    attachment_names: Tuple[str, ...] = ()
    user_mention_ids: FrozenSet[int] = field(default_factory=frozenset)
    role_mention_ids: FrozenSet[int] = field(default_factory=frozenset)
    author_role_ids: FrozenSet[int] = field(default_factory=frozenset)
    has_bypass_permission: bool = False
    own_invite_codes: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_message(cls, message: discord.Message, own_invite_codes: Optional[FrozenSet[str]] = None) -> "MessageSnapshot":
        """Build a snapshot from a py-cord guild message.

        Args:
            message: A message sent in a guild (``message.guild`` is not None).
            own_invite_codes: Invite codes of the guild itself. When omitted,
                the guild's vanity code is used if it has one.
        """
        guild = message.guild
        author = message.author

        if own_invite_codes is None:
            vanity = getattr(guild, "vanity_url_code", None)
            own_invite_codes = frozenset({vanity.lower()}) if vanity else frozenset()

        return cls(
            content=message.content or "",
            guild_id=guild.id,
            channel_id=message.channel.id,
            author_id=author.id,
            message_id=message.id,
            attachment_names=tuple(attachment.filename or "" for attachment in message.attachments),
            user_mention_ids=frozenset(user.id for user in message.mentions),
            role_mention_ids=frozenset(role.id for role in message.role_mentions),
            author_role_ids=frozenset(role.id for role in getattr(author, "roles", ())),
            has_bypass_permission=discord_utils.has_bypass_permission(author, message.channel),
            own_invite_codes=frozenset(code.lower() for code in own_invite_codes),
        )

    @property
    def mention_count(self) -> int:
        return len(self.user_mention_ids) + len(self.role_mention_ids)
