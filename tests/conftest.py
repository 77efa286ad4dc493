"""
Pytest configuration and shared fakes for Modshield tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


class FakeChannel:
    """Text channel double recording sends and edits."""

    def __init__(self, channel_id=300, slowmode_delay=0):
        self.id = channel_id
        self.slowmode_delay = slowmode_delay
        self.send = AsyncMock()
        self.edit = AsyncMock()


class FakeMember:
    """Guild member double with py-cord's moderation coroutines."""

    def __init__(self, user_id=200, bot=False, roles=(), manage_messages=False):
        self.id = user_id
        self.bot = bot
        self.mention = f"<@{user_id}>"
        self.roles = [SimpleNamespace(id=role_id) for role_id in roles]
        self.guild_permissions = SimpleNamespace(manage_messages=manage_messages)
        self.send = AsyncMock()
        self.timeout = AsyncMock()
        self.kick = AsyncMock()
        self.ban = AsyncMock()


class FakeGuild:
    def __init__(self, guild_id=100, name="Test Guild", vanity_url_code=None):
        self.id = guild_id
        self.name = name
        self.vanity_url_code = vanity_url_code
        self.me = SimpleNamespace(id=999)


class FakeMessage:
    """Message double; ``is_system`` is a real method returning False."""

    _next_id = 1000

    def __init__(
        self,
        content="hello there",
        guild=None,
        author=None,
        channel=None,
        attachments=(),
        mentions=(),
        role_mentions=(),
        system=False,
    ):
        FakeMessage._next_id += 1
        self.id = FakeMessage._next_id
        self.content = content
        self.guild = guild
        self.author = author or FakeMember()
        self.channel = channel or FakeChannel()
        self.attachments = [SimpleNamespace(filename=name) for name in attachments]
        self.mentions = [SimpleNamespace(id=user_id) for user_id in mentions]
        self.role_mentions = [SimpleNamespace(id=role_id) for role_id in role_mentions]
        self._system = system
        self.delete = AsyncMock()

    def is_system(self):
        return self._system


@pytest.fixture
def guild():
    return FakeGuild()


@pytest.fixture
def member():
    return FakeMember()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def make_message(guild, member, channel):
    """Factory for messages sent by ``member`` in ``channel`` of ``guild``."""

    def _make(content="hello there", **kwargs):
        kwargs.setdefault("guild", guild)
        kwargs.setdefault("author", member)
        kwargs.setdefault("channel", channel)
        return FakeMessage(content, **kwargs)

    return _make


@pytest.fixture
def violation_store():
    """AsyncMock standing in for the database's violation operations."""
    store = MagicMock()
    store.log_violation = AsyncMock(return_value=1)
    store.get_violations = AsyncMock(return_value=[])
    store.log_moderation_action = AsyncMock(return_value=1)
    store.track_message = AsyncMock(return_value=None)
    return store
