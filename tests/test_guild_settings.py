"""Tests for the per-guild automod settings store."""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from modshield.automod.config import GuildAutomodConfig
from modshield.configuration.guild_settings import GuildSettingsManager
from modshield.database.database import Database
from modshield.datatypes.discord_datatypes import GuildID


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(tmp_path / "settings.db")
    await db.initialize()
    yield db
    await db.shutdown()


@pytest.fixture
def manager(database):
    return GuildSettingsManager(database=database, default_overrides={})


class TestGetConfig:

    @pytest.mark.asyncio
    async def test_unconfigured_guild_gets_defaults(self, manager):
        assert await manager.get_config(1) == GuildAutomodConfig()

    @pytest.mark.asyncio
    async def test_default_overrides_apply_to_every_guild(self, database):
        manager = GuildSettingsManager(database=database, default_overrides={"linkFilter": {"enabled": True}})
        config = await manager.get_config(1)
        assert config.link_filter.enabled is True
        assert config.caps == GuildAutomodConfig().caps

    @pytest.mark.asyncio
    async def test_stored_partial_document_merged_onto_defaults(self, manager, database):
        await database.save_automod_config(5, {"spamDetection": {"maxMessages": 9}})
        config = await manager.get_config(GuildID(5))
        assert config.spam_detection.max_messages == 9
        assert config.spam_detection.time_window == 10_000

    @pytest.mark.asyncio
    async def test_configs_are_cached(self, manager, database):
        first = await manager.get_config(1)
        await database.save_automod_config(1, {"enabled": False})
        assert await manager.get_config(1) is first

        manager.invalidate(1)
        assert (await manager.get_config(1)).enabled is False

    @pytest.mark.asyncio
    async def test_load_failure_returns_defaults_uncached(self):
        database = MagicMock()
        database.get_automod_config = AsyncMock(side_effect=[RuntimeError("locked"), {"enabled": False}])
        manager = GuildSettingsManager(database=database, default_overrides={})

        assert await manager.get_config(1) == GuildAutomodConfig()
        assert (await manager.get_config(1)).enabled is False


class TestUpdates:

    @pytest.mark.asyncio
    async def test_update_persists_whole_document(self, manager, database):
        await manager.update_config(1, {"caps": {"enabled": False}})

        stored = await database.get_automod_config(1)
        assert stored["caps"]["enabled"] is False
        assert "spamDetection" in stored

        fresh = GuildSettingsManager(database=database, default_overrides={})
        assert (await fresh.get_config(1)).caps.enabled is False

    @pytest.mark.asyncio
    async def test_update_failure_raises_and_keeps_cache(self):
        database = MagicMock()
        database.get_automod_config = AsyncMock(return_value=None)
        database.save_automod_config = AsyncMock(side_effect=RuntimeError("read-only"))
        manager = GuildSettingsManager(database=database, default_overrides={})
        before = await manager.get_config(1)

        with pytest.raises(RuntimeError):
            await manager.update_config(1, {"enabled": False})
        assert await manager.get_config(1) is before

    @pytest.mark.asyncio
    async def test_toggle_automod(self, manager):
        config = await manager.set_automod_enabled(1, False)
        assert config.enabled is False

    @pytest.mark.asyncio
    async def test_set_rule_enabled_by_either_name(self, manager):
        await manager.set_rule_enabled(1, "linkFilter", True)
        config = await manager.set_rule_enabled(1, "caps", False)
        assert config.link_filter.enabled is True
        assert config.caps.enabled is False

    @pytest.mark.asyncio
    async def test_unknown_rule(self, manager):
        with pytest.raises(KeyError):
            await manager.set_rule_enabled(1, "music", True)


class TestBlacklist:

    @pytest.mark.asyncio
    async def test_add_list_remove(self, manager):
        assert await manager.add_blacklisted_word(1, "  Spoiler ") is True
        assert await manager.add_blacklisted_word(1, "spoiler") is False
        assert await manager.add_blacklisted_word(1, "scam") is True
        assert await manager.list_blacklisted_words(1) == ("spoiler", "scam")

        assert await manager.remove_blacklisted_word(1, "SPOILER") is True
        assert await manager.remove_blacklisted_word(1, "spoiler") is False
        assert await manager.list_blacklisted_words(1) == ("scam",)

    @pytest.mark.asyncio
    async def test_blank_word_rejected(self, manager):
        assert await manager.add_blacklisted_word(1, "   ") is False

    @pytest.mark.asyncio
    async def test_clear(self, manager, database):
        await manager.add_blacklisted_word(1, "one")
        await manager.add_blacklisted_word(1, "two")
        assert await manager.clear_blacklist(1) == 2
        assert await manager.clear_blacklist(1) == 0

        stored = await database.get_automod_config(1)
        assert stored["blacklistedWords"]["words"] == []
