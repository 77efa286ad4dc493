"""
Persistent per-guild automod configuration.

Responsibilities:
- Load each guild's stored config document and merge it onto the defaults
  (built-in defaults plus ``automod.default_overrides`` from the app config)
- Cache merged configs in memory for the hot message path
- Replace a guild's whole config on admin updates (rule toggles, blacklist)

Database schema:
- automod_config table with columns: guild_id, config (JSON), updated_at
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from modshield.automod.config import GuildAutomodConfig, resolve_rule_name
from modshield.configuration.app_configuration import app_config
from modshield.database.database import Database, get_db
from modshield.datatypes.discord_datatypes import GuildID
from modshield.util.logger import get_logger

logger = get_logger("guild_settings_manager")

GuildKey = Union[int, GuildID]


class GuildSettingsManager:
    """
    Config store for per-guild automod settings.

    Args:
        database: Database used for persistence; the global one when omitted.
        default_overrides: Partial config merged onto the built-in defaults for
            every guild; ``automod.default_overrides`` when omitted.
    """

    def __init__(self, database: Optional[Database] = None, default_overrides: Optional[Mapping[str, Any]] = None):
        self._database = database
        overrides = app_config.automod_default_overrides if default_overrides is None else default_overrides
        self._defaults = GuildAutomodConfig.from_dict(overrides)
        self._cache: Dict[int, GuildAutomodConfig] = {}

        logger.info("[GUILD SETTINGS MANAGER] Guild settings manager initialized")

    @property
    def database(self) -> Database:
        return self._database if self._database is not None else get_db()

    @property
    def defaults(self) -> GuildAutomodConfig:
        """Configuration used for guilds without stored settings."""
        return self._defaults

    async def get_config(self, guild_id: GuildKey) -> GuildAutomodConfig:
        """
        Return the guild's config: stored overrides merged onto the defaults.

        A load failure is logged and the defaults are returned (uncached, so the
        next call retries the database).
        """
        key = int(guild_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            document = await self.database.get_automod_config(key)
        except Exception as exc:
            logger.error("[GUILD SETTINGS MANAGER] Failed to load automod config for guild %s: %s", key, exc)
            return self._defaults

        config = GuildAutomodConfig.from_dict(document, base=self._defaults)
        self._cache[key] = config
        return config

    async def update_config(
        self,
        guild_id: GuildKey,
        config: Union[GuildAutomodConfig, Mapping[str, Any]],
    ) -> GuildAutomodConfig:
        """
        Replace the guild's stored config.

        Args:
            guild_id: Guild to update.
            config: Complete config, or a camelCase document merged onto the defaults.

        Returns:
            The config now in effect.

        Raises:
            Exception: Whatever the database raised; the cache is left untouched.
        """
        key = int(guild_id)
        if not isinstance(config, GuildAutomodConfig):
            config = GuildAutomodConfig.from_dict(config, base=self._defaults)

        try:
            await self.database.save_automod_config(key, config.to_dict())
        except Exception as exc:
            logger.error("[GUILD SETTINGS MANAGER] Failed to update automod config for guild %s: %s", key, exc)
            raise

        self._cache[key] = config
        logger.info("[GUILD SETTINGS MANAGER] Updated automod config for guild %s", key)
        return config

    def invalidate(self, guild_id: Optional[GuildKey] = None) -> None:
        """Drop one guild (or every guild) from the cache."""
        if guild_id is None:
            self._cache.clear()
        else:
            self._cache.pop(int(guild_id), None)

    # --- Admin helpers ---
    async def set_automod_enabled(self, guild_id: GuildKey, enabled: bool) -> GuildAutomodConfig:
        config = await self.get_config(guild_id)
        return await self.update_config(guild_id, replace(config, enabled=bool(enabled)))

    async def set_rule_enabled(self, guild_id: GuildKey, rule: str, enabled: bool) -> GuildAutomodConfig:
        """
        Enable or disable one rule, e.g. ``caps`` or ``spamDetection``.

        Raises:
            KeyError: If the rule name is unknown.
        """
        field_name = resolve_rule_name(rule)
        config = await self.get_config(guild_id)
        rule_config = replace(getattr(config, field_name), enabled=bool(enabled))
        logger.debug("[GUILD SETTINGS MANAGER] Set %s.enabled=%s for guild %s", field_name, enabled, int(guild_id))
        return await self.update_config(guild_id, replace(config, **{field_name: rule_config}))

    async def list_blacklisted_words(self, guild_id: GuildKey) -> Tuple[str, ...]:
        config = await self.get_config(guild_id)
        return config.blacklisted_words.words

    async def add_blacklisted_word(self, guild_id: GuildKey, word: str) -> bool:
        """Add a word (stored lowercased). Returns False if it was already listed."""
        word = word.strip().lower()
        if not word:
            return False

        config = await self.get_config(guild_id)
        words = config.blacklisted_words.words
        if word in words:
            return False

        await self._set_words(guild_id, config, words + (word,))
        return True

    async def remove_blacklisted_word(self, guild_id: GuildKey, word: str) -> bool:
        """Remove a word. Returns False if it was not listed."""
        word = word.strip().lower()
        config = await self.get_config(guild_id)
        words = config.blacklisted_words.words
        if word not in words:
            return False

        await self._set_words(guild_id, config, tuple(w for w in words if w != word))
        return True

    async def clear_blacklist(self, guild_id: GuildKey) -> int:
        """Remove every word. Returns how many were removed."""
        config = await self.get_config(guild_id)
        count = len(config.blacklisted_words.words)
        if count:
            await self._set_words(guild_id, config, ())
        return count

    async def _set_words(self, guild_id: GuildKey, config: GuildAutomodConfig, words: Tuple[str, ...]) -> None:
        blacklist = replace(config.blacklisted_words, words=words)
        await self.update_config(guild_id, replace(config, blacklisted_words=blacklist))


# Global instance
guild_settings_manager = GuildSettingsManager()
