"""
Configuration management for Modshield.

- **app_configuration.py**: YAML configuration loader for global settings
  (database path, violation window, tracker size, default automod overrides
  and maintenance intervals). Falls back to built-in defaults on a missing or
  malformed file.

- **guild_settings.py**: Per-guild automod configuration store. Merges stored
  JSON documents onto the defaults, caches the result, and replaces the whole
  document on admin updates.
"""
