from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from modshield.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DB_PATH = "./data/modshield.db"


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts for the database, automod and maintenance sections. Every
    shortcut falls back to its built-in default when the file, the section or
    the key is missing. Uses fcntl file locks for safe concurrent access
    across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            if data is None:
                return {}
            if not isinstance(data, dict):
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
                return {}
            return data
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found; using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    def _number(self, section: str, key: str, default: float) -> float:
        value = self._section(section).get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] %s.%s is not a number (%r); using %s", section, key, value, default)
            return float(default)

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or malformed.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Path of the SQLite database file (``database.path``)."""
        value = self._section("database").get("path") or DEFAULT_DB_PATH
        return Path(str(value)).resolve()

    @property
    def violation_window_hours(self) -> float:
        """Trailing window whose violations count toward punishment. Default 24 hours."""
        return self._number("automod", "violation_window_hours", 24.0)

    @property
    def tracker_max_history(self) -> int:
        """Maximum in-memory messages kept per user. Default 50."""
        return max(1, int(self._number("automod", "tracker_max_history", 50)))

    @property
    def automod_default_overrides(self) -> Dict[str, Any]:
        """Partial automod config (camelCase keys) merged onto the built-in defaults."""
        overrides = self._section("automod").get("default_overrides", {})
        return overrides if isinstance(overrides, dict) else {}

    @property
    def maintenance_interval(self) -> float:
        """Seconds between maintenance runs. Default 3600."""
        return self._number("maintenance", "interval_seconds", 3600.0)

    @property
    def tracked_message_ttl(self) -> float:
        """Seconds a durable tracked message is kept. Default 3600."""
        return self._number("maintenance", "tracked_message_ttl_seconds", 3600.0)

    @property
    def violation_retention_days(self) -> int:
        """Days of violation history kept for statistics. Default 30."""
        return int(self._number("maintenance", "violation_retention_days", 30))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
