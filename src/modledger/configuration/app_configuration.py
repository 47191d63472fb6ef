from __future__ import annotations
from pathlib import Path
import fcntl
import os
from typing import Any, Dict, Optional
import yaml

from modledger.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path(os.getenv("MODLEDGER_CONFIG", "./config/app_config.yml")).resolve()

DEFAULT_DATABASE_PATH = "./data/moderation.db"
DEFAULT_SLOW_QUERY_THRESHOLD_MS = 100.0


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts for the settings the ledger and the resolution engine
    need. Uses fcntl file locks for safe concurrent access across processes.
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
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, ignoring it", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        value = self._data.get(name, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or unreadable.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Path of the SQLite ledger database."""
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).resolve()

    @property
    def slow_query_threshold_ms(self) -> float:
        """Queries slower than this are logged as warnings."""
        value = self._section("database").get("slow_query_threshold_ms", DEFAULT_SLOW_QUERY_THRESHOLD_MS)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid slow_query_threshold_ms %r, using default", value)
            return DEFAULT_SLOW_QUERY_THRESHOLD_MS

    @property
    def resolution_timeout(self) -> Optional[float]:
        """Directive resolution timeout in seconds, or None to wait indefinitely."""
        value = self._section("directives").get("timeout_seconds")
        if value is None:
            return None
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid directives.timeout_seconds %r, ignoring", value)
            return None
        return timeout if timeout > 0 else None

    @property
    def scenarios_path(self) -> Optional[Path]:
        """Scenario fixture file, or None to use the packaged fixtures."""
        value = self._section("directives").get("scenarios_path")
        return Path(str(value)).resolve() if value else None


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
