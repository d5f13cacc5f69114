"""Configuration loading and migration service.

Handles loading config.yaml and migrating from legacy formats to the new schema.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ccc.models.config import AppConfig, expand_path

logger = logging.getLogger(__name__)

# Top-level keys of the legacy flat layout that now live under `telegram`
LEGACY_TELEGRAM_FIELDS = ("bot_token", "group_id")

# Legacy keys with no counterpart; logged and dropped
DEPRECATED_FIELDS = (
    "chat_id",
    "away",
    "transcription_cmd",
    "mode",
    "server",
    "host_name",
)


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against Pydantic schema
    - Migrating from legacy formats
    - Saving updated config (soft-deletes, new sessions)
    """

    def __init__(self, config_path: str | Path = "config.yaml"):
        """Initialize the config service.

        Args:
            config_path: Path to the config file.
        """
        self.config_path = Path(expand_path(str(config_path)))
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Returns:
            Validated AppConfig instance.
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._config = AppConfig()
            return self._config

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error reading config file: {e}, using defaults")
            self._config = AppConfig()
            return self._config

        migrated, changed = self._migrate_config(raw_config)

        try:
            self._config = AppConfig(**migrated)
        except ValueError as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            self._config = AppConfig()
            return self._config

        if changed:
            logger.info("Migrated legacy config, saving new layout")
            self.save(self._config)

        return self._config

    def get_config(self) -> AppConfig:
        """Get the current configuration.

        Loads from disk if not already loaded.
        """
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()

    def save(self, config: AppConfig | None = None) -> bool:
        """Save configuration to disk, readable by the owner only.

        Args:
            config: Config to save. Uses current config if not provided.

        Returns:
            True if save succeeded.
        """
        config = config or self._config
        if config is None:
            return False

        try:
            config_dict = config.model_dump(mode="json")
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
            self._config = config
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def mark_deleted(self, session_name: str) -> bool:
        """Soft-delete a session: keep the record, flag it deleted."""
        config = self.get_config()
        info = config.sessions.get(session_name)
        if info is None:
            return False
        info.deleted = True
        return self.save(config)

    def _migrate_config(self, raw: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """Migrate legacy config format to new schema.

        Handles:
        - Sessions given as {name: conversation_id}
        - Session records using `topic_id`
        - Flat bot_token/group_id at the top level
        - Deprecated fields (logged, dropped)

        Args:
            raw: Raw config dictionary from YAML.

        Returns:
            Tuple of (migrated config dictionary, whether anything changed).
        """
        migrated = dict(raw)
        changed = False

        telegram = dict(migrated.get("telegram") or {})
        for field in LEGACY_TELEGRAM_FIELDS:
            if field in migrated:
                telegram.setdefault(field, migrated.pop(field))
                changed = True
        if telegram:
            if telegram.get("bot_token") and "enabled" not in telegram:
                telegram["enabled"] = True
            migrated["telegram"] = telegram

        sessions: dict[str, Any] = {}
        for name, value in (migrated.get("sessions") or {}).items():
            if isinstance(value, int):
                sessions[name] = {
                    "conversation_ref": value,
                    "path": self._legacy_session_path(name, migrated.get("projects_dir", "")),
                }
                changed = True
            elif isinstance(value, dict):
                record = dict(value)
                if "topic_id" in record:
                    record.setdefault("conversation_ref", record.pop("topic_id"))
                    changed = True
                sessions[name] = record
            else:
                logger.warning(f"Ignoring malformed session entry: {name}")
                changed = True
        if sessions or "sessions" in migrated:
            migrated["sessions"] = sessions

        for field in DEPRECATED_FIELDS:
            if field in migrated:
                logger.info(f"Ignoring deprecated config field: {field}")
                migrated.pop(field)
                changed = True

        known = set(AppConfig.model_fields)
        for field in list(migrated):
            if field not in known:
                logger.info(f"Ignoring unknown config field: {field}")
                migrated.pop(field)

        return migrated, changed

    @staticmethod
    def _legacy_session_path(name: str, projects_dir: str) -> str:
        home = Path.home()
        if name.startswith("/"):
            return name
        if name.startswith("~/"):
            return str(home / name[2:])
        if projects_dir:
            return str(Path(expand_path(projects_dir)) / name)
        return str(home / name)


# Module-level singleton
_config_service: ConfigService | None = None


def get_config_service(config_path: str | Path = "config.yaml") -> ConfigService:
    """Get the global config service instance.

    Args:
        config_path: Path to config file (only used on first call).

    Returns:
        ConfigService singleton.
    """
    global _config_service
    if _config_service is None:
        _config_service = ConfigService(config_path)
    return _config_service


def reset_config_service() -> None:
    """Reset the global config service (for testing)."""
    global _config_service
    _config_service = None
