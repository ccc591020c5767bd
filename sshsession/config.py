"""
Persistent client settings for sshsession.
Stored in ~/.sshsession/config.yaml (override with $SSHSESSION_CONFIG).
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_DIR = Path.home() / ".sshsession"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
CONFIG_ENV_VAR = "SSHSESSION_CONFIG"

HOST_KEY_POLICIES = ("auto_add", "warning", "reject")


@dataclass
class ClientSettings:
    """
    Client settings shared by every session in the process.
    """
    # Connection
    connect_timeout: float = 10.0
    keepalive_interval: int = 0
    host_key_policy: str = "auto_add"
    load_system_host_keys: bool = True
    known_hosts_file: Optional[str] = None
    legacy_algorithms: bool = False

    # Terminal defaults
    term_width: int = 80
    term_height: int = 25
    dimension_units: Optional[str] = None
    shell_term_type: str = "vanilla"

    # Stream I/O
    encoding: str = "utf-8"
    read_chunk_size: int = 32768

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ClientSettings:
        """Deserialize from dict, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        settings = cls(**filtered)
        if settings.host_key_policy not in HOST_KEY_POLICIES:
            logger.warning(
                f"Unknown host_key_policy {settings.host_key_policy!r}, using 'auto_add'"
            )
            settings.host_key_policy = "auto_add"
        return settings


class SettingsManager:
    """
    Manages loading and saving client settings.

    Usage:
        manager = SettingsManager()
        settings = manager.settings

        settings.connect_timeout = 5
        settings.host_key_policy = "reject"

        manager.save()
    """

    def __init__(self, config_path: Path = None):
        if config_path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            config_path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE
        self._config_path = Path(config_path)
        self._settings: Optional[ClientSettings] = None

    @property
    def settings(self) -> ClientSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> ClientSettings:
        """Load settings from disk, or return defaults."""
        if not self._config_path.exists():
            logger.debug("No settings file found, using defaults")
            return ClientSettings()

        try:
            data = yaml.safe_load(self._config_path.read_text())
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Failed to load settings: {e}, using defaults")
            return ClientSettings()

        if data is None:
            return ClientSettings()
        if not isinstance(data, dict):
            logger.warning(
                f"Settings file {self._config_path} is not a mapping, using defaults"
            )
            return ClientSettings()

        try:
            settings = ClientSettings.from_dict(data)
        except TypeError as e:
            logger.warning(f"Failed to load settings: {e}, using defaults")
            return ClientSettings()

        logger.debug(f"Loaded settings from {self._config_path}")
        return settings

    def save(self) -> None:
        """Save current settings to disk."""
        if self._settings is None:
            return

        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_path, "w") as f:
                yaml.dump(self._settings.to_dict(), f, default_flow_style=False, sort_keys=False)
            logger.debug(f"Saved settings to {self._config_path}")
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")

    def reset(self) -> ClientSettings:
        """Reset to default settings (does not save automatically)."""
        self._settings = ClientSettings()
        return self._settings


# Global instance for convenience
_manager: Optional[SettingsManager] = None


def get_settings_manager() -> SettingsManager:
    """Get the global settings manager instance."""
    global _manager
    if _manager is None:
        _manager = SettingsManager()
    return _manager


def get_settings() -> ClientSettings:
    """Convenience function to get current settings."""
    return get_settings_manager().settings


def save_settings() -> None:
    """Convenience function to save current settings."""
    get_settings_manager().save()
