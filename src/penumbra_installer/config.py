"""Settings management for the Penumbra installer."""

import os
import sys
from pathlib import Path
from typing import Any

import yaml

from penumbra_installer.models.settings import InstallerSettings


def default_settings_path() -> Path:
    """Platform-specific location of the settings file."""
    if sys.platform == "win32":
        # Windows: %APPDATA%\PenumbraInstaller
        config_dir = Path(os.getenv("APPDATA", str(Path.home()))) / "PenumbraInstaller"
    elif sys.platform == "darwin":
        # macOS: ~/Library/Application Support/PenumbraInstaller
        config_dir = Path.home() / "Library" / "Application Support" / "PenumbraInstaller"
    else:
        # Linux/Unix: ~/.config/penumbra-installer
        config_dir = Path.home() / ".config" / "penumbra-installer"

    return config_dir / "settings.yaml"


class SettingsManager:
    """Manages installer settings with YAML file and environment variable support."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize settings manager.

        Args:
            config_path: Path to settings file. If None, uses PENUMBRA_CONFIG_PATH
                        environment variable or defaults to platform-specific config directory
        """
        if config_path is None:
            env_path = os.getenv("PENUMBRA_CONFIG_PATH")
            config_path = Path(env_path).expanduser() if env_path else default_settings_path()

        self.config_path = config_path
        self._config: InstallerSettings | None = None

    def load(self) -> InstallerSettings:
        """Load settings from file and apply environment variable overrides.

        Returns:
            Loaded settings
        """
        config_data: dict[str, Any] = {}

        # 1. Load from YAML file if it exists
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        # 2. Create settings object (applies defaults)
        config = InstallerSettings(**config_data)

        # 3. Apply environment variable overrides
        return self._apply_env_overrides(config)

    def save(self, config: InstallerSettings) -> None:
        """Save settings to YAML file.

        Args:
            config: Settings to save
        """
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self._config_to_dict(config)

        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(config_dict, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

        self._config = config

    def _config_to_dict(self, config: InstallerSettings) -> dict[str, Any]:
        """Convert settings to a YAML-friendly dictionary.

        Args:
            config: Settings object

        Returns:
            Dictionary representation
        """
        # mode="json" renders Path objects as strings
        return config.model_dump(mode="json", exclude_none=True)

    def _apply_env_overrides(self, config: InstallerSettings) -> InstallerSettings:
        """Apply environment variable overrides.

        Examples:
            - GITHUB_TOKEN=ghp_xxx
            - PENUMBRA_CACHE_DIR=~/penumbra-cache
            - PENUMBRA_LOG_LEVEL=DEBUG

        Args:
            config: Base settings

        Returns:
            Settings with environment overrides applied
        """
        # GitHub overrides (the project-specific variable wins)
        if token := os.getenv("PENUMBRA_GITHUB_TOKEN") or os.getenv("GITHUB_TOKEN"):
            config.github.token = token

        # Path overrides
        if cache_dir := os.getenv("PENUMBRA_CACHE_DIR"):
            config.paths.cache_dir = Path(cache_dir).expanduser()

        # ADB overrides
        if adb_path := os.getenv("PENUMBRA_ADB_PATH"):
            config.adb.executable = adb_path
        if adb_key := os.getenv("PENUMBRA_ADB_KEY"):
            config.adb.vendor_key_path = Path(adb_key).expanduser()

        # Server overrides
        if port := os.getenv("PENUMBRA_SERVER_PORT"):
            config.server.port = int(port)

        # Logging overrides
        if level := os.getenv("PENUMBRA_LOG_LEVEL"):
            if level.upper() in ("INFO", "DEBUG", "TRACE"):
                config.advanced.log_level = level.upper()  # type: ignore

        return config

    def get_config(self) -> InstallerSettings:
        """Get settings (singleton pattern).

        Returns:
            Current settings
        """
        if self._config is None:
            self._config = self.load()
        return self._config

    def reload(self) -> InstallerSettings:
        """Reload settings from file.

        Returns:
            Reloaded settings
        """
        self._config = self.load()
        return self._config


# Global settings manager instance
_settings_manager = SettingsManager()


def get_config() -> InstallerSettings:
    """Get global installer settings."""
    return _settings_manager.get_config()


def reload_config() -> InstallerSettings:
    """Reload settings from file."""
    return _settings_manager.reload()


def save_config(config: InstallerSettings) -> None:
    """Save settings to file.

    Args:
        config: Settings to save
    """
    _settings_manager.save(config)


def get_settings_manager() -> SettingsManager:
    """Get the global settings manager."""
    return _settings_manager
