"""Application settings models for the Penumbra installer."""

import os
import sys
import tempfile
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _default_data_dir() -> Path:
    if sys.platform == "win32":
        return Path(os.getenv("LOCALAPPDATA", str(Path.home()))) / "PenumbraInstaller"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "PenumbraInstaller"
    return Path.home() / ".cache" / "penumbra-installer"


class ServerConfig(BaseModel):
    """HTTP API server configuration."""

    port: int = 8765
    host: str = "127.0.0.1"


class GitHubConfig(BaseModel):
    """Source-hosting API configuration."""

    token: str = ""
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"


class AdbConfig(BaseModel):
    """Device transport configuration."""

    executable: str = "adb"
    # Private key handed to the adb server through ADB_VENDOR_KEYS
    vendor_key_path: Path | None = None

    @field_validator("vendor_key_path", mode="before")
    @classmethod
    def expand_key_path(cls, v: str | Path | None) -> Path | None:
        """Expand user path for the key file."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class PathsConfig(BaseModel):
    """Paths configuration."""

    data_dir: Path = Field(default_factory=_default_data_dir)
    # Staging root for ephemeral runs; cache-mode runs pass their own directory
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "penumbra-installer")
    cache_dir: Path | None = None

    @field_validator("data_dir", "temp_dir", mode="before")
    @classmethod
    def expand_dir(cls, v: str | Path) -> Path:
        """Expand user path."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator("cache_dir", mode="before")
    @classmethod
    def expand_optional_path(cls, v: str | Path | None) -> Path | None:
        """Expand user path for optional paths."""
        if v is None:
            return None
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    def model_post_init(self, __context: object) -> None:
        """Set default subdirectories if not specified."""
        if self.cache_dir is None:
            self.cache_dir = self.data_dir / "cache"


class AdvancedConfig(BaseModel):
    """Advanced configuration."""

    log_level: Literal["INFO", "DEBUG", "TRACE"] = "INFO"
    log_format: Literal["json", "console"] = "console"
    http_timeout: float = 60.0


class InstallerSettings(BaseModel):
    """Installer application settings."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    adb: AdbConfig = Field(default_factory=AdbConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)
