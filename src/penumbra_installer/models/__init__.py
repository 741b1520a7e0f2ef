"""Data models for the Penumbra installer."""

from penumbra_installer.models.install_config import (
    CleanupStep,
    ConfigVariable,
    InstallConfig,
    InstallStep,
    Repository,
)
from penumbra_installer.models.settings import InstallerSettings

__all__ = [
    "CleanupStep",
    "ConfigVariable",
    "InstallConfig",
    "InstallStep",
    "InstallerSettings",
    "Repository",
]
