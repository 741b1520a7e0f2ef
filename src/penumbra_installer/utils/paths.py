"""Path and platform utilities, compatible with PyInstaller."""

import platform
import sys
from pathlib import Path

from penumbra_installer import __version__


def get_resources_dir() -> Path:
    """Get the resources directory path.

    This function returns the correct path for both:
    - Development environment: src/penumbra_installer/resources
    - PyInstaller packaged environment: <MEIPASS>/penumbra_installer/resources

    Returns:
        Path to the resources directory
    """
    if getattr(sys, "frozen", False):
        # PyInstaller packaged environment
        base_path = Path(sys._MEIPASS)  # type: ignore[attr-defined]
        return base_path / "penumbra_installer" / "resources"
    else:
        # Development environment
        # This file is at src/penumbra_installer/utils/paths.py
        return Path(__file__).parent.parent / "resources"


def get_builtin_configs_dir() -> Path:
    """Directory holding the built-in install configurations."""
    return get_resources_dir() / "configs"


def user_agent() -> str:
    """User-Agent sent to the source-hosting API."""
    return f"PenumbraOS-Installer/{__version__} ({platform.system().lower()})"
