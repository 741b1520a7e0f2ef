"""Utilities for the Penumbra installer."""

from penumbra_installer.utils.paths import get_builtin_configs_dir, get_resources_dir, user_agent
from penumbra_installer.utils.subprocess_executor import SubprocessExecutor

__all__ = ["SubprocessExecutor", "get_builtin_configs_dir", "get_resources_dir", "user_agent"]
