"""
Abstract device controller.

Concrete controllers implement a handful of primitives; every higher level
operation the installer needs is expressed as a shell command on top of them.
"""

from abc import ABC, abstractmethod
from pathlib import Path

ESCAPED_QUOTE = "'\"'\"'"


def shell_quote(text: str) -> str:
    """Wrap text in single quotes for the device shell."""
    return "'" + text.replace("'", ESCAPED_QUOTE) + "'"


class DeviceController(ABC):
    """Abstract base class for a connected Android device."""

    serial: str = ""

    @abstractmethod
    async def shell(self, command: str, check: bool = True) -> str:
        """
        Run a shell command on the device.

        Args:
            command: Command line interpreted by the device shell
            check: Raise DeviceError when the command exits non-zero

        Returns:
            Combined command output
        """

    @abstractmethod
    async def install_package(self, apk_path: Path) -> None:
        """Install a local APK file, replacing any existing version."""

    @abstractmethod
    async def uninstall_package(self, package: str) -> None:
        """Remove a package for user 0 and system-wide. Never raises for absent packages."""

    @abstractmethod
    async def push(self, local_path: Path, remote_path: str) -> None:
        """Copy a local file to the device."""

    @abstractmethod
    async def reboot(self) -> None:
        """Restart the device."""

    async def list_packages(self, substring: str) -> list[str]:
        """Installed package names containing a substring."""
        output = await self.shell(
            f"pm list packages | grep {shell_quote(substring)} | sed 's/package://'",
            check=False,
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def grant_permission(self, package: str, permission: str) -> None:
        await self.shell(f"pm grant {package} {permission}")

    async def set_app_op(self, package: str, operation: str, mode: str) -> None:
        await self.shell(f"appops set {package} {operation} {mode}")

    async def set_launcher(self, component: str) -> None:
        await self.shell(f"cmd package set-home-activity {component}")

    async def create_directory(self, path: str) -> None:
        await self.shell(f"mkdir -p {path}")

    async def remove_directory(self, path: str) -> None:
        await self.shell(f"rm -rf {path}")

    async def remove_file(self, path: str) -> None:
        await self.shell(f"rm -f {path}")

    async def file_exists(self, path: str) -> bool:
        output = await self.shell(f"[ -f {path} ] && echo 'exists'", check=False)
        return "exists" in output

    async def write_file(self, path: str, content: str) -> None:
        await self.shell(f"echo {shell_quote(content)} > {path}")

    async def is_directory_empty(self, path: str) -> bool:
        output = await self.shell(f"ls -A {path}", check=False)
        return not output.strip()

    async def package_version(self, package: str) -> str | None:
        """versionName reported by dumpsys, or None when unknown."""
        output = await self.shell(f"dumpsys package {package} | grep versionName", check=False)
        for line in output.splitlines():
            _, sep, version = line.strip().partition("versionName=")
            if sep and version:
                return version.strip()
        return None
