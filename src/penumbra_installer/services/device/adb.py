"""ADB-backed device controller."""

import os
import subprocess
from collections.abc import AsyncIterator
from pathlib import Path

from penumbra_installer.exceptions import (
    ApkInstallationFailedError,
    DeviceError,
    DeviceUnauthorizedError,
    FileNotFoundInStagingError,
    MultipleDevicesError,
    NoDeviceError,
)
from penumbra_installer.logger import get_logger
from penumbra_installer.models.settings import AdbConfig, InstallerSettings
from penumbra_installer.utils import SubprocessExecutor

from .controller import DeviceController

logger = get_logger(__name__)

READY_STATE = "device"
UNAUTHORIZED_STATE = "unauthorized"


def parse_devices(output: str) -> list[tuple[str, str]]:
    """
    Parse ``adb devices`` output into (serial, state) pairs.

    The header line and blank lines are skipped.
    """
    devices = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) >= 2:
            devices.append((parts[0], parts[1]))
    return devices


def adb_environment(config: AdbConfig) -> dict[str, str] | None:
    """Process environment exposing the configured vendor key to adb, if any."""
    if config.vendor_key_path is None:
        return None
    env = os.environ.copy()
    env["ADB_VENDOR_KEYS"] = str(config.vendor_key_path)
    return env


async def list_devices(config: AdbConfig) -> list[tuple[str, str]]:
    """Run ``adb devices`` and return every attached device with its state."""
    try:
        result = await SubprocessExecutor.run(config.executable, "devices", env=adb_environment(config))
    except FileNotFoundError as e:
        raise DeviceError(f"adb executable not found: {config.executable}") from e

    stdout = result.stdout.decode("utf-8", errors="replace")
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise DeviceError(f"Failed to list devices: {stderr.strip() or stdout.strip()}")

    return parse_devices(stdout)


class AdbDeviceController(DeviceController):
    """Device controller issuing every command through ``adb -s <serial>``."""

    def __init__(self, serial: str, config: AdbConfig | None = None) -> None:
        self.serial = serial
        self.config = config or AdbConfig()
        self._env = adb_environment(self.config)

    @classmethod
    async def connect(cls, settings: InstallerSettings) -> "AdbDeviceController":
        """
        Connect to the single attached device.

        Raises:
            NoDeviceError: If no device is attached
            MultipleDevicesError: If more than one device is attached
            DeviceUnauthorizedError: If the device has not authorized this host
            DeviceError: If the device is in any other non-ready state
        """
        devices = await list_devices(settings.adb)

        if not devices:
            raise NoDeviceError()
        if len(devices) > 1:
            raise MultipleDevicesError(len(devices))

        serial, state = devices[0]
        if state == UNAUTHORIZED_STATE:
            raise DeviceUnauthorizedError()
        if state != READY_STATE:
            raise DeviceError(f"Device {serial} is not ready (state: {state})")

        logger.info(f"Connected to device {serial}")
        return cls(serial, settings.adb)

    async def _adb(self, *args: str, check: bool = True) -> str:
        argv = (self.config.executable, "-s", self.serial, *args)
        try:
            result = await SubprocessExecutor.run(*argv, env=self._env, check=check)
        except FileNotFoundError as e:
            raise DeviceError(f"adb executable not found: {self.config.executable}") from e
        except subprocess.CalledProcessError as e:
            output = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            if not output:
                output = (e.stdout or b"").decode("utf-8", errors="replace").strip()
            raise DeviceError(f"`{' '.join(args)}` exited with {e.returncode}: {output}") from e

        return (result.stdout + result.stderr).decode("utf-8", errors="replace")

    async def shell(self, command: str, check: bool = True) -> str:
        return await self._adb("shell", command, check=check)

    async def install_package(self, apk_path: Path) -> None:
        if not apk_path.is_file():
            raise FileNotFoundInStagingError(str(apk_path))

        try:
            output = await self._adb("install", "-r", str(apk_path))
        except DeviceError as e:
            raise ApkInstallationFailedError(apk_path.name, str(e)) from e

        if "Failure" in output:
            raise ApkInstallationFailedError(apk_path.name, output.strip())

    async def uninstall_package(self, package: str) -> None:
        for command in (f"pm uninstall --user 0 {package}", f"pm uninstall {package}"):
            output = await self.shell(command, check=False)
            logger.debug("Uninstall attempt", package=package, command=command, output=output.strip())

    async def push(self, local_path: Path, remote_path: str) -> None:
        if not local_path.exists():
            raise FileNotFoundInStagingError(str(local_path))
        await self._adb("push", str(local_path), remote_path)

    async def reboot(self) -> None:
        await self._adb("reboot")

    def stream_shell(self, command: str) -> AsyncIterator[str]:
        """Yield output lines of a long-running shell command until it exits or the consumer stops."""
        return SubprocessExecutor.iter_lines(
            self.config.executable, "-s", self.serial, "shell", command, env=self._env
        )
