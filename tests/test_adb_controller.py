# ruff: noqa: ANN201
"""Tests for the ADB device controller with a faked subprocess layer."""

import subprocess
from pathlib import Path

import pytest

from penumbra_installer.exceptions import (
    ApkInstallationFailedError,
    DeviceError,
    DeviceUnauthorizedError,
    FileNotFoundInStagingError,
    MultipleDevicesError,
    NoDeviceError,
)
from penumbra_installer.models.settings import AdbConfig, InstallerSettings
from penumbra_installer.services.device import AdbDeviceController, parse_devices
from penumbra_installer.utils import SubprocessExecutor


class FakeAdb:
    def __init__(self, outputs=None, returncode=0):
        self.outputs = outputs or {}
        self.returncode = returncode
        self.calls = []

    async def run(self, *args, cwd=None, env=None, check=False, timeout=None):
        self.calls.append((args, env))
        stdout = b""
        for fragment, output in self.outputs.items():
            if fragment in " ".join(args):
                stdout = output.encode()
                break
        if check and self.returncode != 0:
            raise subprocess.CalledProcessError(self.returncode, args, stdout, b"error: closed")
        return subprocess.CompletedProcess(args, self.returncode, stdout, b"")


@pytest.fixture
def fake_adb(monkeypatch):
    fake = FakeAdb()
    monkeypatch.setattr(SubprocessExecutor, "run", fake.run)
    return fake


def test_parse_devices_skips_header_and_daemon_lines():
    output = (
        "* daemon not running; starting now at tcp:5037\n"
        "* daemon started successfully\n"
        "List of devices attached\n"
        "ABC123\tdevice\n"
        "\n"
        "XYZ789\tunauthorized\n"
    )
    assert parse_devices(output) == [("ABC123", "device"), ("XYZ789", "unauthorized")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("devices_output", "expected"),
    [
        ("List of devices attached\n", NoDeviceError),
        ("List of devices attached\nA\tdevice\nB\tdevice\n", MultipleDevicesError),
        ("List of devices attached\nA\tunauthorized\n", DeviceUnauthorizedError),
        ("List of devices attached\nA\toffline\n", DeviceError),
    ],
)
async def test_connect_requires_exactly_one_ready_device(fake_adb, devices_output, expected):
    fake_adb.outputs = {"devices": devices_output}

    with pytest.raises(expected):
        await AdbDeviceController.connect(InstallerSettings())


@pytest.mark.asyncio
async def test_connect_and_shell_target_the_serial(fake_adb, tmp_path):
    key = tmp_path / "adbkey"
    key.write_text("private")
    settings = InstallerSettings(adb=AdbConfig(executable="/opt/adb", vendor_key_path=key))
    fake_adb.outputs = {"devices": "List of devices attached\nSERIAL1\tdevice\n", "echo hi": "hi\n"}

    device = await AdbDeviceController.connect(settings)
    output = await device.shell("echo hi")

    assert device.serial == "SERIAL1"
    assert output == "hi\n"
    args, env = fake_adb.calls[-1]
    assert args == ("/opt/adb", "-s", "SERIAL1", "shell", "echo hi")
    assert env["ADB_VENDOR_KEYS"] == str(key)


@pytest.mark.asyncio
async def test_shell_failure_becomes_device_error(fake_adb):
    fake_adb.returncode = 1
    device = AdbDeviceController("SERIAL1")

    with pytest.raises(DeviceError, match="error: closed"):
        await device.shell("false")

    # check=False returns output instead of raising
    assert await device.shell("false", check=False) == ""


@pytest.mark.asyncio
async def test_install_package_reports_failure_output(fake_adb, tmp_path):
    apk = tmp_path / "MABL.apk"
    apk.write_bytes(b"apk")
    fake_adb.outputs = {"install": "Performing Streamed Install\nFailure [INSTALL_FAILED_VERSION_DOWNGRADE]\n"}
    device = AdbDeviceController("SERIAL1")

    with pytest.raises(ApkInstallationFailedError) as exc_info:
        await device.install_package(apk)

    assert exc_info.value.apk == "MABL.apk"
    assert "INSTALL_FAILED_VERSION_DOWNGRADE" in str(exc_info.value)
    assert fake_adb.calls[-1][0] == ("adb", "-s", "SERIAL1", "install", "-r", str(apk))


@pytest.mark.asyncio
async def test_install_missing_file(fake_adb, tmp_path):
    device = AdbDeviceController("SERIAL1")

    with pytest.raises(FileNotFoundInStagingError):
        await device.install_package(tmp_path / "missing.apk")
    assert fake_adb.calls == []


@pytest.mark.asyncio
async def test_uninstall_is_best_effort(fake_adb):
    fake_adb.returncode = 1
    device = AdbDeviceController("SERIAL1")

    await device.uninstall_package("com.penumbraos.mabl")

    commands = [call[0][-1] for call in fake_adb.calls]
    assert commands == ["pm uninstall --user 0 com.penumbraos.mabl", "pm uninstall com.penumbraos.mabl"]


@pytest.mark.asyncio
async def test_helpers_build_shell_commands(fake_adb):
    fake_adb.outputs = {
        "pm list packages": "com.penumbraos.mabl\ncom.penumbraos.pinitd\n",
        "dumpsys package": "    versionName=2025.08.06\n",
        "[ -f": "exists\n",
    }
    device = AdbDeviceController("SERIAL1")

    assert await device.list_packages("com.penumbraos") == ["com.penumbraos.mabl", "com.penumbraos.pinitd"]
    assert await device.package_version("com.penumbraos.mabl") == "2025.08.06"
    assert await device.file_exists("/sdcard/a.json")

    await device.write_file("/sdcard/a.txt", "it's")
    assert fake_adb.calls[-1][0][-1] == "echo 'it'\"'\"'s' > /sdcard/a.txt"

    await device.push(Path(__file__), "/sdcard/")
    assert fake_adb.calls[-1][0][3:] == ("push", str(Path(__file__)), "/sdcard/")
