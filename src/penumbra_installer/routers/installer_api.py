"""Installer API endpoints for the desktop front end."""

import typing
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from penumbra_installer.config import SettingsManager, get_settings_manager
from penumbra_installer.exceptions import InstallerError
from penumbra_installer.logger import get_logger
from penumbra_installer.models.api import (
    AdbKeyUpdate,
    DeviceInfo,
    GitHubTokenUpdate,
    InstallRequest,
    PackageInfo,
    RepositoryInfo,
    SetupInfo,
)
from penumbra_installer.models.install_config import UninstallPackages
from penumbra_installer.models.settings import InstallerSettings
from penumbra_installer.services.config import ConfigLoader
from penumbra_installer.services.device import AdbDeviceController, DeviceController, list_devices
from penumbra_installer.services.engine import InstallationRunner

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["installer"])

_runner = InstallationRunner()


def get_runner() -> InstallationRunner:
    return _runner


def get_settings(manager: SettingsManager = Depends(get_settings_manager)) -> InstallerSettings:
    return manager.get_config()


async def get_device(settings: InstallerSettings = Depends(get_settings)) -> DeviceController:
    try:
        return await AdbDeviceController.connect(settings)
    except InstallerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e


def _setup_info(settings: InstallerSettings) -> SetupInfo:
    key_path = settings.adb.vendor_key_path
    return SetupInfo(
        has_github_token=bool(settings.github.token),
        adb_key_path=str(key_path) if key_path else None,
    )


@router.get("/device", response_model=DeviceInfo)
async def get_device_status(settings: InstallerSettings = Depends(get_settings)) -> DeviceInfo:
    """Report whether exactly one ready device is attached."""
    try:
        devices = await list_devices(settings.adb)
    except InstallerError as e:
        return DeviceInfo(connected=False, device_count=0, error_message=str(e))

    if not devices:
        return DeviceInfo(connected=False, device_count=0, error_message="No Android device connected")
    if len(devices) > 1:
        return DeviceInfo(
            connected=False,
            device_count=len(devices),
            error_message="Multiple devices connected (exactly one required)",
        )

    _, state = devices[0]
    if state != "device":
        return DeviceInfo(connected=False, device_count=1, error_message=f"Device is {state}")

    return DeviceInfo(connected=True, device_count=1)


@router.get("/repositories", response_model=list[RepositoryInfo])
async def list_repositories() -> list[RepositoryInfo]:
    """List the repositories of the built-in configuration."""
    try:
        config = ConfigLoader.load_builtin()
    except InstallerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    return [RepositoryInfo.from_repository(repo) for repo in config.repositories]


@router.get("/packages", response_model=list[PackageInfo])
async def list_installed_packages(device: DeviceController = Depends(get_device)) -> list[PackageInfo]:
    """
    List installed packages that the built-in configuration would uninstall.

    Returns:
        Matching packages with the version reported by the device
    """
    try:
        config = ConfigLoader.load_builtin()

        package_names: list[str] = []
        for repo in config.repositories:
            for step in repo.cleanup:
                if not isinstance(step, UninstallPackages):
                    continue
                for pattern in step.patterns:
                    for package in await device.list_packages(pattern.replace("*", "")):
                        if package not in package_names:
                            package_names.append(package)

        return [
            PackageInfo(package_name=name, version=await device.package_version(name))
            for name in package_names
        ]
    except InstallerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e


@router.post("/installations")
async def start_installation(
    request: InstallRequest,
    settings: InstallerSettings = Depends(get_settings),
    runner: InstallationRunner = Depends(get_runner),
) -> StreamingResponse:
    """
    Install the built-in configuration, streaming progress as server-sent events.

    Raises:
        HTTPException: 409 if an installation is already running
    """
    try:
        stream = runner.start_installation(request, settings)
    except InstallerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e

    async def event_generator() -> typing.AsyncGenerator[str, None]:
        async for data in stream:
            yield data

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@router.post("/installations/cancel")
async def cancel_installation(runner: InstallationRunner = Depends(get_runner)) -> dict[str, bool]:
    """Request cancellation of the running installation."""
    return {"cancelled": runner.cancel()}


@router.get("/setup", response_model=SetupInfo)
async def get_setup(settings: InstallerSettings = Depends(get_settings)) -> SetupInfo:
    """Get the persisted front-end setup."""
    return _setup_info(settings)


@router.put("/setup/github-token", response_model=SetupInfo)
async def update_github_token(
    update: GitHubTokenUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> SetupInfo:
    """Store or clear the GitHub token."""
    settings = manager.get_config()
    settings.github.token = (update.token or "").strip()
    manager.save(settings)
    logger.info("GitHub token updated", has_token=bool(settings.github.token))
    return _setup_info(settings)


@router.put("/setup/adb-key", response_model=SetupInfo)
async def update_adb_key(
    update: AdbKeyUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> SetupInfo:
    """
    Select or clear the ADB private key file.

    Raises:
        HTTPException: 400 if the selected file does not exist
    """
    settings = manager.get_config()

    if update.path:
        key_path = Path(update.path).expanduser()
        if not key_path.is_file():
            raise HTTPException(status_code=400, detail=f"ADB key file not found: {key_path}")
        settings.adb.vendor_key_path = key_path
    else:
        settings.adb.vendor_key_path = None

    manager.save(settings)
    logger.info("ADB key updated", path=str(settings.adb.vendor_key_path))
    return _setup_info(settings)
