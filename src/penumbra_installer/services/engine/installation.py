"""
Installation engine.

Interprets the steps of a concrete (variable-substituted) configuration:
stages release artifacts per repository, runs cleanup and installation steps
against the device, and performs run teardown.
"""

import asyncio
import shutil
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import assert_never

from penumbra_installer.exceptions import (
    ApkInstallationFailedError,
    ConfigError,
    DeviceError,
    InstallationStepFailedError,
    InstallerError,
    NoRepositoriesFoundError,
)
from penumbra_installer.logger import get_logger
from penumbra_installer.models.install_config import (
    CleanupStep,
    CreateConfig,
    CreateDirectories,
    FilePush,
    GrantPermissions,
    InstallApks,
    InstallConfig,
    InstallStep,
    PushFiles,
    RemoveDirectories,
    RemoveDirectoriesIfEmpty,
    RemoveFiles,
    Repository,
    RunCommand,
    SetAppOps,
    SetLauncher,
    UninstallPackages,
)
from penumbra_installer.models.settings import InstallerSettings
from penumbra_installer.services.device import AdbDeviceController, DeviceController
from penumbra_installer.services.github import GitHubClient
from penumbra_installer.utils.patterns import exclude_matching, has_wildcard, sort_by_priority

from .cancellation import CancellationToken

logger = get_logger(__name__)

ProgressSink = Callable[[str], None]

# App-op changes do not always stick on the first write; the whole list is
# applied this many times with a fixed pause in between.
APP_OP_REPETITIONS = 3
APP_OP_DELAY_SECONDS = 5.0

GLOBAL_SCOPE = "global"


class InstallationEngine:
    """Runs install, uninstall and download operations for one configuration."""

    def __init__(
        self,
        config: InstallConfig,
        device: DeviceController | None,
        github: GitHubClient,
        staging_root: Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Concrete configuration (placeholders already substituted)
            device: Connected device controller; None for download-only runs
            github: Artifact resolver
            staging_root: Directory holding one staging subdirectory per repository
            progress: Optional callback receiving one line per significant step
        """
        self.config = config
        self._device = device
        self.github = github
        self.staging_root = staging_root
        self.progress = progress

    @classmethod
    async def create(
        cls,
        config: InstallConfig,
        settings: InstallerSettings,
        cache_dir: Path | None = None,
        github_token: str | None = None,
        progress: ProgressSink | None = None,
        connect: bool = True,
    ) -> "InstallationEngine":
        """Build an engine from application settings, connecting to the device unless ``connect`` is False."""
        device = await AdbDeviceController.connect(settings) if connect else None
        github = GitHubClient.from_settings(settings.github, timeout=settings.advanced.http_timeout, token=github_token)
        staging_root = cache_dir if cache_dir is not None else settings.paths.temp_dir
        return cls(config, device, github, staging_root, progress=progress)

    @property
    def device(self) -> DeviceController:
        if self._device is None:
            raise DeviceError("No device connected")
        return self._device

    async def aclose(self) -> None:
        await self.github.aclose()

    async def __aenter__(self) -> "InstallationEngine":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _report(self, message: str, warning: bool = False) -> None:
        if warning:
            logger.warning(message)
        else:
            logger.info(message)
        if self.progress is not None:
            self.progress(message)

    # Runs

    async def install(
        self,
        repositories: Sequence[Repository],
        *,
        with_cache: bool = False,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """
        Install repositories in the given order.

        Args:
            repositories: Selected repositories
            with_cache: Use previously downloaded artifacts and keep the staging root
            cancel: Token checked between units of work

        Returns:
            Names of the repositories whose installation ran to completion

        Raises:
            NoRepositoriesFoundError: If the selection is empty
            ConfigError: If cache mode is used without staged artifacts
            InstallationStepFailedError: If a step fails fatally
            ApkInstallationFailedError: If a mandatory APK is rejected
        """
        cancel = cancel or CancellationToken()
        if not repositories:
            raise NoRepositoriesFoundError()

        self._report(f"Starting {self.config.name} installation")
        self.staging_root.mkdir(parents=True, exist_ok=True)

        installed: list[Repository] = []
        try:
            if self.config.global_setup:
                self._report("Running global setup")
                await self._run_install_steps(self.config.global_setup, self.staging_root, GLOBAL_SCOPE, cancel)

            self._report(f"Installing {len(repositories)} repositories")
            for repo in repositories:
                if cancel.is_cancelled:
                    break

                self._report(f"Installing repository: {repo.name}")
                if await self._install_repository(repo, with_cache, cancel):
                    installed.append(repo)
        finally:
            if not with_cache:
                logger.info("Cleaning up temporary files")
                shutil.rmtree(self.staging_root, ignore_errors=True)

        if cancel.is_cancelled:
            self._report("Installation cancelled", warning=True)
            return [repo.name for repo in installed]

        self._report("Installation complete")

        if any(repo.reboot_after_completion for repo in installed):
            self._report("Rebooting device")
            await self.device.reboot()

        return [repo.name for repo in installed]

    async def uninstall(
        self,
        repositories: Sequence[Repository],
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Run the cleanup steps of each repository, in reverse order."""
        cancel = cancel or CancellationToken()
        if not repositories:
            raise NoRepositoriesFoundError()

        self._report(f"Starting {self.config.name} uninstall")
        self._report(f"Uninstalling {len(repositories)} repositories")

        for repo in reversed(repositories):
            if cancel.is_cancelled:
                break

            if not repo.cleanup:
                self._report(f"No cleanup steps defined for {repo.name}")
                continue

            self._report(f"Running cleanup steps for {repo.name}")
            await self._run_cleanup_steps(repo.cleanup, repo.name, cancel)
            self._report(f"{repo.name} uninstallation complete")

        if cancel.is_cancelled:
            self._report("Uninstall cancelled", warning=True)
        else:
            self._report("Uninstallation complete")

    async def download(
        self,
        repositories: Sequence[Repository],
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Stage artifacts of each repository without touching the device."""
        cancel = cancel or CancellationToken()
        if not repositories:
            raise NoRepositoriesFoundError()

        self._report(f"Starting {self.config.name} asset download")
        self._report(f"Downloading {len(repositories)} repositories")

        for repo in repositories:
            if cancel.is_cancelled:
                break

            self._report(f"Downloading repository: {repo.name}")
            await self.stage_artifacts(repo, cancel)
            self._report(f"{repo.name} download complete")

        if not cancel.is_cancelled:
            self._report("Download complete - assets cached for installation")

    # Repository phases

    async def _install_repository(self, repo: Repository, with_cache: bool, cancel: CancellationToken) -> bool:
        staging_dir = self.staging_root / repo.name

        if with_cache:
            if not staging_dir.is_dir():
                raise ConfigError(
                    f"No cached assets found for repository '{repo.name}'. Run 'penumbra download' first."
                )
        else:
            await self.stage_artifacts(repo, cancel)

        if repo.cleanup:
            self._report(f"Running cleanup for {repo.name}")
            await self._run_cleanup_steps(repo.cleanup, repo.name, cancel)

        if cancel.is_cancelled:
            return False

        self._report(f"Running installation steps for {repo.name}")
        await self._run_install_steps(repo.installation, staging_dir, repo.name, cancel)

        if cancel.is_cancelled:
            return False

        self._report(f"{repo.name} installation complete")
        return True

    async def stage_artifacts(self, repo: Repository, cancel: CancellationToken) -> Path:
        """Download the release assets and repository files of a repository."""
        version = await self.github.resolve_version(repo)
        self._report(f"Version: {version}")

        staging_dir = self.staging_root / repo.name
        staging_dir.mkdir(parents=True, exist_ok=True)

        exclude_patterns = repo.exclusion_patterns()

        self._report("Downloading release assets")
        for pattern in repo.release_assets:
            if cancel.is_cancelled:
                return staging_dir

            downloaded = await self.github.download_assets(
                repo.owner, repo.repo, version, pattern, staging_dir, exclude_patterns
            )
            if not downloaded:
                self._report(f"No release assets found for pattern: {pattern}", warning=True)

        for file_path in repo.repo_files:
            if cancel.is_cancelled:
                return staging_dir

            self._report(f"Downloading repository file: {file_path}")
            if has_wildcard(file_path):
                dest = staging_dir
            else:
                dest = staging_dir / Path(file_path).name
            await self.github.download_repo_file(repo.owner, repo.repo, version, file_path, dest)

        return staging_dir

    # Step execution

    async def _run_install_steps(
        self,
        steps: Sequence[InstallStep],
        staging_dir: Path,
        scope: str,
        cancel: CancellationToken,
    ) -> None:
        for step in steps:
            if cancel.is_cancelled:
                return
            try:
                await self._execute_install_step(step, staging_dir, cancel)
            except ApkInstallationFailedError as e:
                if e.repository is not None:
                    raise
                raise ApkInstallationFailedError(e.apk, e.reason, scope) from e
            except InstallationStepFailedError:
                raise
            except (InstallerError, OSError) as e:
                raise InstallationStepFailedError(step.type, str(e), scope) from e

    async def _run_cleanup_steps(self, steps: Sequence[CleanupStep], scope: str, cancel: CancellationToken) -> None:
        for step in steps:
            if cancel.is_cancelled:
                return
            try:
                await self._execute_cleanup_step(step, cancel)
            except InstallationStepFailedError:
                raise
            except InstallerError as e:
                raise InstallationStepFailedError(step.type, str(e), scope) from e

    async def _execute_install_step(self, step: InstallStep, staging_dir: Path, cancel: CancellationToken) -> None:
        match step:
            case CreateDirectories(paths=paths):
                for path in paths:
                    if cancel.is_cancelled:
                        return
                    self._report(f"Creating directory: {path}")
                    await self.device.create_directory(path)

            case InstallApks():
                await self._install_apks(step, staging_dir, cancel)

            case PushFiles(files=files):
                for file_push in files:
                    if cancel.is_cancelled:
                        return
                    await self._push_files(staging_dir, file_push, cancel)

            case GrantPermissions(grants=grants):
                for grant in grants:
                    if cancel.is_cancelled:
                        return
                    self._report(f"Granting permission: {grant.permission} to {grant.package}")
                    await self.device.grant_permission(grant.package, grant.permission)

            case SetAppOps(ops=ops):
                for repetition in range(APP_OP_REPETITIONS):
                    if cancel.is_cancelled:
                        return
                    if repetition:
                        self._report(f"Delaying {APP_OP_DELAY_SECONDS:g}s to ensure app op changes succeed")
                        await asyncio.sleep(APP_OP_DELAY_SECONDS)

                    for op in ops:
                        if cancel.is_cancelled:
                            return
                        self._report(f"Setting app op: {op.package} {op.operation} {op.mode}")
                        await self.device.set_app_op(op.package, op.operation, op.mode)

            case RunCommand(command=command, ignore_failure=ignore_failure):
                self._report(f"Running command: {command}")
                try:
                    output = await self.device.shell(command)
                except InstallerError as e:
                    if not ignore_failure:
                        raise
                    self._report(f"Command failed (ignoring): {e}", warning=True)
                else:
                    if output.strip():
                        self._report(f"Command output: {output.strip()}")

            case SetLauncher(component=component):
                self._report(f"Setting launcher: {component}")
                await self.device.set_launcher(component)

            case CreateConfig(path=path, content=content, only_if_missing=only_if_missing):
                if only_if_missing and await self.device.file_exists(path):
                    self._report(f"Config already exists: {path}")
                    return
                self._report(f"Creating config: {path}")
                await self.device.write_file(path, content)

            case _:
                assert_never(step)

    async def _execute_cleanup_step(self, step: CleanupStep, cancel: CancellationToken) -> None:
        match step:
            case UninstallPackages(patterns=patterns):
                for pattern in patterns:
                    if cancel.is_cancelled:
                        return
                    for package in await self.device.list_packages(pattern.replace("*", "")):
                        if cancel.is_cancelled:
                            return
                        self._report(f"Uninstalling package: {package}")
                        await self.device.uninstall_package(package)

            case RemoveDirectories(paths=paths):
                for path in paths:
                    if cancel.is_cancelled:
                        return
                    self._report(f"Removing directory: {path}")
                    await self.device.remove_directory(path)

            case RemoveDirectoriesIfEmpty(paths=paths):
                for path in paths:
                    if cancel.is_cancelled:
                        return
                    if await self.device.is_directory_empty(path):
                        self._report(f"Removing empty directory: {path}")
                        await self.device.remove_directory(path)
                    else:
                        self._report(f"Directory not empty, skipping: {path}", warning=True)

            case RemoveFiles(paths=paths):
                for path in paths:
                    if cancel.is_cancelled:
                        return
                    self._report(f"Removing file: {path}")
                    await self.device.remove_file(path)

            case _:
                assert_never(step)

    async def _install_apks(self, step: InstallApks, staging_dir: Path, cancel: CancellationToken) -> None:
        apks = sorted(p for p in staging_dir.glob("*.apk") if p.is_file())
        apks = exclude_matching(apks, step.exclude_patterns)

        if not apks:
            self._report("No APK files found to install")
            return

        ordered = sort_by_priority(apks, step.priority_order)
        self._report(f"Installing {len(ordered)} APKs")

        for apk in ordered:
            if cancel.is_cancelled:
                return

            self._report(f"Installing APK: {apk.name}")
            try:
                await self.device.install_package(apk)
            except InstallerError as e:
                if not step.allow_failures:
                    raise
                self._report(f"Failed to install {apk.name} (continuing): {e}", warning=True)
            else:
                self._report(f"Installed APK: {apk.name}")

    async def _push_files(self, staging_dir: Path, file_push: FilePush, cancel: CancellationToken) -> None:
        for local_file in sorted(staging_dir.glob(file_push.local)):
            if cancel.is_cancelled:
                return
            if file_push.remote.endswith("/"):
                remote_path = f"{file_push.remote}{local_file.name}"
            else:
                remote_path = file_push.remote

            self._report(f"Pushing: {local_file.name} -> {remote_path}")
            await self.device.push(local_file, remote_path)

            if file_push.chmod:
                await self.device.shell(f"chmod {file_push.chmod} {remote_path}")
