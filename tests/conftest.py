# ruff: noqa
import re
from pathlib import Path

import pytest

from penumbra_installer.exceptions import ApkInstallationFailedError, DeviceError
from penumbra_installer.services.device import DeviceController
from penumbra_installer.utils.patterns import matches_asset_name


class FakeDevice(DeviceController):
    """In-memory device recording every call in order."""

    def __init__(self, packages=None, files=None, listings=None, failing_commands=(), failing_apks=()):
        self.serial = "FAKE123"
        self.calls = []
        self.packages = list(packages or [])
        self.files = set(files or [])
        self.listings = dict(listings or {})
        self.failing_commands = tuple(failing_commands)
        self.failing_apks = tuple(failing_apks)

    @property
    def shell_commands(self):
        return [call[1] for call in self.calls if call[0] == "shell"]

    async def shell(self, command, check=True):
        self.calls.append(("shell", command))

        if check and any(fragment in command for fragment in self.failing_commands):
            raise DeviceError(f"`shell {command}` exited with 1: failure")

        if command.startswith("pm list packages"):
            substring = re.search(r"grep '([^']*)'", command).group(1)
            return "".join(f"{p}\n" for p in self.packages if substring in p)

        if command.startswith("[ -f "):
            path = command[len("[ -f ") :].split(" ]")[0]
            return "exists\n" if path in self.files else ""

        if command.startswith("echo "):
            self.files.add(command.rsplit(" > ", 1)[1])
            return ""

        if command.startswith("ls -A "):
            return self.listings.get(command[len("ls -A ") :], "")

        return ""

    async def install_package(self, apk_path):
        self.calls.append(("install", apk_path.name))
        if apk_path.name in self.failing_apks:
            raise ApkInstallationFailedError(apk_path.name, "Failure [INSTALL_FAILED_TEST]")

    async def uninstall_package(self, package):
        self.calls.append(("uninstall", package))

    async def push(self, local_path, remote_path):
        self.calls.append(("push", local_path.name, remote_path))

    async def reboot(self):
        self.calls.append(("reboot",))


class FakeGitHub:
    """Artifact resolver serving fixed release assets and repository files."""

    def __init__(self, assets=None, repo_files=None, latest="v1.0.0"):
        # assets: repo -> list of asset names; repo_files: repo -> {path: content}
        self.assets = assets or {}
        self.repo_files = repo_files or {}
        self.latest = latest
        self.requests = []
        self.closed = False

    async def resolve_version(self, repository):
        return self.latest if repository.version == "latest" else repository.version

    async def download_assets(self, owner, repo, version, name_pattern, dest_dir, exclude_patterns=None):
        self.requests.append(("assets", repo, version, name_pattern, list(exclude_patterns or [])))
        dest_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for name in self.assets.get(repo, []):
            if not matches_asset_name(name, name_pattern):
                continue
            if any(matches_asset_name(name, p) for p in exclude_patterns or []):
                continue
            (dest_dir / name).write_text(name)
            written.append(dest_dir / name)
        return written

    async def download_repo_file(self, owner, repo, version, path, dest):
        self.requests.append(("file", repo, version, path))
        written = []
        for file_path, content in self.repo_files.get(repo, {}).items():
            if "*" in path:
                parent, pattern = path.rsplit("/", 1)
                if not file_path.startswith(parent + "/") or not matches_asset_name(Path(file_path).name, pattern):
                    continue
                target = dest / Path(file_path).name
            elif file_path == path:
                target = dest
            else:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            written.append(target)
        return written

    async def aclose(self):
        self.closed = True


@pytest.fixture
def device_factory():
    return FakeDevice


@pytest.fixture
def github_factory():
    return FakeGitHub
