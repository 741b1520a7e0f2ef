"""Command-line interface: ``penumbra <command>``."""

import argparse
import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from penumbra_installer import __version__
from penumbra_installer.config import get_config
from penumbra_installer.exceptions import (
    CliUsageError,
    DeviceUnauthorizedError,
    InstallerError,
    MultipleDevicesError,
    NoDeviceError,
)
from penumbra_installer.logger import get_logger, set_log_level
from penumbra_installer.models.install_config import InstallConfig
from penumbra_installer.models.settings import InstallerSettings
from penumbra_installer.services.config import ConfigLoader, filter_repositories, materialize
from penumbra_installer.services.device import AdbDeviceController
from penumbra_installer.services.engine import InstallationEngine
from penumbra_installer.services.logs import LogDump, dump_filename, dump_logcat, stream_logcat

logger = get_logger(__name__)


def parse_variable_overrides(tokens: Sequence[str]) -> dict[str, str]:
    """
    Parse trailing ``--name value`` / ``--name=value`` tokens into overrides.

    A bare ``--`` separator is ignored.

    Raises:
        CliUsageError: On a flag without a value, an empty name, or a token
            that does not start with ``--``
    """
    overrides: dict[str, str] = {}
    pending_name: str | None = None

    for token in tokens:
        if pending_name is not None:
            if token.startswith("--"):
                raise CliUsageError(f"Variable flag '--{pending_name}' missing value. Followed by '{token}'")
            overrides[pending_name] = token
            pending_name = None
            continue

        if token == "--":
            continue

        if not token.startswith("--"):
            raise CliUsageError(f"Unexpected variable token '{token}'. Variable flags must start with '--'")

        stripped = token[2:]
        name, sep, value = stripped.partition("=")
        if sep:
            if not name.strip():
                raise CliUsageError("Variable flag name cannot be empty")
            overrides[name.strip()] = value
        else:
            pending_name = stripped

    if pending_name is not None:
        raise CliUsageError(f"Variable flag '--{pending_name}' requires a value")

    return overrides


def _repo_list(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="penumbra",
        description="PenumbraOS official installer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  penumbra install                              # Install every repository of the built-in config
  penumbra install --repos pinitd,sdk           # Install a subset
  penumbra install -- --some_variable value     # Override a config variable
  penumbra download --cache-dir ./cache         # Stage artifacts for a later offline install
  penumbra install --cache-dir ./cache          # Install from staged artifacts
        """,
    )
    parser.add_argument("--version", action="version", version=f"penumbra {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--github-token",
        default=os.getenv("GITHUB_TOKEN"),
        help="GitHub token used for API requests (default: $GITHUB_TOKEN)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Install repositories onto the device", allow_abbrev=False)
    install.add_argument("--repos", type=_repo_list, help="Comma-separated repository names")
    install.add_argument("--cache-dir", type=Path, help="Install from artifacts staged by `download`")
    install.add_argument("--config", type=Path, help="Local configuration file")
    install.add_argument("--config-url", help="Configuration URL")

    uninstall = subparsers.add_parser("uninstall", help="Run cleanup steps", allow_abbrev=False)
    uninstall.add_argument("--repos", type=_repo_list, help="Comma-separated repository names")

    download = subparsers.add_parser("download", help="Stage artifacts without a device", allow_abbrev=False)
    download.add_argument("--repos", type=_repo_list, help="Comma-separated repository names")
    download.add_argument("--cache-dir", type=Path, required=True, help="Directory receiving the artifacts")

    list_parser = subparsers.add_parser("list", help="List repositories of a configuration")
    list_parser.add_argument("config", nargs="?", type=Path, help="Local configuration file")

    subparsers.add_parser("devices", help="Check the device connection")

    dump_logs = subparsers.add_parser("dump-logs", help="Save the device log to a file")
    dump_logs.add_argument("-s", "--stream", action="store_true", help="Follow the log until interrupted")
    dump_logs.add_argument("--output-dir", type=Path, default=Path.cwd(), help="Directory for the dump file")

    serve = subparsers.add_parser("serve", help="Run the HTTP API for the desktop front end")
    serve.add_argument("--port", type=int, metavar="PORT", help="Port number (will be saved to settings)")

    return parser


async def _install(args: argparse.Namespace, settings: InstallerSettings, overrides: dict[str, str]) -> None:
    config = await ConfigLoader.load(path=args.config, url=args.config_url)
    config = materialize(config, overrides)
    repositories = filter_repositories(config, args.repos)

    async with await InstallationEngine.create(
        config, settings, cache_dir=args.cache_dir, github_token=args.github_token
    ) as engine:
        await engine.install(repositories, with_cache=args.cache_dir is not None)


async def _uninstall(args: argparse.Namespace, settings: InstallerSettings) -> None:
    config = materialize(ConfigLoader.load_builtin(), {})
    repositories = filter_repositories(config, args.repos)

    async with await InstallationEngine.create(config, settings, github_token=args.github_token) as engine:
        await engine.uninstall(repositories)


async def _download(args: argparse.Namespace, settings: InstallerSettings) -> None:
    config = materialize(ConfigLoader.load_builtin(), {})
    repositories = filter_repositories(config, args.repos)

    async with await InstallationEngine.create(
        config, settings, cache_dir=args.cache_dir, github_token=args.github_token, connect=False
    ) as engine:
        await engine.download(repositories)


def print_repositories(config: InstallConfig) -> None:
    print(f"Available repositories in '{config.name}':")
    for repo in config.repositories:
        print(f"  {repo.name}")
        print(f"     Repository: {repo.slug}")
        print(f"     Version: {repo.version}")
        if repo.release_assets:
            print(f"     Assets: {', '.join(repo.release_assets)}")
        if repo.repo_files:
            print(f"     Files: {', '.join(repo.repo_files)}")


async def _devices(settings: InstallerSettings) -> int:
    print("Checking device connection...")
    try:
        device = await AdbDeviceController.connect(settings)
    except NoDeviceError:
        print("No Android device connected")
        print("   Please connect a device and enable USB debugging")
        return 1
    except MultipleDevicesError:
        print("Multiple devices connected")
        print("   Please connect exactly one device for installation")
        return 1
    except DeviceUnauthorizedError:
        print("Device unauthorized")
        print("   Please accept the USB debugging prompt on the device")
        return 1

    print(f"Single device connected and ready for installation ({device.serial})")
    return 0


def _dump_logs(args: argparse.Namespace, settings: InstallerSettings) -> None:
    device = asyncio.run(AdbDeviceController.connect(settings))
    args.output_dir.mkdir(parents=True, exist_ok=True)

    if not args.stream:
        dump = asyncio.run(dump_logcat(device, args.output_dir))
    else:
        dump = LogDump(path=args.output_dir / dump_filename())
        try:
            asyncio.run(stream_logcat(device, dump))
        except KeyboardInterrupt:
            pass

    print(f"\n\nWrote {dump.line_count} lines to {dump.path}")


def run_command(args: argparse.Namespace, extras: list[str]) -> int:
    """Execute a parsed command and return the process exit status."""
    settings = get_config()

    if args.command == "install":
        overrides = parse_variable_overrides(extras)
        asyncio.run(_install(args, settings, overrides))
    elif args.command == "uninstall":
        asyncio.run(_uninstall(args, settings))
    elif args.command == "download":
        asyncio.run(_download(args, settings))
    elif args.command == "list":
        config = ConfigLoader.load_from_file(args.config) if args.config else ConfigLoader.load_builtin()
        print_repositories(config)
    elif args.command == "devices":
        return asyncio.run(_devices(settings))
    elif args.command == "dump-logs":
        _dump_logs(args, settings)
    elif args.command == "serve":
        from penumbra_installer.main import run_server

        run_server(port=args.port)

    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point with CLI argument parsing."""
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)

    if args.verbose:
        set_log_level("DEBUG")

    if extras and args.command != "install":
        parser.error(f"unrecognized arguments: {' '.join(extras)}")

    try:
        return run_command(args, extras)
    except InstallerError as e:
        logger.debug("Command failed", command=args.command, error_type=type(e).__name__)
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
