# ruff: noqa: ANN201
"""Tests for the command-line interface."""

import pytest

from penumbra_installer import cli
from penumbra_installer.exceptions import CliUsageError, NoDeviceError
from penumbra_installer.services.engine import installation as installation_module


def test_parse_variable_overrides_accepts_both_forms():
    tokens = ["--", "--root", "/sdcard/p", "--mode=allow", "--empty="]

    assert cli.parse_variable_overrides(tokens) == {"root": "/sdcard/p", "mode": "allow", "empty": ""}


@pytest.mark.parametrize(
    ("tokens", "message"),
    [
        (["--root"], "requires a value"),
        (["--root", "--mode", "x"], "missing value"),
        (["--=value"], "name cannot be empty"),
        (["root", "value"], "must start with '--'"),
    ],
)
def test_parse_variable_overrides_rejects_malformed_tokens(tokens, message):
    with pytest.raises(CliUsageError, match=message):
        cli.parse_variable_overrides(tokens)


def test_list_prints_builtin_repositories(capsys):
    assert cli.main(["list"]) == 0

    out = capsys.readouterr().out
    assert "Available repositories in 'PenumbraOS':" in out
    assert "Repository: PenumbraOS/mabl" in out
    assert "Files: config/pinitd/*.unit" in out


def test_list_with_invalid_file_exits_with_error(tmp_path, capsys):
    broken = tmp_path / "broken.yml"
    broken.write_text("name: Broken\nrepositories: []\n")

    assert cli.main(["list", str(broken)]) == 1
    assert "Error: Configuration error:" in capsys.readouterr().out


def test_install_passes_trailing_variables(monkeypatch):
    captured = {}

    async def fake_install(args, settings, overrides):
        captured["repos"] = args.repos
        captured["overrides"] = overrides

    monkeypatch.setattr(cli, "_install", fake_install)

    assert cli.main(["install", "--repos", "sdk,mabl", "--", "--penumbra_root", "/sdcard/x"]) == 0
    assert captured == {"repos": ["sdk", "mabl"], "overrides": {"penumbra_root": "/sdcard/x"}}


def test_install_rejects_bad_variable_tokens(capsys):
    assert cli.main(["install", "--", "stray"]) == 1
    assert "CLI error: Unexpected variable token 'stray'" in capsys.readouterr().out


def test_other_commands_reject_extra_arguments():
    with pytest.raises(SystemExit):
        cli.main(["uninstall", "--bogus"])


def test_devices_reports_missing_device(monkeypatch, capsys):
    async def fake_connect(settings):
        raise NoDeviceError()

    monkeypatch.setattr(cli.AdbDeviceController, "connect", fake_connect)

    assert cli.main(["devices"]) == 1
    assert "No Android device connected" in capsys.readouterr().out


def test_devices_reports_ready_device(monkeypatch, capsys, device_factory):
    async def fake_connect(settings):
        return device_factory()

    monkeypatch.setattr(cli.AdbDeviceController, "connect", fake_connect)

    assert cli.main(["devices"]) == 0
    assert "ready for installation (FAKE123)" in capsys.readouterr().out


def test_download_requires_cache_dir():
    with pytest.raises(SystemExit):
        cli.main(["download"])


def test_download_does_not_connect_to_a_device(tmp_path, monkeypatch, github_factory):
    github = github_factory(assets={"pinitd": ["pinitd-cli", "pinitd.apk"]})

    async def fail_connect(settings):
        raise NoDeviceError()

    monkeypatch.setattr(installation_module.AdbDeviceController, "connect", fail_connect)
    monkeypatch.setattr(installation_module.GitHubClient, "from_settings", lambda config, timeout, token: github)

    assert cli.main(["download", "--repos", "pinitd", "--cache-dir", str(tmp_path / "cache")]) == 0
    assert (tmp_path / "cache" / "pinitd" / "pinitd.apk").is_file()
    assert github.closed
