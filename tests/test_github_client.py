# ruff: noqa: ANN201
"""Tests for the GitHub artifact resolver using a mocked transport."""

import httpx
import pytest

from penumbra_installer.exceptions import ArtifactError, InvalidVersionError, NoReleasesFoundError
from penumbra_installer.models.install_config import Repository
from penumbra_installer.services.github import GitHubClient

API = "https://api.github.test"
RAW = "https://raw.github.test"


def make_repo(version="latest"):
    return Repository.model_validate(
        {
            "name": "mabl",
            "owner": "PenumbraOS",
            "repo": "mabl",
            "version": version,
            "releaseAssets": ["*.apk"],
            "installation": [],
        }
    )


def make_client(handler, token=None):
    return GitHubClient(token=token, api_url=API, raw_url=RAW, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_literal_version_needs_no_network():
    def handler(request):
        raise AssertionError(f"unexpected request {request.url}")

    async with make_client(handler) as client:
        assert await client.resolve_version(make_repo("2025-08-06.0")) == "2025-08-06.0"


@pytest.mark.asyncio
async def test_blank_version_is_rejected():
    async with make_client(lambda request: httpx.Response(500)) as client:
        with pytest.raises(InvalidVersionError):
            await client.resolve_version(make_repo("  "))


@pytest.mark.asyncio
async def test_latest_version_from_latest_release():
    def handler(request):
        assert request.url.path == "/repos/PenumbraOS/mabl/releases/latest"
        return httpx.Response(200, json={"tag_name": "2025-08-06.0"})

    async with make_client(handler) as client:
        assert await client.resolve_version(make_repo()) == "2025-08-06.0"


@pytest.mark.asyncio
async def test_latest_version_falls_back_to_release_listing():
    def handler(request):
        if request.url.path.endswith("/releases/latest"):
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=[{"tag_name": "nightly-2"}, {"tag_name": "nightly-1"}])

    async with make_client(handler) as client:
        assert await client.resolve_version(make_repo()) == "nightly-2"


@pytest.mark.asyncio
async def test_no_releases_is_reported():
    def handler(request):
        if request.url.path.endswith("/releases/latest"):
            return httpx.Response(404)
        return httpx.Response(200, json=[])

    async with make_client(handler) as client:
        with pytest.raises(NoReleasesFoundError, match="PenumbraOS/mabl"):
            await client.resolve_version(make_repo())


@pytest.mark.asyncio
async def test_api_error_mentions_auth_status_and_body():
    def handler(request):
        return httpx.Response(403, json={"message": "API rate limit exceeded"})

    async with make_client(handler, token="ghp_test") as client:
        with pytest.raises(ArtifactError) as exc_info:
            await client.get_release_assets("PenumbraOS", "mabl", "v1")

    error = exc_info.value
    assert error.http_status == 403
    assert error.has_auth
    assert "using auth" in str(error)
    assert "HTTP 403" in str(error)
    assert "rate limit" in str(error)


@pytest.mark.asyncio
async def test_requests_carry_user_agent_and_token():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["User-Agent"]
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"tag_name": "v1"})

    async with make_client(handler, token="ghp_test") as client:
        await client.resolve_version(make_repo())

    assert seen["ua"].startswith("PenumbraOS-Installer/")
    assert seen["auth"] == "Bearer ghp_test"


@pytest.mark.asyncio
async def test_download_assets_filters_and_excludes(tmp_path):
    def handler(request):
        if request.url.path == "/repos/PenumbraOS/mabl/releases/tags/v1":
            return httpx.Response(
                200,
                json={
                    "assets": [
                        {"name": "MABL-AiPin.apk", "browser_download_url": f"{RAW}/dl/MABL-AiPin.apk"},
                        {"name": "Plugin-Demo.apk", "browser_download_url": f"{RAW}/dl/Plugin-Demo.apk"},
                        {"name": "checksums.txt", "browser_download_url": f"{RAW}/dl/checksums.txt"},
                    ]
                },
            )
        if request.url.path.startswith("/dl/"):
            return httpx.Response(200, content=request.url.path.encode())
        return httpx.Response(404)

    async with make_client(handler) as client:
        written = await client.download_assets(
            "PenumbraOS", "mabl", "v1", "*.apk", tmp_path / "mabl", ["Plugin-Demo*"]
        )

    assert [p.name for p in written] == ["MABL-AiPin.apk"]
    assert (tmp_path / "mabl" / "MABL-AiPin.apk").read_bytes() == b"/dl/MABL-AiPin.apk"
    assert not (tmp_path / "mabl" / "Plugin-Demo.apk").exists()


@pytest.mark.asyncio
async def test_download_assets_without_matches_is_empty(tmp_path):
    def handler(request):
        return httpx.Response(200, json={"assets": [{"name": "a.zip", "browser_download_url": f"{RAW}/a.zip"}]})

    async with make_client(handler) as client:
        assert await client.download_assets("o", "r", "latest", "*.apk", tmp_path) == []


@pytest.mark.asyncio
async def test_download_single_repo_file(tmp_path):
    def handler(request):
        assert str(request.url) == f"{RAW}/PenumbraOS/sdk/v1/config/pinitd/bridge.unit"
        return httpx.Response(200, content=b"[Unit]")

    dest = tmp_path / "bridge.unit"
    async with make_client(handler) as client:
        assert await client.download_repo_file("PenumbraOS", "sdk", "v1", "config/pinitd/bridge.unit", dest) == [dest]

    assert dest.read_bytes() == b"[Unit]"


@pytest.mark.asyncio
async def test_download_repo_files_by_wildcard(tmp_path):
    def handler(request):
        if request.url.host == "api.github.test":
            assert request.url.path == "/repos/PenumbraOS/sdk/contents/config/pinitd"
            assert request.url.params["ref"] == "v1"
            return httpx.Response(
                200,
                json=[
                    {"name": "a.unit", "type": "file"},
                    {"name": "b.unit", "type": "file"},
                    {"name": "notes.md", "type": "file"},
                    {"name": "nested.unit", "type": "dir"},
                ],
            )
        return httpx.Response(200, content=request.url.path.encode())

    async with make_client(handler) as client:
        written = await client.download_repo_file("PenumbraOS", "sdk", "v1", "config/pinitd/*.unit", tmp_path)

    assert sorted(p.name for p in written) == ["a.unit", "b.unit"]
    assert (tmp_path / "a.unit").read_bytes() == b"/PenumbraOS/sdk/v1/config/pinitd/a.unit"


@pytest.mark.asyncio
async def test_failed_download_raises(tmp_path):
    async with make_client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(ArtifactError, match="without auth"):
            await client.download_repo_file("o", "r", "v1", "missing.txt", tmp_path / "missing.txt")


@pytest.mark.asyncio
async def test_transport_error_becomes_artifact_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(ArtifactError) as exc_info:
            await client.get_release_assets("o", "r", "v1")

    assert exc_info.value.http_status is None
