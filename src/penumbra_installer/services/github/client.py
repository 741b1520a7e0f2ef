"""GitHub release and repository content client."""

import posixpath
from pathlib import Path
from typing import Any

import httpx

from penumbra_installer.exceptions import ArtifactError, InvalidVersionError, NoReleasesFoundError
from penumbra_installer.logger import get_logger
from penumbra_installer.models.install_config import LATEST_VERSION, Repository
from penumbra_installer.models.settings import GitHubConfig
from penumbra_installer.utils import user_agent
from penumbra_installer.utils.patterns import has_wildcard, matches_asset_name

logger = get_logger(__name__)

CHUNK_SIZE = 8192


class GitHubClient:
    """Resolves release versions and downloads release assets and raw files."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        raw_url: str = "https://raw.githubusercontent.com",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            token: Optional personal access token sent as a bearer token
            api_url: REST API base URL
            raw_url: Raw content base URL
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.api_url = api_url.rstrip("/")
        self.raw_url = raw_url.rstrip("/")
        self.has_auth = bool(token)

        headers = {"User-Agent": user_agent(), "Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            headers=headers,
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: GitHubConfig, timeout: float = 60.0, token: str | None = None) -> "GitHubClient":
        """Build a client from settings; an explicit token wins over the stored one."""
        return cls(
            token=token or config.token or None,
            api_url=config.api_url,
            raw_url=config.raw_url,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # Version resolution

    async def resolve_version(self, repository: Repository) -> str:
        """
        Determine the release tag to install for a repository.

        Literal versions are returned unchanged without any network access.

        Raises:
            InvalidVersionError: If the version is blank
            NoReleasesFoundError: If "latest" was requested and no release exists
            ArtifactError: If the API call fails
        """
        version = repository.version.strip()
        if not version:
            raise InvalidVersionError(repository.version)

        if version != LATEST_VERSION:
            return version

        return await self._get_latest_version(repository.owner, repository.repo)

    async def _get_latest_version(self, owner: str, repo: str) -> str:
        response = await self._get(f"{self.api_url}/repos/{owner}/{repo}/releases/latest", f"fetch '{repo}' latest release")
        if response.is_success:
            try:
                release = response.json()
            except ValueError:
                release = None
            tag_name = release.get("tag_name") if isinstance(release, dict) else None
            if isinstance(tag_name, str) and tag_name:
                return tag_name

        logger.debug("Latest release lookup failed, listing releases", repo=f"{owner}/{repo}", status=response.status_code)

        releases = await self._get_json(f"{self.api_url}/repos/{owner}/{repo}/releases", f"fetch '{repo}' releases")
        if not isinstance(releases, list):
            raise ArtifactError(f"parse '{repo}' releases (expected array of releases)", has_auth=self.has_auth)

        if not releases:
            raise NoReleasesFoundError(owner, repo)

        tag_name = releases[0].get("tag_name")
        if not isinstance(tag_name, str) or not tag_name:
            raise ArtifactError(f"parse '{repo}' releases (no tag_name found in release)", has_auth=self.has_auth)

        return tag_name

    # Release assets

    async def get_release_assets(self, owner: str, repo: str, version: str) -> list[dict[str, Any]]:
        """List the assets attached to a release."""
        if version == LATEST_VERSION:
            url = f"{self.api_url}/repos/{owner}/{repo}/releases/latest"
        else:
            url = f"{self.api_url}/repos/{owner}/{repo}/releases/tags/{version}"

        release = await self._get_json(url, f"fetch '{repo}'")
        assets = release.get("assets") if isinstance(release, dict) else None
        if not isinstance(assets, list):
            raise ArtifactError(f"fetch '{repo}' (no assets found in release)", has_auth=self.has_auth)

        return assets

    async def download_assets(
        self,
        owner: str,
        repo: str,
        version: str,
        name_pattern: str,
        dest_dir: Path,
        exclude_patterns: list[str] | None = None,
    ) -> list[Path]:
        """
        Download every release asset matching a name pattern.

        Args:
            owner: Repository owner
            repo: Repository name
            version: Release tag
            name_pattern: Wildcard pattern for asset names (case-sensitive)
            dest_dir: Directory receiving the files
            exclude_patterns: Asset name patterns to skip

        Returns:
            Paths of the written files; empty when nothing matched
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        exclude_patterns = exclude_patterns or []

        downloaded: list[Path] = []
        for asset in await self.get_release_assets(owner, repo, version):
            name = asset.get("name")
            if not isinstance(name, str):
                raise ArtifactError(f"fetch '{repo}' (asset has no name)", has_auth=self.has_auth)

            if not matches_asset_name(name, name_pattern):
                continue

            if any(matches_asset_name(name, pattern) for pattern in exclude_patterns):
                logger.info(f"  Skipping excluded asset: {name}")
                continue

            download_url = asset.get("browser_download_url")
            if not isinstance(download_url, str):
                raise ArtifactError(f"fetch '{repo}' (asset {name} has no download URL)", has_auth=self.has_auth)

            dest_path = dest_dir / name
            await self.download_url(download_url, dest_path)
            downloaded.append(dest_path)
            logger.info(f"  Downloaded: {name}")

        if not downloaded:
            logger.warning(f"  No assets found matching pattern: {name_pattern}")

        return downloaded

    # Repository files

    async def download_repo_file(self, owner: str, repo: str, version: str, path: str, dest: Path) -> list[Path]:
        """
        Download a file from the repository tree at a given ref.

        A path without wildcards is fetched directly into ``dest``. A path whose
        last segment is a pattern lists the parent directory and downloads every
        matching file into the ``dest`` directory.

        Returns:
            Paths of the written files
        """
        if has_wildcard(path):
            return await self._download_files_glob(owner, repo, version, path, dest)

        await self.download_url(f"{self.raw_url}/{owner}/{repo}/{version}/{path.lstrip('/')}", dest)
        return [dest]

    async def _download_files_glob(self, owner: str, repo: str, version: str, path: str, dest_dir: Path) -> list[Path]:
        parent, pattern = posixpath.split(path.strip("/"))

        entries = await self._get_json(
            f"{self.api_url}/repos/{owner}/{repo}/contents/{parent}",
            f"list contents of '{repo}'",
            params={"ref": version},
        )
        if not isinstance(entries, list):
            raise ArtifactError(f"list contents of '{repo}' (expected array of files)", has_auth=self.has_auth)

        dest_dir.mkdir(parents=True, exist_ok=True)

        downloaded: list[Path] = []
        for entry in entries:
            name = entry.get("name", "")
            if entry.get("type", "file") != "file" or not matches_asset_name(name, pattern):
                continue

            file_path = posixpath.join(parent, name) if parent else name
            dest_path = dest_dir / name
            await self.download_url(f"{self.raw_url}/{owner}/{repo}/{version}/{file_path}", dest_path)
            downloaded.append(dest_path)
            logger.info(f"  Downloaded: {name}")

        if not downloaded:
            logger.warning(f"  No repository files found matching: {path}")

        return downloaded

    # HTTP helpers

    async def download_url(self, url: str, dest: Path) -> None:
        """Stream a URL to a local file."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise ArtifactError(
                        f"download {url}", status_code=response.status_code, has_auth=self.has_auth
                    )
                with open(dest, "wb") as out_file:
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        out_file.write(chunk)
        except httpx.HTTPError as e:
            raise ArtifactError(f"download {url} ({e})", has_auth=self.has_auth) from e

    async def _get(self, url: str, action: str, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            return await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ArtifactError(f"{action} ({e})", has_auth=self.has_auth) from e

    async def _get_json(self, url: str, action: str, params: dict[str, str] | None = None) -> Any:  # noqa: ANN401
        response = await self._get(url, action, params=params)
        return self._validate_response(response, action)

    def _validate_response(self, response: httpx.Response, action: str) -> Any:  # noqa: ANN401
        if not response.is_success:
            try:
                body: object = response.json()
            except ValueError:
                body = response.text
            raise ArtifactError(action, status_code=response.status_code, body=body, has_auth=self.has_auth)

        try:
            return response.json()
        except ValueError as e:
            raise ArtifactError(f"{action} (invalid JSON response)", has_auth=self.has_auth) from e
