"""API request/response models."""

from pydantic import BaseModel, Field

from penumbra_installer.models.install_config import Repository


class DeviceInfo(BaseModel):
    """Device connection status."""

    connected: bool
    device_count: int
    error_message: str | None = None


class PackageInfo(BaseModel):
    """An installed package and its reported version."""

    package_name: str
    version: str | None = None


class RepositoryInfo(BaseModel):
    """Repository summary for selection in a front end."""

    name: str
    owner: str
    repo: str
    version: str
    reboot_after_completion: bool = False

    @classmethod
    def from_repository(cls, repo: Repository) -> "RepositoryInfo":
        return cls(
            name=repo.name,
            owner=repo.owner,
            repo=repo.repo,
            version=repo.version,
            reboot_after_completion=repo.reboot_after_completion,
        )


class InstallRequest(BaseModel):
    """Start an installation of the built-in configuration."""

    repos: list[str] = Field(default_factory=list)  # Empty selects every repository
    variables: dict[str, str] = Field(default_factory=dict)


class SetupInfo(BaseModel):
    """Persisted front-end setup, without secrets."""

    has_github_token: bool
    adb_key_path: str | None = None


class GitHubTokenUpdate(BaseModel):
    token: str | None = None


class AdbKeyUpdate(BaseModel):
    path: str | None = None
