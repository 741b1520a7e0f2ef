"""Install plan models.

These mirror the YAML configuration document: a named plan with variables,
repositories and global setup steps. Steps are closed unions discriminated by
their ``type`` key.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

LATEST_VERSION = "latest"


class ConfigModel(BaseModel):
    """Base for immutable configuration nodes."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)


class ConfigVariable(ConfigModel):
    """A named placeholder that may be referenced as ``{{name}}``."""

    name: str
    description: str | None = None
    required: bool = False
    default: str | None = None


class FilePush(ConfigModel):
    """A local glob (relative to the staging directory) pushed to the device."""

    local: str
    remote: str  # Directory if it ends with "/", exact path otherwise
    chmod: str | None = None


class PermissionGrant(ConfigModel):
    package: str
    permission: str


class AppOpGrant(ConfigModel):
    package: str
    operation: str
    mode: str


# Installation steps


class CreateDirectories(ConfigModel):
    type: Literal["CreateDirectories"] = "CreateDirectories"
    paths: list[str]


class InstallApks(ConfigModel):
    type: Literal["InstallApks"] = "InstallApks"
    priority_order: list[str]
    allow_failures: bool = False
    exclude_patterns: list[str] = Field(default_factory=list)


class PushFiles(ConfigModel):
    type: Literal["PushFiles"] = "PushFiles"
    files: list[FilePush]


class GrantPermissions(ConfigModel):
    type: Literal["GrantPermissions"] = "GrantPermissions"
    grants: list[PermissionGrant]


class SetAppOps(ConfigModel):
    type: Literal["SetAppOps"] = "SetAppOps"
    ops: list[AppOpGrant]


class RunCommand(ConfigModel):
    type: Literal["RunCommand"] = "RunCommand"
    command: str
    ignore_failure: bool = False


class SetLauncher(ConfigModel):
    type: Literal["SetLauncher"] = "SetLauncher"
    component: str


class CreateConfig(ConfigModel):
    type: Literal["CreateConfig"] = "CreateConfig"
    path: str
    content: str
    only_if_missing: bool = False


InstallStep = Annotated[
    CreateDirectories
    | InstallApks
    | PushFiles
    | GrantPermissions
    | SetAppOps
    | RunCommand
    | SetLauncher
    | CreateConfig,
    Field(discriminator="type"),
]


# Cleanup steps


class UninstallPackages(ConfigModel):
    type: Literal["UninstallPackages"] = "UninstallPackages"
    patterns: list[str]


class RemoveDirectories(ConfigModel):
    type: Literal["RemoveDirectories"] = "RemoveDirectories"
    paths: list[str]


class RemoveDirectoriesIfEmpty(ConfigModel):
    type: Literal["RemoveDirectoriesIfEmpty"] = "RemoveDirectoriesIfEmpty"
    paths: list[str]


class RemoveFiles(ConfigModel):
    type: Literal["RemoveFiles"] = "RemoveFiles"
    paths: list[str]


CleanupStep = Annotated[
    UninstallPackages | RemoveDirectories | RemoveDirectoriesIfEmpty | RemoveFiles,
    Field(discriminator="type"),
]


class Repository(ConfigModel):
    """One unit of software tied to a GitHub project and version."""

    name: str
    owner: str
    repo: str
    # Literal tag name, or "latest" to resolve the newest release at run time
    version: str = LATEST_VERSION
    reboot_after_completion: bool = False
    cleanup: list[CleanupStep] = Field(default_factory=list)
    release_assets: list[str] = Field(alias="releaseAssets")
    repo_files: list[str] = Field(default_factory=list, alias="repoFiles")
    installation: list[InstallStep]

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def exclusion_patterns(self) -> list[str]:
        """Exclusion patterns of the first InstallApks step, used to skip downloads."""
        for step in self.installation:
            if isinstance(step, InstallApks):
                return list(step.exclude_patterns)
        return []


class InstallConfig(ConfigModel):
    """Root of an install plan."""

    name: str
    variables: list[ConfigVariable] = Field(default_factory=list)
    repositories: list[Repository]
    global_setup: list[InstallStep] = Field(default_factory=list)

    def get_repository(self, name: str) -> Repository | None:
        return next((r for r in self.repositories if r.name == name), None)
