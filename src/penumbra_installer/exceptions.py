"""Centralized exception hierarchy for the Penumbra installer.

Every error carries an English message for the CLI and logs, and a
recommended HTTP status code for the API layer.
"""


class InstallerError(Exception):
    """Base exception for all installer errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """
        Initialize the error.

        Args:
            message: Human-readable description, including the immediate cause
            status_code: Recommended HTTP status code (class default if omitted)
        """
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class DeviceError(InstallerError):
    """Raised when communication with the device fails."""

    status_code = 502

    def __init__(self, message: str) -> None:
        super().__init__(f"ADB error: {message}")


class NoDeviceError(DeviceError):
    """Raised when no device is attached."""

    status_code = 409

    def __init__(self) -> None:
        InstallerError.__init__(self, "No Android device connected")


class MultipleDevicesError(DeviceError):
    """Raised when more than one device is attached."""

    status_code = 409

    def __init__(self, count: int = 2) -> None:
        InstallerError.__init__(self, "Multiple devices connected (exactly one required)")
        self.count = count


class DeviceUnauthorizedError(DeviceError):
    """Raised when the attached device has not authorized this host."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("Device unauthorized. Please enable USB debugging")


class ArtifactError(InstallerError):
    """Raised when the source-hosting API or a download fails."""

    status_code = 502

    def __init__(
        self,
        action: str,
        status_code: int | None = None,
        body: object = None,
        has_auth: bool = False,
    ) -> None:
        auth_message = "using auth" if has_auth else "without auth"
        if status_code is None:
            message = f"GitHub API error: Failed to {action} {auth_message}"
        else:
            message = f"GitHub API error: Failed to {action} {auth_message}: HTTP {status_code}, body: {body!r}"
        super().__init__(message)
        self.action = action
        self.http_status = status_code
        self.body = body
        self.has_auth = has_auth


class NoReleasesFoundError(ArtifactError):
    """Raised when a repository has no published releases."""

    status_code = 404

    def __init__(self, owner: str, repo: str) -> None:
        InstallerError.__init__(self, f"GitHub API error: No releases found for {owner}/{repo}")
        self.action = f"resolve latest release of '{repo}'"
        self.http_status = None
        self.body = None
        self.has_auth = False


class ConfigError(InstallerError):
    """Raised for configuration parse, validation and templating failures."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(f"Configuration error: {message}")


class MissingRequiredVariableError(ConfigError):
    """Raised when a required variable has neither a default nor an override."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing value for required variable '{name}'")
        self.name = name


class NoRepositoriesFoundError(InstallerError):
    """Raised when a run selects no repositories."""

    status_code = 404

    def __init__(self) -> None:
        super().__init__("No repositories found matching filter")


class RepositoryNotFoundError(InstallerError):
    """Raised when a requested repository is not part of the configuration."""

    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__(f"Repository '{name}' not found in configuration")
        self.name = name


class InstallationStepFailedError(InstallerError):
    """Raised when an installation or cleanup step fails fatally."""

    def __init__(self, step: str, reason: str, repository: str | None = None) -> None:
        where = f"{step} ({repository})" if repository else step
        super().__init__(f"Installation step failed: {where}, reason: {reason}")
        self.step = step
        self.reason = reason
        self.repository = repository


class ApkInstallationFailedError(InstallerError):
    """Raised when a package install is rejected by the device."""

    def __init__(self, apk: str, reason: str, repository: str | None = None) -> None:
        where = f"{apk} ({repository})" if repository else apk
        super().__init__(f"APK installation failed: {where}, reason: {reason}")
        self.apk = apk
        self.reason = reason
        self.repository = repository


class FileNotFoundInStagingError(InstallerError):
    """Raised when an expected local file is missing."""

    status_code = 404

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class InvalidVersionError(InstallerError):
    """Raised when a version specification cannot be used."""

    status_code = 400

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid version format: {value}")
        self.value = value


class InstallationInProgressError(InstallerError):
    """Raised when a run is requested while another one is in flight."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("An installation is already in progress")


class CliUsageError(InstallerError):
    """Raised for malformed command-line input."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(f"CLI error: {message}")
