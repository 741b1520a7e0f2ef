"""
Install configuration loading and validation.

Configurations are YAML documents. A built-in configuration ships with the
package; others are read from a local file or fetched from a URL.
"""

from collections.abc import Sequence
from pathlib import Path

import httpx
import yaml
from pydantic import ValidationError

from penumbra_installer.exceptions import ConfigError, RepositoryNotFoundError
from penumbra_installer.logger import get_logger
from penumbra_installer.models.install_config import InstallConfig, Repository
from penumbra_installer.utils import get_builtin_configs_dir, user_agent

logger = get_logger(__name__)

DEFAULT_BUILTIN = "penumbra"


class ConfigLoader:
    """Loads install configurations from their supported sources."""

    @staticmethod
    def list_builtin() -> list[str]:
        """Names of the configurations shipped with the installer."""
        return sorted(p.stem for p in get_builtin_configs_dir().glob("*.yml"))

    @staticmethod
    def load_builtin(name: str = DEFAULT_BUILTIN) -> InstallConfig:
        """
        Load a built-in configuration by name.

        Raises:
            ConfigError: If no built-in configuration has that name
        """
        config_file = get_builtin_configs_dir() / f"{name}.yml"
        if not config_file.is_file():
            available = ", ".join(ConfigLoader.list_builtin())
            raise ConfigError(f"Unknown built-in config: {name} (available: {available})")

        logger.debug("Loading built-in config", name=name)
        return ConfigLoader.load_from_str(config_file.read_text(encoding="utf-8"))

    @staticmethod
    def load_from_file(path: Path) -> InstallConfig:
        """Load a configuration from a local file."""
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e

        logger.info(f"Loaded config from {path}")
        return ConfigLoader.load_from_str(text)

    @staticmethod
    async def load_from_url(url: str, timeout: float = 30.0) -> InstallConfig:
        """Fetch and load a configuration from a URL."""
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            try:
                response = await client.get(url, headers={"User-Agent": user_agent()})
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ConfigError(f"Failed to fetch config from {url}: {e}") from e

        logger.info(f"Loaded config from {url}")
        return ConfigLoader.load_from_str(response.text)

    @staticmethod
    def load_from_str(text: str) -> InstallConfig:
        """
        Parse and validate a configuration document.

        Raises:
            ConfigError: On YAML syntax errors, schema mismatches or failed validation
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parsing error: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError("Configuration document must be a mapping")

        try:
            config = InstallConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

        validate_config(config)
        return config

    @staticmethod
    async def load(
        path: Path | None = None,
        url: str | None = None,
        builtin: str = DEFAULT_BUILTIN,
    ) -> InstallConfig:
        """
        Load from a file, a URL, or (when neither is given) a built-in configuration.

        Raises:
            ConfigError: If both a path and a URL are given
        """
        if path is not None and url is not None:
            raise ConfigError("`config` and `config_url` options are mutually exclusive")
        if path is not None:
            return ConfigLoader.load_from_file(path)
        if url is not None:
            return await ConfigLoader.load_from_url(url)
        return ConfigLoader.load_builtin(builtin)


def validate_config(config: InstallConfig) -> None:
    """
    Check the structural invariants of a configuration.

    Raises:
        ConfigError: Describing the first violated invariant
    """
    for variable in config.variables:
        if not variable.required and variable.default is None:
            raise ConfigError(f"Optional variable '{variable.name}' must define a default value")

    if not config.repositories:
        raise ConfigError("Configuration must have at least one repository")

    names: set[str] = set()
    for repo in config.repositories:
        if repo.name in names:
            raise ConfigError(f"Duplicate repository name: {repo.name}")
        names.add(repo.name)

        if not repo.owner or not repo.repo:
            raise ConfigError(f"Repository '{repo.name}' must have owner and repo")

        if not repo.release_assets and not repo.repo_files:
            raise ConfigError(f"Repository '{repo.name}' must have at least one release asset or repo file")


def filter_repositories(config: InstallConfig, names: Sequence[str] | None) -> list[Repository]:
    """
    Select repositories by name, in the order the caller gave them.

    Args:
        config: Loaded configuration
        names: Repository names, or None for every repository in configuration order

    Raises:
        RepositoryNotFoundError: For the first name not present in the configuration
    """
    if names is None:
        return list(config.repositories)

    filtered = []
    for name in names:
        repo = config.get_repository(name)
        if repo is None:
            raise RepositoryNotFoundError(name)
        filtered.append(repo)
    return filtered


def dump_config(config: InstallConfig) -> str:
    """Serialize a configuration back to a YAML document."""
    data = config.model_dump(mode="json", by_alias=True)
    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
