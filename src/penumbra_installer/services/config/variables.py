"""
Variable resolution and ``{{name}}`` substitution.

Substitution covers the configuration name and every string field of the
global setup, cleanup and installation steps. It returns a new configuration
and never mutates its input.
"""

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

from penumbra_installer.exceptions import ConfigError, MissingRequiredVariableError
from penumbra_installer.models.install_config import InstallConfig, Repository

OPEN = "{{"
CLOSE = "}}"

M = TypeVar("M", bound=BaseModel)


def resolve_variables(config: InstallConfig, overrides: Mapping[str, str]) -> dict[str, str]:
    """
    Merge declared defaults with caller overrides.

    Args:
        config: Configuration declaring the variables
        overrides: Values supplied by the caller

    Returns:
        Variable name to value

    Raises:
        ConfigError: If an override names an undeclared variable
        MissingRequiredVariableError: If a required variable has no value
    """
    declared = {variable.name for variable in config.variables}
    for key in overrides:
        if key not in declared:
            raise ConfigError(f"Unknown variable override '{key}'")

    resolved: dict[str, str] = {}
    for variable in config.variables:
        value = overrides.get(variable.name, variable.default)
        if value is not None:
            resolved[variable.name] = value
        elif variable.required:
            raise MissingRequiredVariableError(variable.name)

    return resolved


def _replace(text: str, values: Mapping[str, str], missing: set[str]) -> str:
    if OPEN not in text:
        return text

    output: list[str] = []
    rest = text

    while (start := rest.find(OPEN)) != -1:
        output.append(rest[:start])
        rest = rest[start + len(OPEN) :]

        end = rest.find(CLOSE)
        if end == -1:
            raise ConfigError("Unterminated variable placeholder")

        key = rest[:end].strip()
        rest = rest[end + len(CLOSE) :]

        if not key:
            raise ConfigError("Variable placeholder cannot be empty")

        if key in values:
            output.append(values[key])
        else:
            missing.add(key)

    output.append(rest)
    return "".join(output)


def _missing_error(missing: set[str]) -> ConfigError:
    return ConfigError(f"Missing values for variables: {', '.join(sorted(missing))}")


def replace_placeholders(text: str, values: Mapping[str, str]) -> str:
    """
    Replace every ``{{name}}`` in a single string.

    Raises:
        ConfigError: On an unterminated or empty placeholder, or unknown names
            (all unknown names are listed together)
    """
    missing: set[str] = set()
    result = _replace(text, values, missing)
    if missing:
        raise _missing_error(missing)
    return result


class _Substituter:
    """Rebuilds model trees with placeholders replaced, collecting unknown names."""

    def __init__(self, values: Mapping[str, str]) -> None:
        self.values = values
        self.missing: set[str] = set()

    def value(self, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return _replace(value, self.values, self.missing)
        if isinstance(value, list):
            return [self.value(item) for item in value]
        if isinstance(value, BaseModel):
            return self.model(value)
        return value

    def model(self, model: M) -> M:
        update = {}
        for field_name in type(model).model_fields:
            current = getattr(model, field_name)
            replaced = self.value(current)
            if replaced != current:
                update[field_name] = replaced
        return model.model_copy(update=update) if update else model

    def repository(self, repo: Repository) -> Repository:
        # Identity fields (owner, repo, version, asset patterns) stay literal
        return repo.model_copy(
            update={
                "cleanup": self.value(repo.cleanup),
                "installation": self.value(repo.installation),
            }
        )


def apply_variables(config: InstallConfig, values: Mapping[str, str]) -> InstallConfig:
    """
    Produce a concrete copy of a configuration with every placeholder replaced.

    Args:
        config: Configuration possibly containing ``{{name}}`` placeholders
        values: Resolved variable values

    Returns:
        New configuration; the input is left untouched

    Raises:
        ConfigError: On malformed placeholders, or one error listing every
            unknown variable name found anywhere in the tree
    """
    substituter = _Substituter(values)

    name = substituter.value(config.name)
    repositories = [substituter.repository(repo) for repo in config.repositories]
    global_setup = substituter.value(config.global_setup)

    if substituter.missing:
        raise _missing_error(substituter.missing)

    return config.model_copy(
        update={
            "name": name,
            "repositories": repositories,
            "global_setup": global_setup,
        }
    )


def materialize(config: InstallConfig, overrides: Mapping[str, str]) -> InstallConfig:
    """Resolve variables and substitute them into a concrete configuration."""
    return apply_variables(config, resolve_variables(config, overrides))
