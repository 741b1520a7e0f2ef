"""Install configuration services."""

from .loader import DEFAULT_BUILTIN, ConfigLoader, dump_config, filter_repositories, validate_config
from .variables import apply_variables, materialize, replace_placeholders, resolve_variables

__all__ = [
    "DEFAULT_BUILTIN",
    "ConfigLoader",
    "apply_variables",
    "dump_config",
    "filter_repositories",
    "materialize",
    "replace_placeholders",
    "resolve_variables",
    "validate_config",
]
