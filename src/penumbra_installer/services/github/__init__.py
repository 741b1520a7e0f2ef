"""GitHub artifact services."""

from .client import GitHubClient

__all__ = ["GitHubClient"]
