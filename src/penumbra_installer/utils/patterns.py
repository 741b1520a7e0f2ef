"""Wildcard matching for artifact names and staged package files.

Supported forms: ``*`` (anything), ``*suffix``, ``prefix*``, ``*infix*``,
``prefix*suffix`` and plain names (exact match).

Release asset names are matched case-sensitively while APK filenames are
matched case-insensitively. Call sites use the helper for their kind of name
instead of passing the flag themselves.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

T = TypeVar("T", str, Path)


def has_wildcard(pattern: str) -> bool:
    return "*" in pattern


def matches(candidate: str, pattern: str, case_sensitive: bool = True) -> bool:
    """
    Check whether a name matches a wildcard pattern.

    Args:
        candidate: Name to test
        pattern: Wildcard pattern
        case_sensitive: Compare exactly when True, ignoring case otherwise

    Returns:
        True if the candidate matches
    """
    if pattern == "*":
        return True

    if not case_sensitive:
        candidate = candidate.lower()
        pattern = pattern.lower()

    if "*" not in pattern:
        return candidate == pattern

    parts = pattern.split("*")

    if len(parts) == 2:
        prefix, suffix = parts
        # len() guard keeps "ab*ba" from matching "aba"
        return (
            len(candidate) >= len(prefix) + len(suffix)
            and candidate.startswith(prefix)
            and candidate.endswith(suffix)
        )

    if len(parts) == 3 and parts[0] == "" and parts[2] == "":
        return parts[1] in candidate

    # Unsupported shapes (several inner wildcards) only match literally
    return candidate == pattern


def matches_asset_name(name: str, pattern: str) -> bool:
    """Match a release asset or repository file name (case-sensitive)."""
    return matches(name, pattern, case_sensitive=True)


def matches_apk_name(filename: str, pattern: str) -> bool:
    """Match a staged APK filename for ordering or exclusion (case-insensitive)."""
    return matches(filename, pattern, case_sensitive=False)


def _name_of(item: str | Path) -> str:
    return item.name if isinstance(item, Path) else Path(item).name


def exclude_matching(items: Sequence[T], exclude_patterns: Sequence[str]) -> list[T]:
    """Drop every item whose filename matches any exclusion pattern."""
    return [
        item
        for item in items
        if not any(matches_apk_name(_name_of(item), pattern) for pattern in exclude_patterns)
    ]


def sort_by_priority(items: Sequence[T], priority_order: Sequence[str]) -> list[T]:
    """
    Order files by the first priority pattern their filename matches.

    For each pattern in declared order, every still-unassigned matching file is
    appended in its original order; unmatched files follow, also in original
    order.

    Args:
        items: Files in discovery order
        priority_order: Patterns, highest priority first

    Returns:
        Reordered list containing every input item exactly once
    """
    remaining = list(items)
    ordered: list[T] = []

    for pattern in priority_order:
        matched = [item for item in remaining if matches_apk_name(_name_of(item), pattern)]
        remaining = [item for item in remaining if item not in matched]
        ordered.extend(matched)

    ordered.extend(remaining)
    return ordered
