"""
PathPolicy Core: Path Utilities

Canonicalization of rule patterns and candidate paths, and the lexical
check that separates literal rules from glob rules.

Example:
    >>> normalize_path(".\\\\src\\\\secret\\\\")
    'src/secret'
    >>> is_glob_pattern("src/**/*.ts")
    True
"""
import os
from typing import Optional, Union

from pathpolicy.core.constants import GLOB_CHARS


def normalize_path(path: Optional[Union[str, "os.PathLike[str]"]]) -> str:
    """Canonicalize a path or pattern string.

    Backslashes become forward slashes, leading "./" and "/" prefixes are
    removed, and trailing "/" is removed. Nothing else changes: no case
    folding, no ".." resolution and no collapsing of internal slashes.

    Args:
        path: Path or pattern to normalize (None and "" map to "")

    Returns:
        Normalized path
    """
    if not path:
        return ""

    if not isinstance(path, str):
        path = os.fspath(path)

    normalized = path.replace("\\", "/")

    # Leading prefixes are stripped until none remain so that the result is
    # a fixed point of this function.
    while True:
        if normalized.startswith("./"):
            normalized = normalized[2:]
        elif normalized.startswith("/"):
            normalized = normalized[1:]
        else:
            break

    while normalized.endswith("/"):
        normalized = normalized[:-1]

    return normalized


def is_glob_pattern(pattern: str) -> bool:
    """Check whether a normalized pattern uses glob syntax.

    Args:
        pattern: Normalized pattern

    Returns:
        True if the pattern contains any of "*", "?", "[" or "{"
    """
    return any(char in GLOB_CHARS for char in pattern)


def is_within(candidate: str, parent: str) -> bool:
    """Check literal coverage of a normalized candidate by a normalized parent.

    The empty parent is the workspace root and covers everything.

    Args:
        candidate: Normalized candidate path
        parent: Normalized literal rule path

    Returns:
        True if candidate equals parent or lies below it
    """
    if parent == "":
        return True
    return candidate == parent or candidate.startswith(parent + "/")
