"""
PathPolicy Core: Constants and Type Definitions

This module provides system-wide constants, error codes, and configuration
keys shared by the rule engine and its host glue.
"""
from enum import Enum, IntEnum
from typing import TypeAlias

# Version information
PATHPOLICY_VERSION = "1.0.0"

# Rules file looked up when no explicit path is given
DEFAULT_RULES_FILENAME = "llm_approvements.json"


class ErrorCode(IntEnum):
    """Standardized error codes for PathPolicy operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad rule entry, invalid configuration
    NOT_FOUND = 2  # Rules or settings file doesn't exist
    PERMISSION_DENIED = 3  # Insufficient permissions to read a file
    INTERNAL_ERROR = 6  # Bug in PathPolicy


# Type aliases for clarity
CandidatePath: TypeAlias = str
Pattern: TypeAlias = str


class RuleStatus(Enum):
    """Status a rule binds to the paths it covers."""

    ALLOW = "allow"
    DENY = "deny"


# Characters that turn a pattern into a glob
GLOB_CHARS = frozenset("*?[{")


class Limits:
    """Resource limits and default values."""

    MAX_PATH_LENGTH = 4096

    # Rule-file watching
    DEFAULT_WATCH_INTERVAL = 1.0  # seconds
    MIN_WATCH_INTERVAL = 0.05  # seconds

    # Compiled glob cache
    GLOB_CACHE_SIZE = 1024
    GLOB_STEP_CACHE_SIZE = 4096  # memoized state-set transitions per pattern

    # Per-path decoration cache
    DECORATION_CACHE_SIZE = 4096


class ConfigKey:
    """Configuration key constants."""

    ROOT = "pathpolicy"

    RULES_FILE = "rules_file"
    WATCH = "watch"
    WATCH_INTERVAL = "interval_seconds"
    LOGGING = "logging"
    DECORATIONS = "decorations"

    BADGE = "badge"
    TOOLTIP = "tooltip"

    # Raw rule entry fields
    ENTRY_PATH = "Path"
    ENTRY_STATUS = "Status"
    ENTRY_COMMENT = "Comment"


DEFAULT_CONFIG = {
    ConfigKey.ROOT: {
        ConfigKey.RULES_FILE: DEFAULT_RULES_FILENAME,
        ConfigKey.WATCH: {
            ConfigKey.WATCH_INTERVAL: Limits.DEFAULT_WATCH_INTERVAL,
        },
        ConfigKey.LOGGING: {
            "level": "INFO",
            "file": None,
        },
        ConfigKey.DECORATIONS: {
            RuleStatus.ALLOW.value: {
                ConfigKey.BADGE: "✅",
                ConfigKey.TOOLTIP: "LLM: Allowed",
            },
            RuleStatus.DENY.value: {
                ConfigKey.BADGE: "❌",
                ConfigKey.TOOLTIP: "LLM: Denied",
            },
        },
    }
}
