"""
PathPolicy Core: Input Validators.

This module provides validation for raw rule entries and for the
settings dictionary loaded from YAML.
"""
from typing import Any, Dict, Mapping, Tuple

from pathpolicy.core.constants import ConfigKey, ErrorCode, Limits, RuleStatus


class ValidationError(Exception):
    """Base exception for validation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.error_code = error_code


class MissingFieldError(ValidationError):
    """Raised when a rule entry lacks a string Path or Status."""


class InvalidStatusError(ValidationError):
    """Raised when a rule entry's Status is not allow/deny."""

    def __init__(self, message: str, value: str):
        super().__init__(message)
        self.value = value


def validate_rule_entry(entry: Any) -> Tuple[str, RuleStatus]:
    """Validate a raw rule entry.

    Args:
        entry: Decoded entry, expected to be a mapping with string
            "Path" and "Status" fields

    Returns:
        Tuple of (raw path, parsed status)

    Raises:
        MissingFieldError: If Path or Status is missing or not a string
        InvalidStatusError: If Status is not "allow" or "deny" (any case)
    """
    if not isinstance(entry, Mapping):
        raise MissingFieldError("missing Path/Status")

    path = entry.get(ConfigKey.ENTRY_PATH)
    status = entry.get(ConfigKey.ENTRY_STATUS)

    if not isinstance(path, str) or not isinstance(status, str):
        raise MissingFieldError("missing Path/Status")

    try:
        return path, RuleStatus(status.lower())
    except ValueError:
        raise InvalidStatusError(f"invalid Status '{status}'", status)


def validate_settings(settings: Dict[str, Any]) -> bool:
    """Validate the merged settings dictionary.

    Args:
        settings: Settings dictionary (with or without the top-level
            "pathpolicy" key)

    Returns:
        True if valid

    Raises:
        ValidationError: If settings are invalid
    """
    if not isinstance(settings, dict):
        raise ValidationError("Settings must be a dictionary")

    section = settings.get(ConfigKey.ROOT, settings)
    if not isinstance(section, dict):
        raise ValidationError(f"'{ConfigKey.ROOT}' section must be a dictionary")

    if ConfigKey.RULES_FILE in section:
        rules_file = section[ConfigKey.RULES_FILE]
        if not isinstance(rules_file, str) or not rules_file:
            raise ValidationError(f"rules_file must be a non-empty string: {rules_file!r}")
        if len(rules_file) > Limits.MAX_PATH_LENGTH:
            raise ValidationError(f"rules_file exceeds maximum length ({Limits.MAX_PATH_LENGTH})")

    watch = section.get(ConfigKey.WATCH, {})
    if not isinstance(watch, dict):
        raise ValidationError("watch section must be a dictionary")
    if ConfigKey.WATCH_INTERVAL in watch:
        validate_interval(watch[ConfigKey.WATCH_INTERVAL])

    logging_section = section.get(ConfigKey.LOGGING, {})
    if not isinstance(logging_section, dict):
        raise ValidationError("logging section must be a dictionary")
    level = logging_section.get("level")
    if level is not None and str(level).upper() not in {
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    }:
        raise ValidationError(f"Invalid log level: {level}")

    decorations = section.get(ConfigKey.DECORATIONS, {})
    if not isinstance(decorations, dict):
        raise ValidationError("decorations section must be a dictionary")
    for key, value in decorations.items():
        try:
            RuleStatus(key)
        except ValueError:
            valid = [s.value for s in RuleStatus]
            raise ValidationError(f"Invalid decoration key: {key}. Must be one of {valid}")
        if not isinstance(value, dict):
            raise ValidationError(f"Decoration '{key}' must be a dictionary")
        for field_name in (ConfigKey.BADGE, ConfigKey.TOOLTIP):
            if field_name in value and not isinstance(value[field_name], str):
                raise ValidationError(f"Decoration '{key}.{field_name}' must be a string")

    return True


def validate_interval(interval: Any) -> bool:
    """Validate a polling interval.

    Args:
        interval: Interval in seconds

    Returns:
        True if valid

    Raises:
        ValidationError: If interval is not a number or is too small
    """
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise ValidationError(f"Interval must be numeric, got {type(interval).__name__}")

    if interval < Limits.MIN_WATCH_INTERVAL:
        raise ValidationError(
            f"Interval must be at least {Limits.MIN_WATCH_INTERVAL} seconds: {interval}"
        )

    return True
