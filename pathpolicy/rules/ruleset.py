#!/usr/bin/env python3
"""Rule ingestion: validation, normalization and index assignment.

This module turns raw rule entries into an immutable RuleSet:
- Schema validation of each entry (string Path and Status)
- Case-insensitive status parsing, case-sensitive paths
- Path normalization and glob classification, done once per rule
- Duplicate detection for literal patterns
- Fatal errors for malformed top-level input, never a partial RuleSet

Example:
    >>> outcome = parse_rules('[{"Path": "src", "Status": "Allow"}]')
    >>> outcome.rules[0].status
    <RuleStatus.ALLOW: 'allow'>
    >>> outcome.warnings
    ()
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pathpolicy.core.constants import ConfigKey, RuleStatus
from pathpolicy.core.path_utils import is_glob_pattern, normalize_path
from pathpolicy.core.validators import (
    InvalidStatusError,
    MissingFieldError,
    validate_rule_entry,
)

FATAL_INVALID_JSON = "Invalid JSON syntax."
FATAL_NOT_AN_ARRAY = "Root element must be an array of rules."


@dataclass(frozen=True)
class Rule:
    """A single allow/deny rule.

    The pattern is expected to be normalized. is_glob is derived from it at
    construction and never recomputed.
    """

    pattern: str
    status: RuleStatus
    index: int
    comment: Optional[str] = field(default=None, compare=False)
    is_glob: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_glob", is_glob_pattern(self.pattern))

    @property
    def specificity(self) -> Tuple[int, int]:
        """Sort key: pattern length, then declaration index."""
        return len(self.pattern), self.index

    def to_entry(self) -> Dict[str, Any]:
        """Render the rule back into raw entry form.

        Returns:
            Dictionary with Path, Status and (if set) Comment
        """
        entry: Dict[str, Any] = {
            ConfigKey.ENTRY_PATH: self.pattern,
            ConfigKey.ENTRY_STATUS: self.status.value,
        }
        if self.comment is not None:
            entry[ConfigKey.ENTRY_COMMENT] = self.comment
        return entry


@dataclass(frozen=True)
class RuleSet:
    """Ordered, read-only collection of rules for one configuration load."""

    rules: Tuple[Rule, ...] = ()

    @classmethod
    def empty(cls) -> "RuleSet":
        """Return a RuleSet with no rules."""
        return cls()

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __getitem__(self, index: int) -> Rule:
        return self.rules[index]

    def __bool__(self) -> bool:
        return bool(self.rules)

    def literal_rules(self) -> List[Rule]:
        """Get rules matched by containment."""
        return [rule for rule in self.rules if not rule.is_glob]

    def glob_rules(self) -> List[Rule]:
        """Get rules matched by glob."""
        return [rule for rule in self.rules if rule.is_glob]


@dataclass(frozen=True)
class ParseOutcome:
    """Result of building a RuleSet.

    A fatal error always comes with an empty RuleSet and no warnings.
    """

    rules: RuleSet = field(default_factory=RuleSet)
    warnings: Tuple[str, ...] = ()
    fatal_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Return True if rules were loaded (possibly with warnings)."""
        return self.fatal_error is None

    @classmethod
    def fatal(cls, message: str) -> "ParseOutcome":
        """Build an outcome for malformed input."""
        return cls(rules=RuleSet.empty(), warnings=(), fatal_error=message)


def build_rule_set(raw_entries: Any) -> ParseOutcome:
    """Validate raw entries and build an immutable RuleSet.

    Entries failing validation are dropped with a warning and do not
    consume an index. Literal duplicates are kept and reported.

    Args:
        raw_entries: Ordered sequence of decoded rule entries

    Returns:
        ParseOutcome (never raises)
    """
    if not isinstance(raw_entries, (list, tuple)):
        return ParseOutcome.fatal(FATAL_NOT_AN_ARRAY)

    rules: List[Rule] = []
    warnings: List[str] = []
    # Latest rule index per literal pattern
    literal_seen: Dict[str, int] = {}

    for position, entry in enumerate(raw_entries):
        try:
            raw_path, status = validate_rule_entry(entry)
        except MissingFieldError:
            warnings.append(f"Item at index {position} is missing Path/Status. Skipped.")
            continue
        except InvalidStatusError as e:
            warnings.append(
                f"Item at index {position} has invalid Status '{e.value}'. "
                "Must be 'allow' or 'deny'. Skipped."
            )
            continue

        comment = entry.get(ConfigKey.ENTRY_COMMENT)
        rule = Rule(
            pattern=normalize_path(raw_path),
            status=status,
            index=len(rules),
            comment=comment if isinstance(comment, str) else None,
        )

        if not rule.is_glob:
            previous = literal_seen.get(rule.pattern)
            if previous is not None:
                warnings.append(
                    f"Duplicate path detected: {rule.pattern}. "
                    f"Rule at index {rule.index} overrides rule at index {previous}."
                )
            literal_seen[rule.pattern] = rule.index

        rules.append(rule)

    return ParseOutcome(rules=RuleSet(tuple(rules)), warnings=tuple(warnings))


def parse_rules(text: Optional[str]) -> ParseOutcome:
    """Decode a JSON rules document and build its RuleSet.

    Args:
        text: JSON text; empty or whitespace-only text means "no rules"

    Returns:
        ParseOutcome (never raises)
    """
    if text is None or not text.strip():
        return ParseOutcome()

    try:
        raw_entries = json.loads(text)
    except (ValueError, RecursionError):
        return ParseOutcome.fatal(FATAL_INVALID_JSON)

    return build_rule_set(raw_entries)


def rules_from_entries(entries: Sequence[Tuple[str, str]]) -> RuleSet:
    """Build a RuleSet from (path, status) pairs.

    Convenience for callers assembling rules in code; invalid pairs are
    dropped exactly as build_rule_set drops them.

    Args:
        entries: Sequence of (path, status) pairs

    Returns:
        RuleSet
    """
    raw = [
        {ConfigKey.ENTRY_PATH: path, ConfigKey.ENTRY_STATUS: status} for path, status in entries
    ]
    return build_rule_set(raw).rules
