#!/usr/bin/env python3
"""Rule engine for path policy resolution.

This module decides which rule governs a candidate path:
- Literal rules cover their exact path and everything below it
- The empty literal rule is a catch-all for the whole workspace
- Glob rules cover whatever their pattern matches
- Longest pattern wins; on equal length the later-declared rule wins

resolve() is a pure function of its inputs. RuleEngine holds the current
RuleSet snapshot for hosts that reload rules while queries are running.

Example:
    >>> rules = rules_from_entries([("src", "allow"), ("src/secret", "deny")])
    >>> resolve("src/secret/api_key.txt", rules)
    <ResolutionResult.DENY: 'deny'>
    >>> resolve("package.json", rules)
    <ResolutionResult.NO_MATCH: 'no_match'>
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from pathpolicy.core.constants import RuleStatus
from pathpolicy.core.path_utils import is_within, normalize_path
from pathpolicy.infrastructure.logger import get_logger
from pathpolicy.rules.patterns import glob_matches
from pathpolicy.rules.ruleset import ParseOutcome, Rule, RuleSet, rules_from_entries

__all__ = [
    "ResolutionResult",
    "RuleEngine",
    "covers",
    "find_winning_rule",
    "get_matching_rules",
    "resolve",
    "rules_from_entries",
]


class ResolutionResult(Enum):
    """Outcome of resolving a candidate path."""

    ALLOW = "allow"
    DENY = "deny"
    NO_MATCH = "no_match"  # No rule covers the path

    @classmethod
    def from_status(cls, status: RuleStatus) -> "ResolutionResult":
        """Map a rule status to a result."""
        return cls.ALLOW if status == RuleStatus.ALLOW else cls.DENY


def covers(rule: Rule, candidate: str) -> bool:
    """Check if a rule applies to a normalized candidate path.

    Args:
        rule: Rule to test
        candidate: Normalized candidate path

    Returns:
        True if the rule covers the candidate
    """
    if rule.is_glob:
        return glob_matches(rule.pattern, candidate)
    return is_within(candidate, rule.pattern)


def get_matching_rules(candidate_path: str, rules: Iterable[Rule]) -> List[Rule]:
    """Get all rules covering a path, most specific first.

    Args:
        candidate_path: Path to evaluate (normalized here)
        rules: RuleSet or any iterable of rules

    Returns:
        Covering rules ordered by (pattern length, index), descending
    """
    candidate = normalize_path(candidate_path)
    matches = [rule for rule in rules if covers(rule, candidate)]
    matches.sort(key=lambda r: r.specificity, reverse=True)
    return matches


def find_winning_rule(candidate_path: str, rules: Iterable[Rule]) -> Optional[Rule]:
    """Get the single rule governing a path.

    Args:
        candidate_path: Path to evaluate
        rules: RuleSet or any iterable of rules

    Returns:
        Winning rule, or None if no rule covers the path
    """
    candidate = normalize_path(candidate_path)
    winner: Optional[Rule] = None
    for rule in rules:
        if not covers(rule, candidate):
            continue
        if winner is None or rule.specificity > winner.specificity:
            winner = rule
    return winner


def resolve(candidate_path: str, rules: Iterable[Rule]) -> ResolutionResult:
    """Resolve the policy status of a path.

    Args:
        candidate_path: Path relative to the root the rules are written against
        rules: RuleSet or any iterable of rules

    Returns:
        ALLOW or DENY from the winning rule, NO_MATCH if none covers the path
    """
    winner = find_winning_rule(candidate_path, rules)
    if winner is None:
        return ResolutionResult.NO_MATCH
    return ResolutionResult.from_status(winner.status)


class RuleEngine:
    """Holder of the active RuleSet snapshot.

    Features:
    - Lock-free reads: each query works on the snapshot it started with
    - Wholesale replacement on reload, serialized between writers
    - Change listeners fired after every swap
    """

    def __init__(self, rules: Optional[RuleSet] = None):
        """Initialize rule engine.

        Args:
            rules: Initial rules (default: empty)
        """
        self._rules: RuleSet = rules if rules is not None else RuleSet.empty()
        self._last_outcome: Optional[ParseOutcome] = None
        self._write_lock = threading.Lock()
        self._listeners: List[Callable[[RuleSet], None]] = []

    @property
    def rules(self) -> RuleSet:
        """Return the current snapshot."""
        return self._rules

    @property
    def last_outcome(self) -> Optional[ParseOutcome]:
        """Return the outcome passed to the most recent load()."""
        return self._last_outcome

    def load(self, outcome: ParseOutcome) -> None:
        """Install the rules of a parse outcome.

        A fatal outcome carries an empty RuleSet, so no rule fires after it.

        Args:
            outcome: Result of build_rule_set() or parse_rules()
        """
        with self._write_lock:
            self._last_outcome = outcome
            self._rules = outcome.rules
        self._notify_listeners()

    def set_rules(self, rules: RuleSet) -> None:
        """Replace the current snapshot.

        Args:
            rules: New rules
        """
        with self._write_lock:
            self._last_outcome = None
            self._rules = rules
        self._notify_listeners()

    def clear(self) -> None:
        """Drop all rules."""
        self.set_rules(RuleSet.empty())

    def resolve(self, candidate_path: str) -> ResolutionResult:
        """Resolve a path against the current snapshot.

        Args:
            candidate_path: Path to evaluate

        Returns:
            Resolution result
        """
        return resolve(candidate_path, self._rules)

    def explain(self, candidate_path: str) -> Dict[str, Any]:
        """Describe how a path resolves.

        Args:
            candidate_path: Path to evaluate

        Returns:
            Dictionary with the normalized path, result, winning rule and
            every covering rule in precedence order
        """
        rules = self._rules
        matches = get_matching_rules(candidate_path, rules)
        winner = matches[0] if matches else None
        if winner is None:
            result = ResolutionResult.NO_MATCH
        else:
            result = ResolutionResult.from_status(winner.status)
        return {
            "path": normalize_path(candidate_path),
            "result": result,
            "winner": winner,
            "matches": matches,
        }

    def add_listener(self, callback: Callable[[RuleSet], None]) -> None:
        """Register a callback invoked with the new RuleSet after each swap.

        Args:
            callback: Listener function
        """
        with self._write_lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[RuleSet], None]) -> None:
        """Unregister a listener.

        Args:
            callback: Listener to remove
        """
        with self._write_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify_listeners(self) -> None:
        """Notify all listeners of a rule change."""
        rules = self._rules
        with self._write_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(rules)
            except Exception as e:
                get_logger().exception("Rule change listener failed", e)

    def __len__(self) -> int:
        """Return number of active rules."""
        return len(self._rules)
