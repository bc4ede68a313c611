"""PathPolicy Rules System.

This module provides path policy rules and their resolution:
- Rule, RuleSet, build_rule_set: validated, immutable rule collections
- GlobMatcher, glob_matches: glob pattern matching
- resolve, RuleEngine: winner selection by specificity and recency
- RuleFileWatcher: keeps a RuleEngine in sync with a JSON rules file
"""

from .engine import (
    ResolutionResult,
    RuleEngine,
    covers,
    find_winning_rule,
    get_matching_rules,
    resolve,
)
from .loader import RuleFileError, RuleFileWatcher, find_rules_file, read_rules_file
from .patterns import GlobAutomaton, GlobMatcher, compile_glob, glob_matches
from .ruleset import ParseOutcome, Rule, RuleSet, build_rule_set, parse_rules, rules_from_entries

__all__ = [
    # Rule sets
    "Rule",
    "RuleSet",
    "ParseOutcome",
    "build_rule_set",
    "parse_rules",
    "rules_from_entries",
    # Pattern matching
    "GlobAutomaton",
    "GlobMatcher",
    "compile_glob",
    "glob_matches",
    # Resolution
    "ResolutionResult",
    "RuleEngine",
    "covers",
    "find_winning_rule",
    "get_matching_rules",
    "resolve",
    # Rules file
    "RuleFileError",
    "RuleFileWatcher",
    "find_rules_file",
    "read_rules_file",
]
