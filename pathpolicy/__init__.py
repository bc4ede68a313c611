"""PathPolicy - allow/deny path policy resolution.

Decides which rule of an ordered allow/deny rule list governs a file path,
with literal directory containment, glob patterns, and longest-pattern /
latest-rule precedence.
"""

from pathpolicy.core.constants import PATHPOLICY_VERSION, RuleStatus
from pathpolicy.core.path_utils import is_glob_pattern, normalize_path
from pathpolicy.rules import (
    ParseOutcome,
    ResolutionResult,
    Rule,
    RuleEngine,
    RuleSet,
    build_rule_set,
    glob_matches,
    parse_rules,
    resolve,
)

__version__ = PATHPOLICY_VERSION

__all__ = [
    "ParseOutcome",
    "ResolutionResult",
    "Rule",
    "RuleEngine",
    "RuleSet",
    "RuleStatus",
    "build_rule_set",
    "glob_matches",
    "is_glob_pattern",
    "normalize_path",
    "parse_rules",
    "resolve",
]
