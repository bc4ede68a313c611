#!/usr/bin/env python3
"""File decorations for policy status.

This module maps workspace files to a badge and tooltip:
- Paths are made relative to the workspace root before resolution
- Files outside the workspace, or covered by no rule, get no decoration
- Badge and tooltip are Jinja2 templates per status
- Decorations are cached per path until the engine's rules change, with
  least recently used paths evicted past a size limit

Example:
    >>> provider = DecorationProvider(engine, root="/work/project")
    >>> provider.provide("/work/project/src/secret/key.txt").tooltip
    'LLM: Denied'
"""

import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import jinja2

from pathpolicy.core.constants import DEFAULT_CONFIG, ConfigKey, Limits, RuleStatus
from pathpolicy.core.path_utils import normalize_path
from pathpolicy.infrastructure.logger import Logger, get_logger
from pathpolicy.rules.engine import RuleEngine, find_winning_rule
from pathpolicy.rules.ruleset import RuleSet

DEFAULT_DECORATIONS: Dict[str, Dict[str, str]] = DEFAULT_CONFIG[ConfigKey.ROOT][
    ConfigKey.DECORATIONS
]


class DecorationError(Exception):
    """Raised when a decoration template is invalid or fails to render."""


@dataclass(frozen=True)
class Decoration:
    """Badge and tooltip for one file."""

    path: str
    status: RuleStatus
    badge: str
    tooltip: str
    pattern: str
    rule_index: int


class DecorationProvider:
    """Provides decorations for files based on the engine's current rules."""

    def __init__(
        self,
        engine: RuleEngine,
        root: Optional[Union[str, Path]] = None,
        templates: Optional[Mapping[str, Mapping[str, str]]] = None,
        logger: Optional[Logger] = None,
        cache_size: int = Limits.DECORATION_CACHE_SIZE,
    ):
        """Initialize decoration provider.

        Args:
            engine: Rule engine to query
            root: Workspace root; absolute paths are made relative to it
            templates: Per-status {"badge": ..., "tooltip": ...} templates
                overriding the defaults
            logger: Logger (default: global logger)
            cache_size: Maximum number of cached paths

        Raises:
            DecorationError: If a template does not compile
        """
        self._engine = engine
        self._root = os.path.abspath(root) if root is not None else None
        self._logger = logger or get_logger()
        self._env = jinja2.Environment(autoescape=False, keep_trailing_newline=False)
        self._templates: Dict[RuleStatus, Dict[str, jinja2.Template]] = {}
        self._cache: OrderedDict[str, Optional[Decoration]] = OrderedDict()
        self._cache_size = max(1, cache_size)
        self._cache_lock = threading.Lock()

        self.set_templates(templates or {})
        engine.add_listener(self._on_rules_changed)

    def set_templates(self, templates: Mapping[str, Mapping[str, str]]) -> None:
        """Compile badge and tooltip templates.

        Args:
            templates: Per-status overrides; missing entries use defaults

        Raises:
            DecorationError: If a template does not compile
        """
        compiled: Dict[RuleStatus, Dict[str, jinja2.Template]] = {}
        for status in RuleStatus:
            sources = dict(DEFAULT_DECORATIONS[status.value])
            sources.update(templates.get(status.value, {}))
            try:
                compiled[status] = {
                    name: self._env.from_string(source) for name, source in sources.items()
                }
            except jinja2.TemplateSyntaxError as e:
                raise DecorationError(f"Invalid {status.value} decoration template: {e}")

        self._templates = compiled
        self._clear_cache()

    def relative_path(self, path: Union[str, Path]) -> Optional[str]:
        """Express a file path relative to the workspace root.

        Args:
            path: Absolute path, or path already relative to the root

        Returns:
            Normalized relative path, or None if the path is outside the root
        """
        path_str = os.fspath(path)
        if self._root is None or not os.path.isabs(path_str):
            return normalize_path(path_str)

        relative = os.path.relpath(os.path.abspath(path_str), self._root)
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            return None
        if relative == os.curdir:
            return ""
        return normalize_path(relative)

    def provide(self, path: Union[str, Path]) -> Optional[Decoration]:
        """Get the decoration for a file.

        Args:
            path: File path

        Returns:
            Decoration, or None when no rule covers the file or the file
            is outside the workspace

        Raises:
            DecorationError: If a template fails to render
        """
        relative = self.relative_path(path)
        if relative is None:
            return None

        with self._cache_lock:
            if relative in self._cache:
                self._cache.move_to_end(relative)
                return self._cache[relative]

        rules = self._engine.rules
        decoration = self._decorate(relative, rules)

        with self._cache_lock:
            # A reload may have happened meanwhile; only cache current results
            if self._engine.rules is rules:
                self._cache[relative] = decoration
                while len(self._cache) > self._cache_size:
                    self._cache.popitem(last=False)
        return decoration

    def _decorate(self, relative: str, rules: RuleSet) -> Optional[Decoration]:
        winner = find_winning_rule(relative, rules)
        if winner is None:
            return None

        context: Dict[str, Any] = {
            "path": relative,
            "status": winner.status.value,
            "pattern": winner.pattern,
            "index": winner.index,
            "comment": winner.comment or "",
        }
        templates = self._templates[winner.status]
        try:
            badge = templates[ConfigKey.BADGE].render(**context)
            tooltip = templates[ConfigKey.TOOLTIP].render(**context)
        except jinja2.TemplateError as e:
            raise DecorationError(f"Template error for {relative}: {e}")

        return Decoration(
            path=relative,
            status=winner.status,
            badge=badge,
            tooltip=tooltip,
            pattern=winner.pattern,
            rule_index=winner.index,
        )

    def _on_rules_changed(self, rules: RuleSet) -> None:
        self._logger.debug("Rules changed, refreshing decorations", rules=len(rules))
        self._clear_cache()

    def _clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def close(self) -> None:
        """Detach from the engine."""
        self._engine.remove_listener(self._on_rules_changed)
        self._clear_cache()
