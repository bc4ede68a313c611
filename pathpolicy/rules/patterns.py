#!/usr/bin/env python3
"""Glob pattern matching for normalized policy paths.

This module provides the glob side of rule coverage:
- Recursive wildcard (**) spanning whole path segments
- Single-segment wildcards (* and ?)
- Character classes ([a-z], [!abc], [^abc])
- Brace alternation ({ts,tsx}, nested and multi-segment)
- Compiled pattern caching

Patterns compile to a small automaton that is run over the candidate one
character at a time, keeping the set of live states. Matching time grows
linearly with the candidate length whatever the pattern looks like, and
brace groups are compiled in place rather than multiplied out.

Patterns and candidate paths are expected to be normalized already
(forward slashes, no leading or trailing slash). Malformed syntax never
raises: an unterminated "[" or "{" is matched as a literal character.

Example:
    >>> glob_matches("src/**/*.{ts,tsx}", "src/app/main.tsx")
    True
    >>> glob_matches("src/*.ts", "src/nested/utils.ts")
    False
"""

import functools
import threading
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Tuple, Union

from pathpolicy.core.constants import Limits

GLOBSTAR = "**"
SEPARATOR = "/"

# Edge tests other than a literal character
_ANY_CHAR = "any"  # every character, "/" included (globstar)
_SEGMENT_CHAR = "segment"  # every character except "/" (* and ?)


class _CharClass:
    """A bracket expression. Never matches the separator."""

    __slots__ = ("ranges", "negate")

    def __init__(self, ranges: List[Tuple[str, str]], negate: bool):
        self.ranges = ranges
        self.negate = negate

    def accepts(self, char: str) -> bool:
        if char == SEPARATOR:
            return False
        member = any(lo <= char <= hi for lo, hi in self.ranges)
        return member != self.negate


_EdgeTest = Union[str, _CharClass]


def _accepts(test: _EdgeTest, char: str) -> bool:
    if test is _ANY_CHAR:
        return True
    if test is _SEGMENT_CHAR:
        return char != SEPARATOR
    if isinstance(test, _CharClass):
        return test.accepts(char)
    return test == char


def _scan_brace_group(pattern: str, start: int) -> Optional[Tuple[int, List[str]]]:
    """Find the group opened at start.

    Args:
        pattern: Glob pattern
        start: Index of the opening "{"

    Returns:
        (index of closing "}", alternatives) or None if the group is
        unterminated or has no top-level comma
    """
    depth = 0
    alternatives: List[str] = []
    piece_start = start + 1

    for i in range(start, len(pattern)):
        char = pattern[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                if not alternatives:
                    return None
                alternatives.append(pattern[piece_start:i])
                return i, alternatives
        elif char == "," and depth == 1:
            alternatives.append(pattern[piece_start:i])
            piece_start = i + 1

    return None


def _parse_class(pattern: str, start: int) -> Optional[Tuple[_CharClass, int]]:
    """Parse a bracket expression starting at pattern[start].

    Args:
        pattern: Glob pattern
        start: Index of the opening "["

    Returns:
        (character class, index of closing "]") or None if the expression
        is unterminated within its path segment
    """
    n = len(pattern)
    i = start + 1
    negate = False
    if i < n and pattern[i] in "!^":
        negate = True
        i += 1

    first = i
    ranges: List[Tuple[str, str]] = []
    while i < n:
        char = pattern[i]
        if char == SEPARATOR:
            return None
        # A "]" in first position is a member, not the terminator
        if char == "]" and i > first:
            # Reversed ranges match nothing
            return _CharClass([(lo, hi) for lo, hi in ranges if lo <= hi], negate), i
        if i + 2 < n and pattern[i + 1] == "-" and pattern[i + 2] not in "]/":
            ranges.append((char, pattern[i + 2]))
            i += 3
        else:
            ranges.append((char, char))
            i += 1

    return None


class _Scope(NamedTuple):
    """Where a piece of pattern text sits inside the whole pattern."""

    segment_start: bool  # text begins a path segment
    segment_end: bool  # text ends a path segment
    slash_state: Optional[int]  # state before a "/" directly preceding the text


class _Compiler:
    """Builds the automaton for one pattern."""

    def __init__(self) -> None:
        self.epsilon: List[List[int]] = []
        self.edges: List[List[Tuple[_EdgeTest, int]]] = []

    def new_state(self) -> int:
        self.epsilon.append([])
        self.edges.append([])
        return len(self.edges) - 1

    def step(self, state: int, test: _EdgeTest) -> int:
        target = self.new_state()
        self.edges[state].append((test, target))
        return target

    def loop(self, state: int, test: _EdgeTest) -> int:
        """Zero or more characters accepted by test; returns the exit state."""
        body = self.new_state()
        self.epsilon[state].append(body)
        self.edges[body].append((test, body))
        exit_state = self.new_state()
        self.epsilon[body].append(exit_state)
        return exit_state

    def sequence(self, text: str, state: int, scope: _Scope) -> Tuple[int, List[int]]:
        """Compile text starting from state.

        Returns:
            (end state, states that may skip the "/" following text)
        """
        n = len(text)
        slash_state = scope.slash_state
        skip_next_slash: List[int] = []
        i = 0

        def starts_segment(pos: int) -> bool:
            return scope.segment_start if pos == 0 else text[pos - 1] == SEPARATOR

        def ends_segment(pos: int) -> bool:
            return scope.segment_end if pos == n else text[pos] == SEPARATOR

        while i < n:
            char = text[i]

            if char == SEPARATOR:
                target = self.step(state, SEPARATOR)
                for skipper in skip_next_slash:
                    self.epsilon[skipper].append(target)
                skip_next_slash = []
                slash_state, state = state, target
                i += 1
                continue

            previous_slash, slash_state = slash_state, None

            if char == "*":
                run = i
                while i < n and text[i] == "*":
                    i += 1
                if i - run >= 2 and starts_segment(run) and ends_segment(i):
                    entry = state
                    state = self.loop(state, _ANY_CHAR)
                    if previous_slash is not None:
                        # Zero segments: the preceding "/" goes too
                        self.epsilon[previous_slash].append(state)
                    else:
                        skip_next_slash = [entry]
                else:
                    # Runs of stars inside a segment act as a single star
                    state = self.loop(state, _SEGMENT_CHAR)
                continue

            if char == "{":
                group = _scan_brace_group(text, i)
                if group is not None:
                    end, alternatives = group
                    inner = _Scope(starts_segment(i), ends_segment(end + 1), previous_slash)
                    join = self.new_state()
                    skip_next_slash = []
                    for alternative in alternatives:
                        alt_end, alt_skips = self.sequence(alternative, state, inner)
                        self.epsilon[alt_end].append(join)
                        skip_next_slash.extend(alt_skips)
                    state = join
                    i = end + 1
                    continue

            if char == "[":
                parsed = _parse_class(text, i)
                if parsed is not None:
                    char_class, i = parsed
                    state = self.step(state, char_class)
                    i += 1
                    continue

            state = self.step(state, _SEGMENT_CHAR if char == "?" else char)
            i += 1

        return state, skip_next_slash


class GlobAutomaton:
    """Compiled glob pattern.

    Runs in a single pass over the candidate. Transitions between live
    state sets are memoized up to a fixed number of entries.
    """

    def __init__(self, pattern: str):
        """Compile a pattern.

        Args:
            pattern: Normalized glob pattern
        """
        compiler = _Compiler()
        start = compiler.new_state()
        accept, _ = compiler.sequence(pattern, start, _Scope(True, True, None))

        self._edges = compiler.edges
        self._closures = [self._closure(compiler.epsilon, s) for s in range(len(compiler.edges))]
        self._initial = self._closures[start]
        self._accept = accept
        self._steps: Dict[Tuple[FrozenSet[int], str], FrozenSet[int]] = {}
        self._steps_lock = threading.Lock()

    @staticmethod
    def _closure(epsilon: List[List[int]], state: int) -> FrozenSet[int]:
        seen = {state}
        pending = [state]
        while pending:
            for target in epsilon[pending.pop()]:
                if target not in seen:
                    seen.add(target)
                    pending.append(target)
        return frozenset(seen)

    @property
    def state_count(self) -> int:
        """Return the number of automaton states."""
        return len(self._edges)

    def _advance(self, current: FrozenSet[int], char: str) -> FrozenSet[int]:
        key = (current, char)
        cached = self._steps.get(key)
        if cached is not None:
            return cached

        following = set()
        for state in current:
            for test, target in self._edges[state]:
                if _accepts(test, char):
                    following.update(self._closures[target])
        result = frozenset(following)

        with self._steps_lock:
            if len(self._steps) >= Limits.GLOB_STEP_CACHE_SIZE:
                self._steps.clear()
            self._steps[key] = result
        return result

    def matches(self, candidate: str) -> bool:
        """Check whether the pattern describes the whole candidate.

        Args:
            candidate: Normalized candidate path

        Returns:
            True if matches
        """
        current = self._initial
        for char in candidate:
            current = self._advance(current, char)
            if not current:
                return False
        return self._accept in current


@functools.lru_cache(maxsize=Limits.GLOB_CACHE_SIZE)
def compile_glob(pattern: str) -> GlobAutomaton:
    """Compile a glob pattern, caching the result.

    Args:
        pattern: Normalized glob pattern

    Returns:
        Compiled automaton
    """
    return GlobAutomaton(pattern)


def glob_matches(pattern: str, candidate: str) -> bool:
    """Check whether a normalized candidate path matches a glob pattern.

    Args:
        pattern: Normalized glob pattern
        candidate: Normalized candidate path

    Returns:
        True if the pattern describes the whole candidate
    """
    return compile_glob(pattern).matches(candidate)


class GlobMatcher:
    """A single compiled glob pattern.

    Features:
    - Shared compiled-automaton cache with glob_matches()
    - Fail-soft handling of malformed syntax
    """

    def __init__(self, pattern: str):
        """Initialize matcher.

        Args:
            pattern: Normalized glob pattern
        """
        self._pattern = pattern
        self._compiled = compile_glob(pattern)

    @property
    def pattern(self) -> str:
        """Return the source pattern."""
        return self._pattern

    @property
    def automaton(self) -> GlobAutomaton:
        """Return the compiled automaton."""
        return self._compiled

    def matches(self, candidate: str) -> bool:
        """Check if a normalized candidate path matches.

        Args:
            candidate: Normalized candidate path

        Returns:
            True if matches
        """
        return self._compiled.matches(candidate)

    def __repr__(self) -> str:
        return f"GlobMatcher({self._pattern!r})"
