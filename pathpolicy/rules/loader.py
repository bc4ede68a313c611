#!/usr/bin/env python3
"""Rules file loading and hot-reload for PathPolicy.

This module feeds the rule engine from a JSON rules file:
- Locating the rules file inside a workspace
- Reading and parsing it into a ParseOutcome
- Polling the file for changes in a background thread
- Swapping the engine's RuleSet on create/change, clearing it on delete

Example:
    >>> engine = RuleEngine()
    >>> watcher = RuleFileWatcher("llm_approvements.json", engine, interval=0.5)
    >>> watcher.start()
    >>> engine.resolve("src/index.ts")
    >>> watcher.stop()
"""

import os
import threading
from pathlib import Path
from typing import Optional, Tuple, Union

from pathpolicy.core.constants import DEFAULT_RULES_FILENAME, ErrorCode, Limits
from pathpolicy.core.validators import validate_interval
from pathpolicy.infrastructure.logger import Logger, get_logger
from pathpolicy.rules.engine import RuleEngine
from pathpolicy.rules.ruleset import ParseOutcome, parse_rules

# Directories never searched for a rules file
SKIPPED_DIRS = frozenset({"node_modules", ".git"})


class RuleFileError(Exception):
    """Rules file could not be read."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def find_rules_file(
    root: Union[str, Path], filename: str = DEFAULT_RULES_FILENAME
) -> Optional[Path]:
    """Locate the rules file in a workspace.

    The workspace root is checked first, then subdirectories in sorted
    order, skipping node_modules and .git.

    Args:
        root: Workspace root directory
        filename: Rules file name

    Returns:
        Path to the first rules file found, or None
    """
    root_path = Path(root)
    direct = root_path / filename
    if direct.is_file():
        return direct

    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        if filename in filenames:
            return Path(dirpath) / filename

    return None


def read_rules_file(path: Union[str, Path]) -> ParseOutcome:
    """Read and parse a rules file.

    Malformed content is reported through the outcome's fatal_error;
    only failures to read the file raise.

    Args:
        path: Path to the JSON rules file

    Returns:
        ParseOutcome

    Raises:
        RuleFileError: If the file is missing, unreadable or not UTF-8
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RuleFileError(f"Rules file not found: {path}", ErrorCode.NOT_FOUND)
    except PermissionError as e:
        raise RuleFileError(f"Cannot read rules file {path}: {e}", ErrorCode.PERMISSION_DENIED)
    except UnicodeDecodeError as e:
        raise RuleFileError(f"Rules file {path} is not valid UTF-8: {e}", ErrorCode.INVALID_INPUT)
    except OSError as e:
        raise RuleFileError(f"Failed to read rules file {path}: {e}")

    return parse_rules(text)


def report_outcome(outcome: ParseOutcome, logger: Logger, source: str = "") -> None:
    """Log a parse outcome the way a user should see it.

    Args:
        outcome: Outcome to report
        logger: Logger to report to
        source: Rules file name for context
    """
    if outcome.fatal_error:
        logger.error(f"Rules config error: {outcome.fatal_error}", rules_file=source)
        return

    for warning in outcome.warnings:
        logger.warning(f"Rules config warning: {warning}", rules_file=source)

    logger.info(
        f"Loaded {len(outcome.rules)} rules",
        rules_file=source,
        warnings=len(outcome.warnings),
    )


class RuleFileWatcher:
    """Polling watcher that keeps a RuleEngine in sync with a rules file.

    The watcher is the engine's only writer. A read failure keeps the
    previous rules in place; deleting the file clears them.
    """

    def __init__(
        self,
        path: Union[str, Path],
        engine: RuleEngine,
        interval: float = Limits.DEFAULT_WATCH_INTERVAL,
        logger: Optional[Logger] = None,
    ):
        """Initialize watcher.

        Args:
            path: Rules file to watch
            engine: Engine receiving the rules
            interval: Poll interval in seconds
            logger: Logger (default: global logger)

        Raises:
            ValidationError: If interval is invalid
        """
        validate_interval(interval)
        self._path = Path(path)
        self._engine = engine
        self._interval = interval
        self._logger = logger or get_logger()
        self._signature: Optional[Tuple[int, int]] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def path(self) -> Path:
        """Return the watched file path."""
        return self._path

    @property
    def is_running(self) -> bool:
        """Return True while the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _stat_signature(self) -> Optional[Tuple[int, int]]:
        """Get (mtime_ns, size) of the file, or None if it does not exist."""
        try:
            st = self._path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    def load(self) -> Optional[ParseOutcome]:
        """Load the file now and install its rules.

        Returns:
            The installed outcome, or None if the file is missing or
            unreadable
        """
        with self._logger.add_context(rules_file=str(self._path)):
            signature = self._stat_signature()
            if signature is None:
                self._signature = None
                self._logger.info("Rules file not present, no rules loaded")
                self._engine.clear()
                return None

            # A failed read leaves the old signature so the next poll retries
            try:
                outcome = read_rules_file(self._path)
            except RuleFileError as e:
                self._logger.error(f"Keeping previous rules: {e.message}")
                return None

            self._signature = signature
            self._engine.load(outcome)
            report_outcome(outcome, self._logger)
            return outcome

    def poll(self) -> bool:
        """Check the file once and react to changes.

        Returns:
            True if the file was created, changed or deleted
        """
        signature = self._stat_signature()
        if signature == self._signature:
            return False

        if signature is None:
            self._signature = None
            self._logger.info("Rules file deleted, clearing rules", rules_file=str(self._path))
            self._engine.clear()
            return True

        self._logger.debug("Rules file changed, reloading", rules_file=str(self._path))
        self.load()
        return True

    def start(self) -> None:
        """Load the file and start polling in a daemon thread."""
        self.load()

        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop, name="pathpolicy-rules-watcher", daemon=True
        )
        self._thread.start()

    def _watch_loop(self) -> None:
        """File polling loop."""
        while not self._stop_event.wait(self._interval):
            try:
                self.poll()
            except Exception as e:
                self._logger.exception("Rules watcher poll failed", e)

    def stop(self, timeout: float = 2.0) -> None:
        """Stop polling.

        Args:
            timeout: Seconds to wait for the thread to exit
        """
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
