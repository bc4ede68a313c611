#!/usr/bin/env python3
"""Foreground watch loop for PathPolicy.

This module handles:
- Component initialization (RuleEngine, RuleFileWatcher)
- Hot-reload of the rules file until shutdown
- Signal handling for graceful shutdown
- Cleanup on exit

Example:
    >>> from pathpolicy.main import run_pathpolicy
    >>> run_pathpolicy(args, config, logger, rules_path)
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from pathpolicy.core.constants import ConfigKey, Limits, RuleStatus
from pathpolicy.infrastructure.config_manager import ConfigManager
from pathpolicy.infrastructure.logger import Logger
from pathpolicy.rules.engine import RuleEngine
from pathpolicy.rules.loader import RuleFileWatcher
from pathpolicy.rules.ruleset import RuleSet

# How often the main loop checks for shutdown
SHUTDOWN_POLL_SECONDS = 0.5


class PathPolicyMain:
    """
    Main class for the PathPolicy watch mode.

    Handles component lifecycle, the watch loop, and shutdown.
    """

    def __init__(
        self,
        args: argparse.Namespace,
        config: ConfigManager,
        logger: Logger,
        rules_path: Path,
    ):
        """
        Initialize the watch controller.

        Args:
            args: Parsed command-line arguments
            config: Settings manager
            logger: Logger instance
            rules_path: Rules file to watch
        """
        self.args = args
        self.config = config
        self.logger = logger
        self.rules_path = rules_path
        self.shutdown_event = threading.Event()

        self.rule_engine: Optional[RuleEngine] = None
        self.watcher: Optional[RuleFileWatcher] = None

    def initialize_components(self) -> None:
        """
        Create the rule engine and the rules file watcher.

        Raises:
            ValidationError: If the configured interval is invalid
        """
        self.logger.info("Initializing components...")

        interval = self.config.get(
            f"{ConfigKey.ROOT}.{ConfigKey.WATCH}.{ConfigKey.WATCH_INTERVAL}",
            Limits.DEFAULT_WATCH_INTERVAL,
        )

        self.logger.debug("Creating RuleEngine")
        self.rule_engine = RuleEngine()
        self.rule_engine.add_listener(self._on_rules_changed)

        self.logger.debug("Creating RuleFileWatcher", interval=interval)
        self.watcher = RuleFileWatcher(
            self.rules_path, self.rule_engine, interval=interval, logger=self.logger
        )

        self.logger.info("All components initialized successfully")

    def _on_rules_changed(self, rules: RuleSet) -> None:
        """Log a summary of the newly active rules."""
        allow = sum(1 for rule in rules if rule.status == RuleStatus.ALLOW)
        self.logger.info(
            "Policy updated",
            rules=len(rules),
            allow=allow,
            deny=len(rules) - allow,
            globs=len(rules.glob_rules()),
        )

    def setup_signal_handlers(self) -> None:
        """
        Setup signal handlers for graceful shutdown.

        Handles:
        - SIGTERM: Graceful shutdown
        - SIGINT: Graceful shutdown (Ctrl+C)
        """

        def signal_handler(signum, frame):
            """Handle shutdown signals."""
            sig_name = signal.Signals(signum).name
            self.logger.info(f"Received signal {sig_name}, shutting down...")
            self.shutdown_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        self.logger.debug("Signal handlers registered")

    def watch(self) -> int:
        """
        Watch the rules file until shutdown is requested.

        Returns:
            Exit code (0 for success)
        """
        self.logger.info(f"Watching rules file: {self.rules_path}")
        self.watcher.start()

        while not self.shutdown_event.wait(SHUTDOWN_POLL_SECONDS):
            pass

        return 0

    def cleanup(self) -> None:
        """Stop the watcher and detach listeners."""
        self.logger.info("Cleaning up...")

        if self.watcher:
            self.watcher.stop()

        if self.rule_engine:
            self.rule_engine.remove_listener(self._on_rules_changed)

        self.logger.info("Cleanup complete")

    def run(self) -> int:
        """
        Run the watch loop.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        try:
            self.initialize_components()
            self.setup_signal_handlers()
            return self.watch()

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return 130

        except Exception as e:
            self.logger.exception("Fatal error", e)
            return 1

        finally:
            self.cleanup()


def run_pathpolicy(
    args: argparse.Namespace, config: ConfigManager, logger: Logger, rules_path: Path
) -> int:
    """
    Main entry point for the watch mode.

    Args:
        args: Parsed command-line arguments
        config: Settings manager
        logger: Logger instance
        rules_path: Rules file to watch

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    main = PathPolicyMain(args, config, logger, rules_path)
    return main.run()


def main():
    """
    Entry point when run as standalone script.

    Typically called via cli.py, but can be run directly for testing.
    """
    from pathpolicy.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
