#!/usr/bin/env python3
"""Command-line interface for PathPolicy.

This module provides the CLI for checking paths against a rules file:
- Argument parsing and validation
- Settings file loading and CLI overrides
- Rules file discovery
- check / validate / watch commands

Example:
    >>> from pathpolicy.cli import parse_arguments
    >>> args = parse_arguments(["--rules", "llm_approvements.json", "check", "src/app.ts"])
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pathpolicy.core.constants import PATHPOLICY_VERSION, ConfigKey
from pathpolicy.core.validators import ValidationError, validate_interval
from pathpolicy.decorations import DecorationError, DecorationProvider
from pathpolicy.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource
from pathpolicy.infrastructure.logger import Logger, set_global_logger
from pathpolicy.rules.engine import RuleEngine
from pathpolicy.rules.loader import RuleFileError, find_rules_file, read_rules_file, report_outcome
from pathpolicy.rules.ruleset import ParseOutcome

# Version information
VERSION = PATHPOLICY_VERSION
DESCRIPTION = "PathPolicy - allow/deny policy resolution for workspace paths"

# Exit code for a rules file that could not be loaded at all
EXIT_FATAL_RULES = 2


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If arguments fail validation
    """
    parser = argparse.ArgumentParser(
        prog="pathpolicy",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the status of some files
  pathpolicy check src/index.ts src/secret/api_key.txt

  # Explain which rules cover a file
  pathpolicy --rules llm_approvements.json check --explain src/index.ts

  # Report warnings in a rules file
  pathpolicy validate

  # Follow a rules file and log every reload
  pathpolicy watch --interval 0.5
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Settings file path (YAML format)",
    )

    parser.add_argument(
        "-r",
        "--rules",
        metavar="FILE",
        type=str,
        help="Rules file (default: llm_approvements.json found under --root)",
    )

    parser.add_argument(
        "--root",
        metavar="DIR",
        type=str,
        default=".",
        help="Workspace root the rules are written against (default: .)",
    )

    log_group = parser.add_argument_group("logging options")

    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    check = subparsers.add_parser("check", help="Resolve the status of paths")
    check.add_argument(
        "paths",
        metavar="PATH",
        nargs="+",
        help="Paths to check (relative paths are taken relative to --root)",
    )
    check.add_argument(
        "--explain",
        action="store_true",
        help="List every covering rule in precedence order",
    )

    subparsers.add_parser("validate", help="Report problems in the rules file")

    watch = subparsers.add_parser("watch", help="Reload the rules file on every change")
    watch.add_argument(
        "--interval",
        metavar="SECONDS",
        type=float,
        help="Polling interval in seconds",
    )

    parsed = parser.parse_args(args)

    _validate_arguments(parsed)

    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        CLIError: If validation fails
    """
    root = Path(args.root)
    if not root.exists():
        raise CLIError(f"Workspace root does not exist: {args.root}")
    if not root.is_dir():
        raise CLIError(f"Workspace root is not a directory: {args.root}")

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")
        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")

    # A watched rules file may appear later
    if args.rules and args.command != "watch":
        rules_path = Path(args.rules)
        if not rules_path.exists():
            raise CLIError(f"Rules file does not exist: {args.rules}")
        if not rules_path.is_file():
            raise CLIError(f"Rules path is not a file: {args.rules}")

    if getattr(args, "interval", None) is not None:
        try:
            validate_interval(args.interval)
        except ValidationError as e:
            raise CLIError(str(e))


def build_config_from_args(args: argparse.Namespace) -> Dict:
    """
    Build settings overrides from command-line arguments.

    Args:
        args: Parsed arguments namespace

    Returns:
        Settings dictionary for the CLI_ARGS source
    """
    section: Dict = {}

    if args.rules:
        section[ConfigKey.RULES_FILE] = args.rules

    if args.debug or args.log_file:
        section[ConfigKey.LOGGING] = {}
        if args.debug:
            section[ConfigKey.LOGGING]["level"] = "DEBUG"
        if args.log_file:
            section[ConfigKey.LOGGING]["file"] = args.log_file

    if getattr(args, "interval", None) is not None:
        section[ConfigKey.WATCH] = {ConfigKey.WATCH_INTERVAL: args.interval}

    return {ConfigKey.ROOT: section}


def load_settings(args: argparse.Namespace) -> ConfigManager:
    """
    Load settings from file, environment and arguments.

    Args:
        args: Parsed arguments namespace

    Returns:
        Validated settings manager

    Raises:
        CLIError: If settings cannot be loaded or are invalid
    """
    try:
        config = ConfigManager(args.config)
        config.load_dict(build_config_from_args(args), ConfigSource.CLI_ARGS)
        config.validate()
    except ConfigError as e:
        raise CLIError(f"Invalid settings: {e.message}")

    return config


def resolve_rules_path(args: argparse.Namespace, config: ConfigManager) -> Path:
    """
    Determine which rules file to use.

    An explicit --rules path is used as given. Otherwise the configured
    rules_file is used directly when absolute, or searched for under the
    workspace root.

    Args:
        args: Parsed arguments namespace
        config: Settings manager

    Returns:
        Rules file path (for watch, possibly not existing yet)

    Raises:
        CLIError: If no rules file can be found for check/validate
    """
    if args.rules:
        return Path(args.rules)

    filename = config.get(f"{ConfigKey.ROOT}.{ConfigKey.RULES_FILE}")
    if os.path.isabs(filename):
        candidate: Optional[Path] = Path(filename)
    else:
        candidate = find_rules_file(args.root, filename)

    if candidate is not None and (candidate.exists() or args.command == "watch"):
        return candidate

    if args.command == "watch":
        return Path(args.root) / filename

    raise CLIError(f"Rules file not found: {filename} (searched under {args.root})")


def setup_logging(config: ConfigManager) -> Logger:
    """
    Setup logging based on settings.

    Args:
        config: Settings manager

    Returns:
        Configured logger instance, also installed as the global logger
    """
    log_level = config.get(f"{ConfigKey.ROOT}.{ConfigKey.LOGGING}.level", "INFO")
    log_file = config.get(f"{ConfigKey.ROOT}.{ConfigKey.LOGGING}.file")

    logger = Logger("pathpolicy", level=log_level)
    if log_file:
        logger.add_handler(logger.create_file_handler(log_file))
        logger.debug(f"Logging to file: {log_file}")

    set_global_logger(logger)
    return logger


def load_outcome(rules_path: Path) -> ParseOutcome:
    """
    Read a rules file for a one-shot command.

    Args:
        rules_path: Rules file

    Returns:
        Parse outcome

    Raises:
        CLIError: If the file cannot be read
    """
    try:
        return read_rules_file(rules_path)
    except RuleFileError as e:
        raise CLIError(e.message)


def format_check_line(path: str, provider: DecorationProvider) -> str:
    """
    Format one line of check output.

    Args:
        path: Path as given on the command line
        provider: Decoration provider

    Returns:
        Output line
    """
    relative = provider.relative_path(path)
    if relative is None:
        return f"   {path}  (outside workspace)"

    decoration = provider.provide(path)
    if decoration is None:
        return f"   {relative}  (no rule)"

    return f"{decoration.badge} {relative}  {decoration.tooltip}"


def run_check(
    args: argparse.Namespace, config: ConfigManager, logger: Logger, rules_path: Path
) -> int:
    """
    Print the status of each path.

    Returns:
        Exit code
    """
    outcome = load_outcome(rules_path)
    report_outcome(outcome, logger, str(rules_path))
    if not outcome.ok:
        print(f"Error: {outcome.fatal_error}", file=sys.stderr)
        return EXIT_FATAL_RULES

    engine = RuleEngine()
    engine.load(outcome)

    templates = config.get(f"{ConfigKey.ROOT}.{ConfigKey.DECORATIONS}", {})
    try:
        provider = DecorationProvider(engine, root=args.root, templates=templates, logger=logger)
        for path in args.paths:
            print(format_check_line(path, provider))
            if args.explain:
                relative = provider.relative_path(path)
                if relative is None:
                    continue
                for rule in engine.explain(relative)["matches"]:
                    kind = "glob" if rule.is_glob else "literal"
                    print(f"      #{rule.index} {rule.status.value} {kind} {rule.pattern!r}")
    except DecorationError as e:
        raise CLIError(str(e))

    return 0


def run_validate(
    args: argparse.Namespace, config: ConfigManager, logger: Logger, rules_path: Path
) -> int:
    """
    Report warnings and errors in the rules file.

    Returns:
        Exit code
    """
    outcome = load_outcome(rules_path)

    if not outcome.ok:
        print(f"error: {outcome.fatal_error}", file=sys.stderr)
        return EXIT_FATAL_RULES

    for warning in outcome.warnings:
        print(f"warning: {warning}")

    rules = outcome.rules
    print(
        f"{rules_path}: {len(rules)} rules "
        f"({len(rules.literal_rules())} literal, {len(rules.glob_rules())} glob), "
        f"{len(outcome.warnings)} warnings"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    try:
        args = parse_arguments(argv)
        config = load_settings(args)
        logger = setup_logging(config)
        rules_path = resolve_rules_path(args, config)

        if args.command == "check":
            return run_check(args, config, logger, rules_path)
        if args.command == "validate":
            return run_validate(args, config, logger, rules_path)

        from pathpolicy.main import run_pathpolicy

        return run_pathpolicy(args, config, logger, rules_path)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
