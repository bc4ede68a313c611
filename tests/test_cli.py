"""Tests for the PathPolicy command-line interface."""
import argparse
import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pathpolicy.cli import (
    EXIT_FATAL_RULES,
    CLIError,
    build_config_from_args,
    load_settings,
    main,
    parse_arguments,
    resolve_rules_path,
    setup_logging,
)
from pathpolicy.infrastructure.config_manager import ConfigManager
from pathpolicy.infrastructure.logger import LogLevel, get_logger


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep PATHPOLICY_* variables from leaking into settings."""
    for key in list(os.environ):
        if key.startswith("PATHPOLICY_"):
            monkeypatch.delenv(key)


def _args(**overrides) -> argparse.Namespace:
    values = {
        "config": None,
        "rules": None,
        "root": ".",
        "debug": False,
        "log_file": None,
        "command": "check",
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestParseArguments:
    """Tests for argument parsing."""

    def test_check_command(self, workspace):
        args = parse_arguments(["--root", str(workspace), "check", "a.ts", "b.ts"])
        assert args.command == "check"
        assert args.paths == ["a.ts", "b.ts"]
        assert args.explain is False

    def test_check_explain(self, workspace):
        args = parse_arguments(["--root", str(workspace), "check", "--explain", "a.ts"])
        assert args.explain is True

    def test_global_options(self, workspace, rules_file, config_file, tmp_path):
        args = parse_arguments(
            [
                "--root",
                str(workspace),
                "-r",
                str(rules_file),
                "-c",
                str(config_file),
                "--debug",
                "--log-file",
                str(tmp_path / "out.log"),
                "validate",
            ]
        )
        assert args.rules == str(rules_file)
        assert args.config == str(config_file)
        assert args.debug is True
        assert args.log_file == str(tmp_path / "out.log")

    def test_watch_interval(self, workspace):
        args = parse_arguments(["--root", str(workspace), "watch", "--interval", "0.5"])
        assert args.interval == 0.5

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])

    def test_check_requires_paths(self):
        with pytest.raises(SystemExit):
            parse_arguments(["check"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(["--version"])
        assert exc_info.value.code == 0
        assert "1.0.0" in capsys.readouterr().out


class TestValidateArguments:
    """Tests for argument validation."""

    def test_root_must_exist(self, tmp_path):
        with pytest.raises(CLIError, match="does not exist"):
            parse_arguments(["--root", str(tmp_path / "absent"), "validate"])

    def test_root_must_be_directory(self, rules_file):
        with pytest.raises(CLIError, match="not a directory"):
            parse_arguments(["--root", str(rules_file), "validate"])

    def test_config_must_exist(self, workspace):
        with pytest.raises(CLIError, match="Configuration file"):
            parse_arguments(["--root", str(workspace), "-c", "absent.yaml", "validate"])

    def test_rules_must_exist(self, workspace):
        with pytest.raises(CLIError, match="Rules file does not exist"):
            parse_arguments(["--root", str(workspace), "-r", "absent.json", "validate"])

    def test_watched_rules_may_be_missing(self, workspace):
        args = parse_arguments(["--root", str(workspace), "-r", "later.json", "watch"])
        assert args.rules == "later.json"

    def test_interval_validated(self, workspace):
        with pytest.raises(CLIError, match="Interval"):
            parse_arguments(["--root", str(workspace), "watch", "--interval", "0"])


class TestSettings:
    """Tests for settings assembly."""

    def test_build_config_from_args(self):
        args = _args(rules="r.json", debug=True, log_file="x.log", interval=0.5)
        assert build_config_from_args(args) == {
            "pathpolicy": {
                "rules_file": "r.json",
                "logging": {"level": "DEBUG", "file": "x.log"},
                "watch": {"interval_seconds": 0.5},
            }
        }

    def test_build_config_without_overrides(self):
        assert build_config_from_args(_args()) == {"pathpolicy": {}}

    def test_args_override_settings_file(self, config_file):
        config = load_settings(_args(config=str(config_file), command="watch", interval=2.0))
        assert config.get("pathpolicy.watch.interval_seconds") == 2.0
        assert config.get("pathpolicy.logging.level") == "DEBUG"

    def test_invalid_settings(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("pathpolicy:\n  logging:\n    level: LOUD\n")
        with pytest.raises(CLIError, match="Invalid settings"):
            load_settings(_args(config=str(path)))

    def test_setup_logging(self, tmp_path):
        config = ConfigManager(environ={})
        config.set("pathpolicy.logging.level", "WARNING")
        config.set("pathpolicy.logging.file", str(tmp_path / "pathpolicy.log"))
        logger = setup_logging(config)
        assert get_logger() is logger
        assert logger.get_level() == LogLevel.WARNING
        assert len(logger.logger.handlers) == 2
        for handler in logger.logger.handlers[1:]:
            handler.close()


class TestResolveRulesPath:
    """Tests for rules file selection."""

    def test_explicit_rules(self, rules_file):
        config = ConfigManager(environ={})
        assert resolve_rules_path(_args(rules=str(rules_file)), config) == Path(rules_file)

    def test_found_under_root(self, workspace, rules_file):
        config = ConfigManager(environ={})
        assert resolve_rules_path(_args(root=str(workspace)), config) == rules_file

    def test_absolute_configured_file(self, workspace, tmp_path):
        target = tmp_path / "elsewhere.json"
        target.write_text("[]")
        config = ConfigManager(environ={})
        config.set("pathpolicy.rules_file", str(target))
        assert resolve_rules_path(_args(root=str(workspace)), config) == target

    def test_missing_for_check(self, workspace):
        with pytest.raises(CLIError, match="Rules file not found"):
            resolve_rules_path(_args(root=str(workspace)), ConfigManager(environ={}))

    def test_missing_for_watch_defaults_to_root(self, workspace):
        path = resolve_rules_path(
            _args(root=str(workspace), command="watch"), ConfigManager(environ={})
        )
        assert path == workspace / "llm_approvements.json"


class TestCheckCommand:
    """Tests for the check command."""

    def test_check_paths(self, workspace, rules_file, capsys):
        code = main(
            [
                "--root",
                str(workspace),
                "check",
                "src/index.ts",
                str(workspace / "src" / "secret" / "api_key.txt"),
                "package.json",
            ]
        )
        out = capsys.readouterr().out.splitlines()
        assert code == 0
        assert out == [
            "✅ src/index.ts  LLM: Allowed",
            "❌ src/secret/api_key.txt  LLM: Denied",
            "   package.json  (no rule)",
        ]

    def test_check_outside_workspace(self, workspace, rules_file, tmp_path, capsys):
        outside = str(tmp_path / "other.txt")
        code = main(["--root", str(workspace), "check", outside])
        assert code == 0
        assert capsys.readouterr().out.splitlines() == [f"   {outside}  (outside workspace)"]

    def test_check_explain(self, workspace, rules_file, capsys):
        code = main(["--root", str(workspace), "check", "--explain", "src/secret/api_key.txt"])
        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "❌ src/secret/api_key.txt  LLM: Denied",
            "      #1 deny literal 'src/secret'",
            "      #0 allow literal 'src'",
        ]

    def test_check_with_settings_templates(self, workspace, rules_file, config_file, capsys):
        code = main(
            ["--root", str(workspace), "-c", str(config_file), "check", "src/secret/api_key.txt"]
        )
        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "D src/secret/api_key.txt  Denied by src/secret"
        ]

    def test_check_fatal_rules(self, workspace, capsys):
        (workspace / "llm_approvements.json").write_text("{broken")
        code = main(["--root", str(workspace), "check", "src/index.ts"])
        assert code == EXIT_FATAL_RULES
        assert "Error: Invalid JSON syntax." in capsys.readouterr().err

    def test_missing_rules_file(self, workspace, capsys):
        code = main(["--root", str(workspace), "check", "src/index.ts"])
        assert code == 1
        assert "Rules file not found" in capsys.readouterr().err


class TestValidateCommand:
    """Tests for the validate command."""

    def test_clean_rules(self, workspace, rules_file, capsys):
        code = main(["--root", str(workspace), "validate"])
        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            f"{rules_file}: 5 rules (4 literal, 1 glob), 0 warnings"
        ]

    def test_warnings_reported(self, tmp_path, capsys):
        path = tmp_path / "rules.json"
        path.write_text(
            json.dumps(
                [
                    {"Path": "config", "Status": "allow"},
                    {"Path": "config", "Status": "deny"},
                    {"Path": "x", "Status": "perhaps"},
                ]
            )
        )
        code = main(["--root", str(tmp_path), "-r", str(path), "validate"])
        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "warning: Duplicate path detected: config. Rule at index 1 overrides rule at index 0.",
            "warning: Item at index 2 has invalid Status 'perhaps'. "
            "Must be 'allow' or 'deny'. Skipped.",
            f"{path}: 2 rules (2 literal, 0 glob), 2 warnings",
        ]

    def test_fatal_rules(self, tmp_path, capsys):
        path = tmp_path / "rules.json"
        path.write_text('{"Path": "src", "Status": "allow"}')
        code = main(["--root", str(tmp_path), "-r", str(path), "validate"])
        assert code == EXIT_FATAL_RULES
        assert "error: Root element must be an array of rules." in capsys.readouterr().err


class TestWatchCommand:
    """Tests for dispatching the watch command."""

    def test_watch_dispatches_to_main_loop(self, workspace, rules_file):
        with patch("pathpolicy.main.run_pathpolicy", return_value=0) as run:
            code = main(["--root", str(workspace), "watch", "--interval", "0.5"])
        assert code == 0
        args, config, logger, rules_path = run.call_args[0]
        assert args.command == "watch"
        assert config.get("pathpolicy.watch.interval_seconds") == 0.5
        assert rules_path == rules_file

    def test_keyboard_interrupt(self, workspace, rules_file, capsys):
        with patch("pathpolicy.main.run_pathpolicy", side_effect=KeyboardInterrupt):
            code = main(["--root", str(workspace), "watch"])
        assert code == 130
        assert "Interrupted" in capsys.readouterr().err
