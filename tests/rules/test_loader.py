"""Tests for rules file loading and watching."""
import json
import os
import time

import pytest

from pathpolicy.core.constants import ErrorCode
from pathpolicy.core.validators import ValidationError
from pathpolicy.rules.engine import ResolutionResult, RuleEngine
from pathpolicy.rules.loader import (
    RuleFileError,
    RuleFileWatcher,
    find_rules_file,
    read_rules_file,
    report_outcome,
)
from pathpolicy.rules.ruleset import build_rule_set, parse_rules


def _rewrite(path, entries):
    """Write entries and make sure the stat signature changes."""
    before = path.stat() if path.exists() else None
    path.write_text(json.dumps(entries))
    if before is not None:
        after = path.stat()
        if (after.st_mtime_ns, after.st_size) == (before.st_mtime_ns, before.st_size):
            os.utime(path, ns=(after.st_atime_ns, before.st_mtime_ns + 1_000_000))


class TestFindRulesFile:
    """Tests for find_rules_file."""

    def test_found_in_root(self, workspace, rules_file):
        assert find_rules_file(workspace) == rules_file

    def test_found_in_subdirectory(self, workspace):
        nested = workspace / "config" / "llm_approvements.json"
        nested.parent.mkdir()
        nested.write_text("[]")
        assert find_rules_file(workspace) == nested

    def test_root_preferred_over_subdirectory(self, workspace, rules_file):
        (workspace / "a").mkdir()
        (workspace / "a" / "llm_approvements.json").write_text("[]")
        assert find_rules_file(workspace) == rules_file

    def test_skips_node_modules_and_git(self, workspace):
        for skipped in ("node_modules", ".git"):
            (workspace / skipped).mkdir()
            (workspace / skipped / "llm_approvements.json").write_text("[]")
        assert find_rules_file(workspace) is None

    def test_custom_filename(self, workspace):
        (workspace / "rules.json").write_text("[]")
        assert find_rules_file(workspace, "rules.json") == workspace / "rules.json"

    def test_not_found(self, workspace):
        assert find_rules_file(workspace) is None


class TestReadRulesFile:
    """Tests for read_rules_file."""

    def test_reads_and_parses(self, rules_file):
        outcome = read_rules_file(rules_file)
        assert outcome.ok
        assert len(outcome.rules) == 5

    def test_malformed_content_is_fatal_outcome(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{broken")
        outcome = read_rules_file(path)
        assert outcome.fatal_error == "Invalid JSON syntax."

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(RuleFileError) as exc_info:
            read_rules_file(tmp_path / "absent.json")
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_non_utf8_raises(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_bytes(b"\xff\xfe[\x00]")
        with pytest.raises(RuleFileError) as exc_info:
            read_rules_file(path)
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT

    def test_directory_raises(self, tmp_path):
        with pytest.raises(RuleFileError):
            read_rules_file(tmp_path)


class TestReportOutcome:
    """Tests for report_outcome."""

    def test_reports_warnings_and_count(self, logger, log_handler):
        outcome = build_rule_set([{"Path": "a", "Status": "allow"}, {"Path": "b"}])
        report_outcome(outcome, logger, "rules.json")
        messages = log_handler.messages
        assert messages[0].startswith(
            "Rules config warning: Item at index 1 is missing Path/Status. Skipped."
        )
        assert messages[1].startswith("Loaded 1 rules")
        assert "warnings=1" in messages[1]
        assert log_handler.records[0].context["rules_file"] == "rules.json"

    def test_reports_fatal_error(self, logger, log_handler):
        report_outcome(parse_rules("nope"), logger)
        assert len(log_handler.records) == 1
        assert log_handler.records[0].levelname == "ERROR"
        assert log_handler.messages[0].startswith("Rules config error: Invalid JSON syntax.")


class TestRuleFileWatcher:
    """Tests for RuleFileWatcher."""

    def test_invalid_interval_rejected(self, rules_file, logger):
        with pytest.raises(ValidationError):
            RuleFileWatcher(rules_file, RuleEngine(), interval=0, logger=logger)

    def test_load_installs_rules(self, rules_file, logger):
        engine = RuleEngine()
        watcher = RuleFileWatcher(rules_file, engine, logger=logger)
        outcome = watcher.load()
        assert outcome is not None and outcome.ok
        assert engine.resolve("src/secret/api_key.txt") == ResolutionResult.DENY
        assert watcher.path == rules_file

    def test_load_missing_file_clears(self, tmp_path, logger):
        engine = RuleEngine(build_rule_set([{"Path": "", "Status": "allow"}]).rules)
        watcher = RuleFileWatcher(tmp_path / "absent.json", engine, logger=logger)
        assert watcher.load() is None
        assert len(engine) == 0

    def test_load_fatal_outcome_clears(self, tmp_path, logger, log_handler):
        path = tmp_path / "rules.json"
        path.write_text('{"Path": "src"}')
        engine = RuleEngine(build_rule_set([{"Path": "", "Status": "allow"}]).rules)
        outcome = RuleFileWatcher(path, engine, logger=logger).load()
        assert outcome.fatal_error == "Root element must be an array of rules."
        assert len(engine) == 0
        assert any(m.startswith("Rules config error") for m in log_handler.messages)

    def test_unreadable_file_keeps_previous_rules(self, tmp_path, logger, log_handler):
        path = tmp_path / "rules.json"
        path.write_bytes(b"\xff\xfe")
        previous = build_rule_set([{"Path": "", "Status": "allow"}]).rules
        engine = RuleEngine(previous)
        assert RuleFileWatcher(path, engine, logger=logger).load() is None
        assert engine.rules is previous
        assert any("Keeping previous rules" in m for m in log_handler.messages)

    def test_failed_read_is_retried_by_poll(self, tmp_path, logger):
        path = tmp_path / "rules.json"
        good = b'[{"Path": "", "Status": "deny"}]'
        path.write_bytes(b"\xff" * len(good))
        engine = RuleEngine()
        watcher = RuleFileWatcher(path, engine, logger=logger)
        assert watcher.load() is None

        # Same size and mtime as the unreadable content
        before = path.stat()
        path.write_bytes(good)
        os.utime(path, ns=(before.st_atime_ns, before.st_mtime_ns))

        assert watcher.poll() is True
        assert engine.resolve("src/a.ts") == ResolutionResult.DENY
        assert watcher.poll() is False

    def test_poll_unchanged(self, rules_file, logger):
        watcher = RuleFileWatcher(rules_file, RuleEngine(), logger=logger)
        watcher.load()
        assert watcher.poll() is False

    def test_poll_detects_change(self, rules_file, logger):
        engine = RuleEngine()
        watcher = RuleFileWatcher(rules_file, engine, logger=logger)
        watcher.load()

        _rewrite(rules_file, [{"Path": "src/secret", "Status": "allow"}])
        assert watcher.poll() is True
        assert len(engine) == 1
        assert engine.resolve("src/secret/api_key.txt") == ResolutionResult.ALLOW

    def test_poll_detects_delete_and_create(self, rules_file, logger):
        engine = RuleEngine()
        watcher = RuleFileWatcher(rules_file, engine, logger=logger)
        watcher.load()

        rules_file.unlink()
        assert watcher.poll() is True
        assert len(engine) == 0
        assert watcher.poll() is False

        _rewrite(rules_file, [{"Path": "docs", "Status": "deny"}])
        assert watcher.poll() is True
        assert engine.resolve("docs/a.md") == ResolutionResult.DENY

    def test_start_and_stop(self, rules_file, logger):
        engine = RuleEngine()
        watcher = RuleFileWatcher(rules_file, engine, interval=0.05, logger=logger)
        watcher.start()
        try:
            assert watcher.is_running
            assert len(engine) == 5

            _rewrite(rules_file, [{"Path": "docs", "Status": "deny"}])
            deadline = time.monotonic() + 5
            while len(engine) != 1 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert len(engine) == 1
        finally:
            watcher.stop()

        assert not watcher.is_running
