"""Shared pytest fixtures for PathPolicy tests."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

from pathpolicy.infrastructure.config_manager import set_global_config
from pathpolicy.infrastructure.logger import Logger, set_global_logger


@pytest.fixture
def sample_entries() -> List[Dict[str, Any]]:
    """Provide a representative rules document."""
    return [
        {"Path": "src", "Status": "allow"},
        {"Path": "src/secret", "Status": "deny", "Comment": "credentials live here"},
        {"Path": "docs", "Status": "allow"},
        {"Path": "readme.md", "Status": "allow"},
        {"Path": "**/*.env*", "Status": "deny"},
    ]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a workspace directory with a few files."""
    root = tmp_path / "workspace"
    root.mkdir()

    (root / "src").mkdir()
    (root / "src" / "index.ts").write_text("export {};")
    (root / "src" / "secret").mkdir()
    (root / "src" / "secret" / "api_key.txt").write_text("hunter2")
    (root / "readme.md").write_text("# Readme")
    (root / "package.json").write_text("{}")

    return root


@pytest.fixture
def rules_file(workspace: Path, sample_entries: List[Dict[str, Any]]) -> Path:
    """Write the sample rules into the workspace."""
    path = workspace / "llm_approvements.json"
    path.write_text(json.dumps(sample_entries, indent=2))
    return path


@pytest.fixture
def sample_settings() -> Dict[str, Any]:
    """Provide a sample settings document."""
    return {
        "pathpolicy": {
            "rules_file": "llm_approvements.json",
            "watch": {"interval_seconds": 0.25},
            "logging": {"level": "DEBUG", "file": None},
            "decorations": {
                "deny": {"badge": "D", "tooltip": "Denied by {{ pattern }}"},
            },
        }
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_settings: Dict[str, Any]) -> Path:
    """Create a settings file."""
    config_path = tmp_path / "pathpolicy.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_settings, f)
    return config_path


class ListHandler(logging.Handler):
    """Collects formatted log messages."""

    def __init__(self):
        super().__init__()
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> List[str]:
        return [record.getMessage() for record in self.records]


@pytest.fixture
def log_handler() -> ListHandler:
    """Handler capturing records from test loggers."""
    return ListHandler()


@pytest.fixture
def logger(log_handler: ListHandler) -> Logger:
    """Logger writing only to the capturing handler."""
    return Logger("pathpolicy.test", level="DEBUG", handlers=[log_handler])


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global logger and settings between tests."""
    yield
    set_global_logger(None)
    set_global_config(None)
