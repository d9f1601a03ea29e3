"""Pytest configuration and shared fixtures for claude-counter tests."""

from datetime import datetime, timezone

import pytest

from claude_counter.io import logging_setup
from tests.harness import FakeCounter


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point settings and log files at tmp_path so tests never touch $HOME."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CLAUDE_COUNTER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("CLAUDE_COUNTER_LOG_FILE", raising=False)
    monkeypatch.delenv("CLAUDE_COUNTER_LOG_LEVEL", raising=False)
    yield tmp_path
    logging_setup.reset()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def counter():
    return FakeCounter()


@pytest.fixture
def now():
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
