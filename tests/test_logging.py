"""Tests for console helpers and structlog configuration."""

import io
import json
import logging
import logging.handlers
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog
from rich.console import Console

from oom_guard import logging as console
from oom_guard.config import Config


@pytest.fixture
def captured():
    """Redirect the shared console into a buffer."""
    buffer = io.StringIO()
    with patch("oom_guard.logging._console", Console(file=buffer, highlight=False, width=200)):
        yield buffer


@pytest.fixture
def configured(tmp_path: Path):
    """Configure file logging into tmp_path, restoring defaults afterwards."""
    with patch("pathlib.Path.home", return_value=tmp_path):
        config = Config()
        console.configure(config, source="test")
        yield config
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    structlog.reset_defaults()


def test_info_format(captured):
    console.info("hello", console.Icon.OK)
    out = captured.getvalue()
    assert "[info]" in out
    assert "✓ hello" in out


def test_error_format(captured):
    console.error("bad things")
    assert "[err]" in captured.getvalue()


def test_process_names_are_escaped(captured):
    console.process_killed("[red]sneaky", 5, "SIGTERM")
    assert "[red]sneaky" in captured.getvalue()


def test_long_process_names_truncated(captured):
    console.kill_failed("x" * 40, 5, "denied")
    out = captured.getvalue()
    assert "x" * 28 + ".." in out
    assert "x" * 29 not in out


def test_policy_summary_lists_rules(captured):
    console.policy_summary(["Using custom cleanup configuration:", "  • Browser processes"])
    out = captured.getvalue()
    assert "Using custom cleanup configuration:" in out
    assert "Browser processes" in out


def test_memory_status_low_is_warning(captured):
    console.memory_status("Low memory!", low=True)
    assert "[warn]" in captured.getvalue()


def test_configure_writes_json_lines(configured: Config):
    structlog.get_logger().info("process_terminated", pid=42, name="defunct")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = configured.log_path.read_text().strip().splitlines()
    event = json.loads(lines[-1])
    assert event["event"] == "process_terminated"
    assert event["pid"] == 42
    assert event["source"] == "test"
    assert event["level"] == "info"
    assert "ts" in event


def test_configure_uses_rotation_settings(configured: Config):
    (handler,) = [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == configured.logging.log_max_bytes
    assert handler.backupCount == configured.logging.log_backup_count


def test_debug_events_are_filtered(configured: Config):
    structlog.get_logger().debug("cycle_complete", cycle=1)
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "cycle_complete" not in configured.log_path.read_text()
