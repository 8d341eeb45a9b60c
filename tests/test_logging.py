"""Tests for console and structured logging."""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from antipark import logging as console
from antipark.config import Config


@pytest.fixture
def printed():
    """Capture console.print() markup."""
    lines: list[str] = []
    with (
        patch.object(console._console, "print", side_effect=lines.append),
        patch.object(console._err_console, "print", side_effect=lines.append),
    ):
        yield lines


def test_log_line_has_timestamp_and_level(printed):
    console.info("hello", console.Icon.OK)

    assert len(printed) == 1
    assert "[info]" in printed[0]
    assert "hello" in printed[0]
    assert console.Icon.OK in printed[0]


def test_errors_go_to_stderr():
    """Error lines use the stderr console."""
    with (
        patch.object(console._console, "print") as out,
        patch.object(console._err_console, "print") as err,
    ):
        console.touch_failed("Failed to open touch file '/x'")

    out.assert_not_called()
    err.assert_called_once()


def test_warnings_go_to_stderr():
    """Recoverable failures are diagnostics too, so they stay off stdout."""
    with (
        patch.object(console._console, "print") as out,
        patch.object(console._err_console, "print") as err,
    ):
        console.device_read_failed("Could not open 'sda' stats for reading", 2)
        console.sync_failed("sync failed")

    out.assert_not_called()
    assert err.call_count == 2


def test_status_lines_go_to_stdout():
    with (
        patch.object(console._console, "print") as out,
        patch.object(console._err_console, "print") as err,
    ):
        console.entered_parked(61)

    out.assert_called_once()
    err.assert_not_called()


def test_entered_parked(printed):
    console.entered_parked(61)

    assert "PARKED" in printed[0]
    assert "1m 1s" in printed[0]


def test_parked_interrupted(printed):
    console.parked_interrupted(timeout=120, time_parked=42)

    assert "ANTI-PARK" in printed[0]
    assert "2m 0s" in printed[0]
    assert "42s" in printed[0]


def test_idle_stats(printed):
    console.idle_stats(uptime=3700, idle_time=1800, idle_pct=48, llc_per_hour=3)

    assert "1h 1m 40s" in printed[0]
    assert "30m 0s" in printed[0]
    assert "48%" in printed[0]
    assert "LLC/hr [cyan]3" in printed[0]


def test_settings_summary(printed):
    console.settings_summary("sda", 7, 60, 300, 300, True)

    text = "\n".join(printed)
    assert "7s" in text
    assert "1m 0s" in text
    assert "5m 0s" in text
    assert "true" in text


def test_configure_writes_json_lines(tmp_path: Path, restore_logging):
    """configure() sends structlog events to the JSON log file."""
    with (
        patch.object(Config, "state_dir", new_callable=lambda: property(lambda self: tmp_path)),
        patch.object(
            Config, "log_path", new_callable=lambda: property(lambda self: tmp_path / "daemon.log")
        ),
    ):
        console.configure(Config())

    structlog.get_logger().info("state_changed", previous="anti_park", state="parked")
    for handler in logging.getLogger().handlers:
        handler.flush()

    record = json.loads((tmp_path / "daemon.log").read_text().splitlines()[-1])
    assert record["event"] == "state_changed"
    assert record["state"] == "parked"
    assert record["level"] == "info"
    assert record["source"] == "daemon"
    assert "ts" in record
