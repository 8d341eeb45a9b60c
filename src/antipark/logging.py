"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (entered_parked, idle_interrupted, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

from antipark.formatting import format_seconds

if TYPE_CHECKING:
    from antipark.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)

# Errors always go to the diagnostic stream
_err_console = Console(highlight=False, stderr=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    SYNC = "💾"
    SIGNAL = "⚡"
    ANTI_PARK = "[bright_green]▲[/]"
    PARKED = "[yellow]▬[/]"
    IDLE = "[bright_blue]▼[/]"
    STATS = "[magenta]♡[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Warnings and errors go to stderr, info to stdout.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    console = _console if level == "info" else _err_console
    console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def daemon_started(version: str) -> None:
    """Log controller startup."""
    info(f"Starting [bold cyan]antipark[/] v{version}", Icon.OK)


def daemon_stopping() -> None:
    """Log shutdown initiated."""
    info("Daemon stopping...", Icon.WAIT)


def daemon_stopped() -> None:
    """Log shutdown complete."""
    info("Daemon stopped", Icon.OK)


def signal_received(name: str) -> None:
    """Log signal received."""
    info(f"Received [bold]{name}[/]", Icon.SIGNAL)


def settings_summary(
    device: str,
    interval: float,
    antipark_timeout: float,
    antipark_timeout_max: float,
    parked_timeout: float,
    sync_before_idle: bool,
) -> None:
    """Log the timing settings in effect."""
    info(f"Disk: [cyan]{device}[/]")
    info(f"Interval: [cyan]{format_seconds(interval)}[/]")
    info(
        f"Anti-park timeout: [cyan]{format_seconds(antipark_timeout)}[/] "
        f"[dim](max {format_seconds(antipark_timeout_max)})[/]"
    )
    info(f"Parked timeout: [cyan]{format_seconds(parked_timeout)}[/]")
    info(f"Sync before idle: [cyan]{'true' if sync_before_idle else 'false'}[/]")


def entered_parked(time_in_antipark: float) -> None:
    """Log ANTI-PARK -> PARKED."""
    info(
        f"Switching state to [yellow]PARKED[/] "
        f"[dim]— time spent in ANTI-PARK: {format_seconds(time_in_antipark)}[/]",
        Icon.PARKED,
    )


def parked_interrupted(timeout: float, time_parked: float) -> None:
    """Log PARKED -> ANTI-PARK on disk activity."""
    info(
        f"Disk activity, switching out of PARKED to [bright_green]ANTI-PARK[/] "
        f"with timeout [cyan]{format_seconds(timeout)}[/] "
        f"[dim]— time spent in PARKED: {format_seconds(time_parked)}[/]",
        Icon.ANTI_PARK,
    )


def entered_idle(time_parked: float) -> None:
    """Log PARKED -> IDLE."""
    info(
        f"Switching state to [bright_blue]IDLE[/] "
        f"[dim]— time spent in PARKED: {format_seconds(time_parked)}[/]",
        Icon.IDLE,
    )


def syncing_disks() -> None:
    """Log the sync before entering IDLE."""
    info("Syncing disks", Icon.SYNC)


def idle_interrupted(timeout: float, time_idle: float) -> None:
    """Log IDLE -> ANTI-PARK on disk activity."""
    info(
        f"Disk activity, switching out of IDLE to [bright_green]ANTI-PARK[/] "
        f"with timeout [cyan]{format_seconds(timeout)}[/] "
        f"[dim]— time spent in IDLE: {format_seconds(time_idle)}[/]",
        Icon.ANTI_PARK,
    )


def idle_stats(uptime: float, idle_time: float, idle_pct: int, llc_per_hour: int) -> None:
    """Log running totals after leaving IDLE."""
    info(
        f"uptime [cyan]{format_seconds(uptime)}[/], "
        f"idle [cyan]{format_seconds(idle_time)}[/] [dim]({idle_pct}%)[/], "
        f"est. LLC/hr [cyan]{llc_per_hour}[/]",
        Icon.STATS,
    )


def device_read_failed(error_msg: str, failures: int) -> None:
    """Log a failed read of the activity counters."""
    warn(f"{error_msg} [dim](treated as no activity, {failures} in a row)[/]")


def device_read_fatal(error_msg: str, failures: int) -> None:
    """Log giving up after persistent activity counter failures."""
    error(f"{error_msg} [dim]({failures} consecutive failures, giving up)[/]", Icon.FAIL)


def sync_failed(error_msg: str) -> None:
    """Log a failed best-effort sync."""
    warn(error_msg)


def touch_failed(error_msg: str) -> None:
    """Log a fatal touch file failure."""
    error(error_msg, Icon.FAIL)


def config_invalid(error_msg: str) -> None:
    """Log a configuration error."""
    error(f"Invalid configuration: {error_msg}", Icon.FAIL)


def already_running(pid: int | None = None) -> None:
    """Log daemon already running error."""
    if pid:
        error(f"Another daemon already running [dim](PID {pid})[/]", Icon.FAIL)
    else:
        error("Another daemon already running", Icon.FAIL)


def stale_pid_file(pid: int) -> None:
    """Log stale PID file removed."""
    info(f"[dim]Stale PID file — PID {pid} is not antipark[/]")


def pid_file_invalid() -> None:
    """Log PID file invalid."""
    warn("PID file invalid")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to the rotating log file.

    Console output is handled by Rich (see log functions above); structlog
    only writes to the JSON file for machine parsing.

    Args:
        config: Application config with paths and rotation settings
    """
    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)

    # Clear any existing handlers
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("daemon"),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source("daemon"),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
