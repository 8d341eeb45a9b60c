"""Formatting and reporting arithmetic for status output."""

import math


def format_seconds(secs: float) -> str:
    """Format a duration as a compact human string.

    Args:
        secs: Duration in seconds (fractions are truncated)

    Returns:
        Formatted duration string:
        - Under a minute: "42s"
        - Under an hour: "3m 5s"
        - Under a day: "2h 0m 7s"
        - Otherwise: "1d 2h 3m 4s"
    """
    secs = max(0, int(secs))
    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m {secs % 60}s"
    if secs < 86400:
        return f"{secs // 3600}h {(secs // 60) % 60}m {secs % 60}s"
    return f"{secs // 86400}d {(secs // 3600) % 24}h {(secs // 60) % 60}m {secs % 60}s"


def idle_percentage(idle: float, uptime: float) -> int:
    """Whole percentage of uptime spent parked or idle. 0 when uptime is 0."""
    if uptime <= 0:
        return 0
    return math.floor(100 * idle / uptime)


def load_cycles_per_hour(cycles: int, uptime: float) -> int:
    """Estimated load cycles per hour of uptime.

    Under an hour of uptime there is nothing to divide by, so the raw
    count is reported.
    """
    hours = math.floor(uptime / 3600)
    if hours <= 0:
        return cycles
    return cycles // hours
