"""Error types for antipark.

Configuration problems block startup. Steady-state I/O errors are either
absorbed by the controller (DeviceReadError, SyncError) or end the loop
(TouchWriteError, persistent DeviceReadError).
"""


class AntiparkError(Exception):
    """Base class for all antipark errors."""


class ConfigurationError(AntiparkError, ValueError):
    """Out-of-range or malformed configuration value."""


class DeviceReadError(AntiparkError, OSError):
    """Block device activity counters could not be read."""


class TouchWriteError(AntiparkError, OSError):
    """Touch file could not be opened or written."""


class SyncError(AntiparkError, OSError):
    """Filesystem sync failed (best-effort, never fatal)."""


class AlreadyRunningError(AntiparkError, RuntimeError):
    """Another antipark daemon holds the PID file."""
