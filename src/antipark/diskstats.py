"""Block device activity counters for Linux.

Reads /sys/block/<dev>/stat directly - one small read per poll, no subprocess.
"""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from antipark.errors import DeviceReadError

log = structlog.get_logger()

SYS_BLOCK = Path("/sys/block")

# Field positions in /sys/block/<dev>/stat (see Documentation/block/stat.rst)
_READ_SECTORS_FIELD = 2
_WRITE_SECTORS_FIELD = 6


@dataclass(frozen=True)
class SectorCounters:
    """Cumulative sector counts for one device. Never decrease while the device exists."""

    read_sectors: int
    write_sectors: int


@dataclass(frozen=True)
class Activity:
    """What changed on the device since the previous poll."""

    read: bool = False
    write: bool = False

    @property
    def any(self) -> bool:
        """True if either counter moved."""
        return self.read or self.write


NO_ACTIVITY = Activity()


def read_sector_counters(device: str, sys_block: Path = SYS_BLOCK) -> SectorCounters:
    """Read cumulative read/write sector counters for a block device.

    Args:
        device: Device name as it appears under /sys/block (e.g., "sda")
        sys_block: Root of the block device tree, overridable for tests

    Returns:
        SectorCounters for the device.

    Raises:
        DeviceReadError: If the stat file is missing, unreadable, or malformed.
    """
    stat_path = sys_block / device / "stat"
    try:
        line = stat_path.read_text()
    except OSError as e:
        raise DeviceReadError(f"Could not open '{device}' stats for reading: {e}") from e

    values = line.split()
    try:
        return SectorCounters(
            read_sectors=int(values[_READ_SECTORS_FIELD]),
            write_sectors=int(values[_WRITE_SECTORS_FIELD]),
        )
    except (IndexError, ValueError) as e:
        raise DeviceReadError(f"Failed to parse I/O stats for '{device}': {line.strip()!r}") from e


class ActivityMonitor:
    """Reports whether a device saw reads or writes since the last poll.

    The previous snapshot lives on the instance. The first successful poll
    only records a baseline and reports no activity.
    """

    def __init__(
        self,
        device: str,
        reader: Callable[[str], SectorCounters] = read_sector_counters,
    ) -> None:
        self.device = device
        self._reader = reader
        self._previous: SectorCounters | None = None

    @property
    def previous(self) -> SectorCounters | None:
        """Last stored snapshot, or None before the first successful read."""
        return self._previous

    def poll(self) -> Activity:
        """Read counters and compare against the previous snapshot.

        Raises:
            DeviceReadError: If counters can't be read. The stored snapshot is kept.
        """
        current = self._reader(self.device)
        previous = self._previous
        self._previous = current

        if previous is None:
            log.debug("activity_baseline", device=self.device, counters=current)
            return NO_ACTIVITY

        return Activity(
            read=current.read_sectors != previous.read_sectors,
            write=current.write_sectors != previous.write_sectors,
        )

    def rebaseline(self) -> None:
        """Store current counters without reporting, discarding our own I/O."""
        self._previous = self._reader(self.device)

    def reset(self) -> None:
        """Forget the stored snapshot so the next poll only sets a new baseline."""
        self._previous = None
