"""Disk-touching actions: write the touch file and force filesystem syncs."""

import os
from pathlib import Path

from antipark.errors import SyncError, TouchWriteError


class DiskActions:
    """OS-level actions the controller performs against the monitored disk."""

    def __init__(self, touch_file: str | Path):
        self.touch_file = Path(touch_file)

    def touch(self, payload: bytes) -> None:
        """Truncate-create the touch file, write payload, and force it to disk.

        Raises:
            TouchWriteError: If the file can't be opened or written.
        """
        try:
            fd = os.open(self.touch_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        except OSError as e:
            raise TouchWriteError(
                f"Failed to open touch file '{self.touch_file}' for writing: {e}"
            ) from e
        try:
            os.write(fd, payload)
            os.fsync(fd)
        except OSError as e:
            raise TouchWriteError(f"Failed to write touch file '{self.touch_file}': {e}") from e
        finally:
            os.close(fd)

    def sync(self) -> None:
        """Flush all filesystem buffers.

        Raises:
            SyncError: If the sync call fails. Callers treat this as best-effort.
        """
        try:
            os.sync()
        except OSError as e:
            raise SyncError(f"Filesystem sync failed: {e}") from e
