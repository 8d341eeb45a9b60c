"""Clock abstraction so the controller can run on simulated time."""

import asyncio
import time


class Clock:
    """Real clock backed by time.monotonic() and asyncio."""

    def monotonic(self) -> float:
        """Get monotonic time in seconds."""
        return time.monotonic()

    def wall(self) -> float:
        """Get wall clock time in seconds since epoch."""
        return time.time()

    async def sleep(self, seconds: float, cancel: asyncio.Event | None = None) -> bool:
        """Sleep for `seconds`, waking early if `cancel` is set.

        Returns:
            True if the sleep was cut short by cancellation.
        """
        if seconds <= 0:
            return cancel.is_set() if cancel is not None else False
        if cancel is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

