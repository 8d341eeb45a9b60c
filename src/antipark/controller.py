"""Anti-park state machine.

Each tick polls the activity monitor, then decides whether to keep touching
the disk (ANTI-PARK), let the head park (PARKED), or leave the disk alone so
the OS can spin it down (IDLE).

    ANTI-PARK --timeout without reads--> PARKED --parked_timeout--> IDLE
        ^                                  |                          |
        +-------- any activity (x2) -------+                          |
        +-------------------- any activity (reset) -------------------+

Leaving PARKED doubles the anti-park timeout (clamped to the max); leaving
IDLE resets it to the configured base.
"""

import asyncio
import struct
from dataclasses import dataclass
from enum import Enum

import structlog

from antipark import logging as console
from antipark.clock import Clock
from antipark.config import Config
from antipark.disk import DiskActions
from antipark.diskstats import NO_ACTIVITY, Activity, ActivityMonitor
from antipark.errors import DeviceReadError, SyncError
from antipark.formatting import idle_percentage, load_cycles_per_hour

log = structlog.get_logger()


class ParkState(Enum):
    """Controller states."""

    ANTI_PARK = "anti_park"
    PARKED = "parked"
    IDLE = "idle"


class TickOutcome(Enum):
    """What the run loop should do after a tick."""

    PACED = "paced"  # Sleep out the rest of the poll interval
    REEVALUATE = "reevaluate"  # Run the next decision now, no sleep


@dataclass
class ControllerState:
    """Mutable controller state. All timestamps are monotonic seconds."""

    state: ParkState
    antipark_timeout: float
    started: float
    timeout_started: float
    state_started: float
    last_sync: float | None = None
    idle_time: float = 0.0
    load_cycles: int = 0

    def uptime(self, now: float) -> float:
        return now - self.started

    def time_in_state(self, now: float) -> float:
        return now - self.state_started

    def time_in_timeout(self, now: float) -> float:
        return now - self.timeout_started

    def reset_timers(self, now: float) -> None:
        self.timeout_started = now
        self.state_started = now


class AntiParkController:
    """Tick-driven controller for one monitored disk.

    Error policy:
    - DeviceReadError while polling is logged and the tick sees no activity.
      After ``system.max_device_read_failures`` consecutive failures (when > 0)
      it is re-raised and the loop ends.
    - DeviceReadError while re-baselining after a sync is logged, and the
      monitor starts over with a fresh baseline.
    - SyncError is logged and ignored.
    - TouchWriteError propagates; anti-parking is impossible without writes.
    """

    def __init__(
        self,
        config: Config,
        monitor: ActivityMonitor,
        actions: DiskActions,
        clock: Clock | None = None,
    ):
        self.config = config
        self.monitor = monitor
        self.actions = actions
        self.clock = clock or Clock()

        timing = config.timing
        self._base_timeout = timing.antipark_timeout
        self._max_timeout = timing.antipark_timeout_max
        self._verbose = config.system.verbose
        self._read_failures = 0

        now = self.clock.monotonic()
        self.state = ControllerState(
            state=ParkState.ANTI_PARK,
            antipark_timeout=self._base_timeout,
            started=now,
            timeout_started=now,
            state_started=now,
        )
        # Written on every touch; only the write itself matters
        self._payload = struct.pack("<I", int(self.clock.wall()) & 0xFFFFFFFF)

    # ─────────────────────────────────────────────────────────────────────────
    # Loop
    # ─────────────────────────────────────────────────────────────────────────

    async def run(self, cancel: asyncio.Event) -> None:
        """Run ticks until `cancel` is set.

        Raises:
            TouchWriteError: If the touch file can't be written.
            DeviceReadError: If counter reads keep failing past the configured limit.
        """
        timing = self.config.timing
        if self._verbose:
            console.settings_summary(
                device=self.config.disk.device,
                interval=timing.poll_interval,
                antipark_timeout=timing.antipark_timeout,
                antipark_timeout_max=timing.antipark_timeout_max,
                parked_timeout=timing.parked_timeout,
                sync_before_idle=timing.sync_before_idle,
            )

        while not cancel.is_set():
            tick_start = self.clock.monotonic()
            outcome = await self.tick()

            if outcome is TickOutcome.REEVALUATE:
                continue

            elapsed = self.clock.monotonic() - tick_start
            await self.clock.sleep(max(0.0, timing.poll_interval - elapsed), cancel)

        log.info("controller_stopped", state=self.state.state.value)

    async def tick(self) -> TickOutcome:
        """Poll once and handle the current state."""
        activity = self._poll()
        now = self.clock.monotonic()

        if self.state.state is ParkState.ANTI_PARK:
            return await self._anti_park(activity, now)
        if self.state.state is ParkState.PARKED:
            return await self._parked(activity, now)
        return self._idle(activity, now)

    # ─────────────────────────────────────────────────────────────────────────
    # States
    # ─────────────────────────────────────────────────────────────────────────

    async def _anti_park(self, activity: Activity, now: float) -> TickOutcome:
        s = self.state
        # Only reads defer parking; writes may just be buffered flushes
        if activity.read:
            s.timeout_started = now

        self.actions.touch(self._payload)
        if s.last_sync is None or now - s.last_sync > self.config.timing.sync_interval:
            self._sync()
            s.last_sync = now

        if s.time_in_timeout(now) > s.antipark_timeout:
            time_in_antipark = s.time_in_state(now)
            s.reset_timers(now)
            s.state = ParkState.PARKED

            self._sync()
            await self._settle()
            s.load_cycles += 1

            self._log_transition(
                ParkState.ANTI_PARK, time_spent=time_in_antipark, load_cycles=s.load_cycles
            )
            if self._verbose:
                console.entered_parked(time_in_antipark)

        return TickOutcome.PACED

    async def _parked(self, activity: Activity, now: float) -> TickOutcome:
        s = self.state

        if activity.any:
            s.antipark_timeout = min(s.antipark_timeout * 2, self._max_timeout)
            time_parked = s.time_in_state(now)
            s.idle_time += time_parked
            s.reset_timers(now)
            s.state = ParkState.ANTI_PARK

            self._log_transition(
                ParkState.PARKED,
                time_spent=time_parked,
                antipark_timeout=s.antipark_timeout,
                read=activity.read,
                write=activity.write,
            )
            if self._verbose:
                console.parked_interrupted(s.antipark_timeout, time_parked)
            return TickOutcome.REEVALUATE

        if s.time_in_timeout(now) <= self.config.timing.parked_timeout:
            return TickOutcome.PACED

        time_parked = s.time_in_state(now)
        s.idle_time += time_parked
        s.reset_timers(now)
        s.state = ParkState.IDLE

        self._log_transition(ParkState.PARKED, time_spent=time_parked)
        if self._verbose:
            console.entered_idle(time_parked)

        if self.config.timing.sync_before_idle:
            if self._verbose:
                console.syncing_disks()
            self._sync()
            await self._settle()
            s.load_cycles += 1

        return TickOutcome.REEVALUATE

    def _idle(self, activity: Activity, now: float) -> TickOutcome:
        s = self.state
        if not activity.any:
            return TickOutcome.PACED

        s.antipark_timeout = self._base_timeout
        time_idle = s.time_in_state(now)
        s.idle_time += time_idle

        uptime = s.uptime(now)
        idle_pct = idle_percentage(s.idle_time, uptime)
        llc_per_hour = load_cycles_per_hour(s.load_cycles, uptime)

        s.reset_timers(now)
        s.state = ParkState.ANTI_PARK

        self._log_transition(
            ParkState.IDLE,
            time_spent=time_idle,
            antipark_timeout=s.antipark_timeout,
            uptime=round(uptime),
            idle_time=round(s.idle_time),
            idle_pct=idle_pct,
            llc_per_hour=llc_per_hour,
        )
        if self._verbose:
            console.idle_interrupted(s.antipark_timeout, time_idle)
            console.idle_stats(uptime, s.idle_time, idle_pct, llc_per_hour)
        return TickOutcome.REEVALUATE

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _poll(self) -> Activity:
        """Poll the monitor, applying the device read failure policy."""
        try:
            activity = self.monitor.poll()
        except DeviceReadError as e:
            self._read_failures += 1
            limit = self.config.system.max_device_read_failures
            log.warning("device_read_failed", error=str(e), failures=self._read_failures)
            if limit and self._read_failures >= limit:
                console.device_read_fatal(str(e), self._read_failures)
                raise
            console.device_read_failed(str(e), self._read_failures)
            return NO_ACTIVITY

        self._read_failures = 0
        return activity

    def _sync(self) -> None:
        try:
            self.actions.sync()
        except SyncError as e:
            log.warning("sync_failed", error=str(e))
            console.sync_failed(str(e))

    async def _settle(self) -> None:
        """Pause after a sync, then discard the activity our own I/O caused."""
        await self.clock.sleep(self.config.timing.settle_delay)
        try:
            self.monitor.rebaseline()
        except DeviceReadError as e:
            # Our own writes are still pending; skip them on the next good poll
            log.warning("rebaseline_failed", error=str(e))
            self.monitor.reset()

    def _log_transition(self, previous: ParkState, **fields: object) -> None:
        log.info(
            "state_changed",
            previous=previous.value,
            state=self.state.state.value,
            **fields,
        )
