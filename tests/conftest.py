"""Shared test fixtures for antipark."""

import asyncio
import logging
from pathlib import Path

import pytest
import structlog
import structlog.testing

from antipark.clock import Clock
from antipark.config import Config, DiskConfig, SystemConfig, TimingConfig
from antipark.diskstats import SectorCounters
from antipark.errors import DeviceReadError


class FakeClock(Clock):
    """Simulated clock. sleep() advances time instantly and records the request."""

    def __init__(self, start_time: float = 0.0, wall_offset: float = 1_700_000_000.0):
        self._time = start_time
        self._wall_offset = wall_offset
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._time

    def wall(self) -> float:
        return self._wall_offset + self._time

    def advance(self, delta: float) -> None:
        """Advance fake time."""
        self._time += delta

    async def sleep(self, seconds: float, cancel: asyncio.Event | None = None) -> bool:
        self.sleeps.append(seconds)
        if seconds > 0:
            self._time += seconds
        return cancel.is_set() if cancel is not None else False


class FakeCounters:
    """Scriptable stand-in for read_sector_counters.

    Tests bump `read`/`write` to simulate disk activity, or set `fail` to make
    the next reads raise DeviceReadError.
    """

    def __init__(self, read: int = 1000, write: int = 2000):
        self.read = read
        self.write = write
        self.fail = False
        self.calls = 0

    def __call__(self, device: str) -> SectorCounters:
        self.calls += 1
        if self.fail:
            raise DeviceReadError(f"Could not open '{device}' stats for reading")
        return SectorCounters(read_sectors=self.read, write_sectors=self.write)


class FakeActions:
    """Records touch and sync calls instead of hitting the disk."""

    def __init__(self):
        self.touches: list[bytes] = []
        self.syncs = 0
        self.touch_error: Exception | None = None
        self.sync_error: Exception | None = None

    def touch(self, payload: bytes) -> None:
        if self.touch_error is not None:
            raise self.touch_error
        self.touches.append(payload)

    def sync(self) -> None:
        if self.sync_error is not None:
            raise self.sync_error
        self.syncs += 1


def make_config(
    poll_interval: float = 1,
    antipark_timeout: float = 60,
    antipark_timeout_max: float = 300,
    parked_timeout: float = 300,
    sync_before_idle: bool = False,
    sync_interval: float = 30,
    settle_delay: float = 1,
    verbose: bool = False,
    max_device_read_failures: int = 30,
    device: str = "sda",
    touch_file: str = "/tmp/antipark.tmp",
) -> Config:
    """Create a Config for testing with timing overrides."""
    return Config(
        disk=DiskConfig(device=device, touch_file=touch_file),
        timing=TimingConfig(
            poll_interval=poll_interval,
            antipark_timeout=antipark_timeout,
            antipark_timeout_max=antipark_timeout_max,
            parked_timeout=parked_timeout,
            sync_before_idle=sync_before_idle,
            sync_interval=sync_interval,
            settle_delay=settle_delay,
        ),
        system=SystemConfig(
            verbose=verbose,
            max_device_read_failures=max_device_read_failures,
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    """Simulated clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def counters() -> FakeCounters:
    """Scriptable sector counters."""
    return FakeCounters()


@pytest.fixture
def actions() -> FakeActions:
    """Recording disk actions."""
    return FakeActions()


@pytest.fixture
def sys_block(tmp_path: Path) -> Path:
    """Fake /sys/block tree with a single 'sda' device."""
    root = tmp_path / "sys" / "block"
    (root / "sda").mkdir(parents=True)
    (root / "sda" / "stat").write_text(
        "   12345     678  987654   4321    5555     444  246810   9876        0    7777   14197\n"
    )
    return root


@pytest.fixture
def restore_logging():
    """Undo the global side effects of antipark.logging.configure()."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _capture_structlog():
    """Keep unconfigured structlog's default stdout logger out of captured output."""
    with structlog.testing.capture_logs():
        yield
