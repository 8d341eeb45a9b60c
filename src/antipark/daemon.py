"""Foreground daemon for antipark: signals, PID file, and the controller loop."""

import asyncio
import os
import signal
from pathlib import Path

import psutil
import structlog

from antipark import logging as console
from antipark.config import Config
from antipark.controller import AntiParkController
from antipark.disk import DiskActions
from antipark.diskstats import ActivityMonitor
from antipark.errors import AlreadyRunningError, DeviceReadError, TouchWriteError

log = structlog.get_logger()


def running_pid(pid_path: Path) -> int | None:
    """Return the PID of a live antipark daemon recorded in `pid_path`.

    Verifies not just that a process with the PID exists, but that it's
    actually antipark. This prevents false positives after a reboot when a
    different process may have the same PID.

    Returns:
        The PID, or None if the file is missing, invalid, or stale.
    """
    if not pid_path.exists():
        return None

    try:
        pid = int(pid_path.read_text().strip())
    except ValueError:
        return None

    try:
        cmdline = " ".join(psutil.Process(pid).cmdline()).lower()
    except psutil.NoSuchProcess:
        return None
    except psutil.AccessDenied:
        # Can't inspect process - assume it's running to be safe
        log.warning("pid_check_access_denied", pid=pid)
        return pid

    return pid if "antipark" in cmdline else None


class Daemon:
    """Runs one AntiParkController until a shutdown signal arrives."""

    def __init__(self, config: Config):
        self.config = config
        self.monitor = ActivityMonitor(config.disk.device)
        self.actions = DiskActions(config.disk.touch_file)
        self.controller = AntiParkController(config, self.monitor, self.actions)
        self._shutdown_event = asyncio.Event()
        self.running = False

    async def start(self) -> None:
        """Claim the PID file, install signal handlers, and run the controller.

        Raises:
            AlreadyRunningError: If another daemon holds the PID file.
            TouchWriteError: If the touch file can't be written.
            DeviceReadError: If counter reads keep failing.
        """
        from importlib.metadata import version

        app_version = version("antipark")
        log.info(
            "daemon_starting",
            version=app_version,
            device=self.config.disk.device,
            touch_file=self.config.disk.touch_file,
            poll_interval=self.config.timing.poll_interval,
            antipark_timeout=self.config.timing.antipark_timeout,
            antipark_timeout_max=self.config.timing.antipark_timeout_max,
            parked_timeout=self.config.timing.parked_timeout,
            sync_before_idle=self.config.timing.sync_before_idle,
        )

        if self._check_already_running():
            log.error("daemon_already_running")
            raise AlreadyRunningError("Daemon is already running")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))
        self.running = True

        self._write_pid_file()
        log.info("daemon_started", pid=os.getpid())
        if self.config.system.verbose:
            console.daemon_started(app_version)

        await self.controller.run(self._shutdown_event)

    def stop(self) -> None:
        """Release the PID file. Disk state is left as is."""
        if self.config.system.verbose:
            console.daemon_stopping()
        log.info("daemon_stopping")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

        self._remove_pid_file()
        self.running = False
        log.info("daemon_stopped")
        if self.config.system.verbose:
            console.daemon_stopped()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        if self.config.system.verbose:
            console.signal_received(sig.name)
        self._shutdown_event.set()

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove PID file if it is ours."""
        pid_path = self.config.pid_path
        if pid_path.exists() and pid_path.read_text().strip() == str(os.getpid()):
            pid_path.unlink()
            log.debug("pid_file_removed")

    def _check_already_running(self) -> bool:
        """Check for a live daemon, clearing a stale or invalid PID file."""
        pid_path = self.config.pid_path
        if not pid_path.exists():
            return False

        pid = running_pid(pid_path)
        if pid is not None:
            log.info("daemon_already_running_verified", pid=pid)
            console.already_running(pid)
            return True

        contents = pid_path.read_text().strip()
        if contents.isdigit():
            log.warning("pid_file_stale", pid=int(contents))
            console.stale_pid_file(int(contents))
        else:
            log.warning("pid_file_invalid", reason="not a number")
            console.pid_file_invalid()
        pid_path.unlink()
        return False


async def run_daemon(config: Config) -> None:
    """Run the daemon until shutdown.

    Fatal I/O errors are logged here and re-raised for the caller to turn
    into an exit status.
    """
    console.configure(config)
    daemon = Daemon(config)

    try:
        await daemon.start()
    except TouchWriteError as e:
        log.error("touch_failed", error=str(e))
        console.touch_failed(str(e))
        raise
    except DeviceReadError as e:
        log.error("device_read_fatal", error=str(e))
        raise
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        if daemon.running:
            daemon.stop()
