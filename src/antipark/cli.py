"""CLI commands for antipark."""

import sys
from pathlib import Path

import click
from click.core import ParameterSource

DURATION = click.IntRange(0, 3600)

# Exit statuses
EXIT_FATAL = 1
EXIT_CONFIG = 2


@click.group()
@click.version_option(package_name="antipark")
def main() -> None:
    """Keep a hard drive's heads from parking too often, but let it sleep when idle."""
    pass


@main.command()
@click.option("--config", "-c", "config_file", type=click.Path(path_type=Path), help="Config file")
@click.option("--disk", "-d", "device", help="Disk to monitor, e.g. sda")
@click.option("--touch-file", "-t", help="File residing on the disk to write to")
@click.option("--interval", "-i", "poll_interval", type=DURATION, help="Seconds between polls")
@click.option(
    "--antipark-timeout", "-a", type=DURATION, help="Seconds without reads before parking"
)
@click.option(
    "--antipark-timeout-max", "-A", type=DURATION, help="Ceiling for the doubled timeout"
)
@click.option("--parked-timeout", "-p", type=DURATION, help="Seconds parked before idle")
@click.option(
    "--sync-before-idle", "-z", is_flag=True, help="Sync disks before going idle"
)
@click.option("--verbose", "-v", is_flag=True, help="Print state changes")
def run(config_file: Path | None, **overrides) -> None:
    """Run the anti-park controller in the foreground."""
    import asyncio

    from antipark import logging as console
    from antipark.config import Config
    from antipark.daemon import run_daemon
    from antipark.errors import (
        AlreadyRunningError,
        ConfigurationError,
        DeviceReadError,
        TouchWriteError,
    )

    # Only options given on the command line override the config file
    ctx = click.get_current_context()
    given = {
        name: value
        for name, value in overrides.items()
        if ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE
    }

    try:
        config = Config.load(config_file).with_overrides(**given)
    except ConfigurationError as e:
        console.config_invalid(str(e))
        sys.exit(EXIT_CONFIG)

    try:
        asyncio.run(run_daemon(config))
    except (AlreadyRunningError, TouchWriteError, DeviceReadError):
        sys.exit(EXIT_FATAL)


@main.command()
@click.option("--config", "-c", "config_file", type=click.Path(path_type=Path), help="Config file")
def status(config_file: Path | None) -> None:
    """Quick health check."""
    from antipark.config import Config
    from antipark.daemon import running_pid
    from antipark.diskstats import read_sector_counters
    from antipark.errors import ConfigurationError, DeviceReadError

    try:
        config = Config.load(config_file)
    except ConfigurationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    pid = running_pid(config.pid_path)
    if pid is None:
        click.echo("Daemon: stopped")
    else:
        click.echo(f"Daemon: running (PID {pid})")

    device = config.disk.device
    try:
        counters = read_sector_counters(device)
    except DeviceReadError as e:
        click.echo(f"Disk {device}: {e}", err=True)
        return

    click.echo(
        f"Disk {device}: {counters.read_sectors} sectors read, "
        f"{counters.write_sectors} sectors written"
    )


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from antipark.config import Config
    from antipark.errors import ConfigurationError

    try:
        cfg = Config.load()
    except ConfigurationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[disk]")
    click.echo(f"  device = {cfg.disk.device}")
    click.echo(f"  touch_file = {cfg.disk.touch_file}")
    click.echo()
    click.echo("[timing]")
    click.echo(f"  poll_interval = {cfg.timing.poll_interval}")
    click.echo(f"  antipark_timeout = {cfg.timing.antipark_timeout}")
    click.echo(f"  antipark_timeout_max = {cfg.timing.antipark_timeout_max}")
    click.echo(f"  parked_timeout = {cfg.timing.parked_timeout}")
    click.echo(f"  sync_before_idle = {str(cfg.timing.sync_before_idle).lower()}")
    click.echo(f"  sync_interval = {cfg.timing.sync_interval}")
    click.echo(f"  settle_delay = {cfg.timing.settle_delay}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  verbose = {str(cfg.system.verbose).lower()}")
    click.echo(f"  max_device_read_failures = {cfg.system.max_device_read_failures}")
    click.echo(f"  log_max_bytes = {cfg.system.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.system.log_backup_count}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from antipark.config import Config

    cfg = Config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from antipark.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
