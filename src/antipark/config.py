"""Configuration system for antipark."""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path

import tomlkit

from antipark.errors import ConfigurationError

MAX_DURATION = 3600  # Upper bound for every user-facing duration (seconds)
MAX_DEVICE_LENGTH = 15
MAX_TOUCH_FILE_LENGTH = 127


@dataclass(frozen=True)
class DiskConfig:
    """Monitored disk and the file used to generate write activity."""

    device: str = "sda"  # Block device name under /sys/block
    touch_file: str = "/tmp/antipark.tmp"  # Must live on the monitored disk


@dataclass(frozen=True)
class TimingConfig:
    """State machine timing, all values in seconds."""

    poll_interval: float = 7  # Seconds between ticks
    antipark_timeout: float = 60  # Read-idle time before allowing park
    antipark_timeout_max: float = 300  # Ceiling for the doubled anti-park timeout
    parked_timeout: float = 300  # Time parked before advancing to idle
    sync_before_idle: bool = False  # Force a sync before entering idle
    sync_interval: float = 30  # Min seconds between forced syncs while anti-parking
    settle_delay: float = 1  # Pause after a transition that syncs


@dataclass(frozen=True)
class SystemConfig:
    """Daemon behavior and logging."""

    verbose: bool = False  # Emit status lines to the console
    max_device_read_failures: int = 30  # Consecutive read failures before fatal (0 = never)
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


def _check_range(name: str, value: object, low: float, high: float | None = None) -> None:
    """Raise ConfigurationError unless low <= value (<= high)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bound}, got {value}")


def _check_bool(name: str, value: object) -> None:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")


@dataclass(frozen=True)
class Config:
    """Main configuration container. Immutable once loaded."""

    disk: DiskConfig = field(default_factory=DiskConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "antipark"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and other expendable persistent state."""
        return Path.home() / ".local" / "state" / "antipark"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for ephemeral files (PID).

        Stored in /tmp/ so it's cleared on reboot, avoiding stale file issues.
        """
        return Path("/tmp/antipark")

    @property
    def log_path(self) -> Path:
        """Daemon log path."""
        return self.state_dir / "daemon.log"

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    def validate(self) -> None:
        """Check every value, raising ConfigurationError on the first bad one."""
        device = self.disk.device
        if not isinstance(device, str) or not device:
            raise ConfigurationError("disk.device must be a non-empty string")
        if len(device) > MAX_DEVICE_LENGTH:
            raise ConfigurationError(
                f"disk.device is too long ({MAX_DEVICE_LENGTH} chars max): {device!r}"
            )
        if "/" in device:
            raise ConfigurationError(
                f"disk.device must be a bare device name like 'sda', got {device!r}"
            )

        touch_file = self.disk.touch_file
        if not isinstance(touch_file, str) or not touch_file:
            raise ConfigurationError("disk.touch_file must be a non-empty path")
        if len(touch_file) > MAX_TOUCH_FILE_LENGTH:
            raise ConfigurationError(
                f"disk.touch_file is too long ({MAX_TOUCH_FILE_LENGTH} chars max)"
            )

        t = self.timing
        _check_range("timing.poll_interval", t.poll_interval, 0, MAX_DURATION)
        _check_range("timing.antipark_timeout", t.antipark_timeout, 0, MAX_DURATION)
        _check_range("timing.antipark_timeout_max", t.antipark_timeout_max, 0, MAX_DURATION)
        _check_range("timing.parked_timeout", t.parked_timeout, 0, MAX_DURATION)
        _check_range("timing.sync_interval", t.sync_interval, 0)
        _check_range("timing.settle_delay", t.settle_delay, 0, 60)
        _check_bool("timing.sync_before_idle", t.sync_before_idle)
        if t.antipark_timeout_max < t.antipark_timeout:
            raise ConfigurationError(
                f"timing.antipark_timeout_max ({t.antipark_timeout_max}) must be >= "
                f"timing.antipark_timeout ({t.antipark_timeout})"
            )

        s = self.system
        _check_bool("system.verbose", s.verbose)
        _check_range("system.max_device_read_failures", s.max_device_read_failures, 0)
        _check_range("system.log_max_bytes", s.log_max_bytes, 0)
        _check_range("system.log_backup_count", s.log_backup_count, 0)

    def with_overrides(self, **overrides: object) -> "Config":
        """Return a validated copy with fields replaced by name.

        Names are looked up across all sections, e.g. ``device=``,
        ``poll_interval=``, ``verbose=``. ``None`` values are skipped so CLI
        options that were not given leave the loaded value alone.
        """
        sections = {"disk": self.disk, "timing": self.timing, "system": self.system}
        changes: dict[str, dict[str, object]] = {name: {} for name in sections}

        for key, value in overrides.items():
            if value is None:
                continue
            for name, section in sections.items():
                if key in {f.name for f in fields(section)}:
                    changes[name][key] = value
                    break
            else:
                raise ConfigurationError(f"Unknown config option: {key!r}")

        config = Config(
            disk=replace(self.disk, **changes["disk"]),
            timing=replace(self.timing, **changes["timing"]),
            system=replace(self.system, **changes["system"]),
        )
        config.validate()
        return config

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("disk", "timing", "system"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions - no hardcoded values here.
        This ensures Config() and Config.load() use identical defaults.

        Raises:
            ConfigurationError: If the file can't be parsed or a value is invalid.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            disk=_load_section(DiskConfig, data.get("disk", {})),
            timing=_load_section(TimingConfig, data.get("timing", {})),
            system=_load_section(SystemConfig, data.get("system", {})),
        )
        config.validate()
        return config


def _load_section(section_cls: type, data: dict) -> object:
    """Build a section dataclass from TOML data, using dataclass defaults for missing fields."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"[{_section_name(section_cls)}] must be a table")
    defaults = section_cls()
    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in [{_section_name(section_cls)}]: {', '.join(sorted(unknown))}"
        )
    return section_cls(**{name: data.get(name, getattr(defaults, name)) for name in known})


def _section_name(section_cls: type) -> str:
    return {DiskConfig: "disk", TimingConfig: "timing", SystemConfig: "system"}[section_cls]
