"""Tests for configuration system."""

from pathlib import Path

import pytest

from antipark.config import Config, DiskConfig, SystemConfig, TimingConfig
from antipark.errors import ConfigurationError


def test_disk_config_defaults():
    """DiskConfig has correct defaults."""
    config = DiskConfig()
    assert config.device == "sda"
    assert config.touch_file == "/tmp/antipark.tmp"


def test_timing_config_defaults():
    """TimingConfig has correct defaults."""
    config = TimingConfig()
    assert config.poll_interval == 7
    assert config.antipark_timeout == 60
    assert config.antipark_timeout_max == 300
    assert config.parked_timeout == 300
    assert config.sync_before_idle is False
    assert config.sync_interval == 30
    assert config.settle_delay == 1


def test_system_config_defaults():
    """SystemConfig has correct defaults."""
    config = SystemConfig()
    assert config.verbose is False
    assert config.max_device_read_failures == 30
    assert config.log_max_bytes == 5 * 1024 * 1024
    assert config.log_backup_count == 3


def test_config_paths():
    """Config provides correct paths."""
    config = Config()
    assert config.config_path == Path.home() / ".config" / "antipark" / "config.toml"
    assert config.log_path == Path.home() / ".local" / "state" / "antipark" / "daemon.log"
    assert config.pid_path == Path("/tmp/antipark/daemon.pid")


def test_config_is_frozen():
    """Config can't be mutated once built."""
    config = Config()
    with pytest.raises(AttributeError):
        config.timing.poll_interval = 1  # type: ignore[misc]


def test_defaults_are_valid():
    Config().validate()


def test_load_missing_file_returns_defaults(tmp_path: Path):
    """Loading a nonexistent file gives the dataclass defaults."""
    assert Config.load(tmp_path / "nope.toml") == Config()


def test_load_partial_file(tmp_path: Path):
    """Missing keys fall back to defaults."""
    path = tmp_path / "config.toml"
    path.write_text('[disk]\ndevice = "sdb"\n\n[timing]\nparked_timeout = 120\n')

    config = Config.load(path)

    assert config.disk.device == "sdb"
    assert config.disk.touch_file == "/tmp/antipark.tmp"
    assert config.timing.parked_timeout == 120
    assert config.timing.antipark_timeout == 60
    assert config.system == SystemConfig()


def test_save_and_load(tmp_path: Path):
    """A saved config loads back identically."""
    path = tmp_path / "sub" / "config.toml"
    config = Config(
        disk=DiskConfig(device="sdc", touch_file="/mnt/data/.antipark"),
        timing=TimingConfig(poll_interval=5, antipark_timeout=90, sync_before_idle=True),
        system=SystemConfig(verbose=True, max_device_read_failures=0),
    )

    config.save(path)

    assert "[timing]" in path.read_text()
    assert Config.load(path) == config


def test_load_parse_error(tmp_path: Path):
    """Malformed TOML raises ConfigurationError."""
    path = tmp_path / "config.toml"
    path.write_text("[disk\ndevice = ")

    with pytest.raises(ConfigurationError, match="Failed to parse"):
        Config.load(path)


def test_load_unknown_key(tmp_path: Path):
    """Typos in keys are rejected rather than ignored."""
    path = tmp_path / "config.toml"
    path.write_text("[timing]\npoll_intervall = 5\n")

    with pytest.raises(ConfigurationError, match="poll_intervall"):
        Config.load(path)


def test_load_invalid_value(tmp_path: Path):
    """Out-of-range values in the file are rejected on load."""
    path = tmp_path / "config.toml"
    path.write_text("[timing]\nparked_timeout = 4000\n")

    with pytest.raises(ConfigurationError, match="timing.parked_timeout"):
        Config.load(path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"poll_interval": -1},
        {"poll_interval": 3601},
        {"antipark_timeout": 3601},
        {"parked_timeout": -5},
        {"antipark_timeout": 120, "antipark_timeout_max": 60},
        {"settle_delay": 61},
        {"poll_interval": "7"},
        {"poll_interval": True},
        {"sync_before_idle": "yes"},
        {"verbose": 1},
        {"max_device_read_failures": -1},
        {"device": ""},
        {"device": "/dev/sda"},
        {"device": "a" * 16},
        {"touch_file": ""},
        {"touch_file": "/" + "x" * 127},
    ],
)
def test_with_overrides_rejects_invalid(overrides):
    """Invalid overrides raise ConfigurationError."""
    with pytest.raises(ConfigurationError):
        Config().with_overrides(**overrides)


def test_with_overrides_applies_by_field_name():
    """Overrides are routed to the section that owns the field."""
    config = Config().with_overrides(
        device="sdb", poll_interval=3, antipark_timeout_max=600, verbose=True
    )

    assert config.disk.device == "sdb"
    assert config.timing.poll_interval == 3
    assert config.timing.antipark_timeout_max == 600
    assert config.system.verbose is True


def test_with_overrides_skips_none():
    """None means 'not given' and leaves the value alone."""
    assert Config().with_overrides(device=None, poll_interval=None) == Config()


def test_with_overrides_unknown_option():
    with pytest.raises(ConfigurationError, match="Unknown config option"):
        Config().with_overrides(bogus=1)


def test_boundary_values_are_valid():
    """0 and 3600 are both accepted for durations."""
    Config().with_overrides(
        poll_interval=0, antipark_timeout=0, antipark_timeout_max=3600, parked_timeout=3600
    )


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        Config().with_overrides(poll_interval=-1)
