"""Thresholds and sampling configuration.

Handles:
- Built-in default thresholds for every classification rule.
- Loading overrides from a YAML file (``sampling:`` and ``thresholds:``).
- Validating the final settings before any tool runs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from perfcheck.logging import get_logger

log = get_logger("config")


class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded or is invalid."""


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------


@dataclass
class Thresholds:
    """Static classification thresholds. All comparisons are strict."""

    # System-wide CPU idle (%)
    cpu_idle_critical: float = 10.0
    cpu_idle_warning: float = 30.0

    # Per-CPU balance (% busy)
    imbalance_busy: float = 80.0
    imbalance_severe_spread: float = 50.0
    imbalance_moderate_spread: float = 30.0

    # Disk
    disk_await_critical_ms: float = 20.0
    disk_await_warning_ms: float = 10.0
    disk_util_critical: float = 90.0
    disk_util_warning: float = 70.0

    # Memory (% of total still available)
    mem_available_critical: float = 10.0
    mem_available_warning: float = 20.0

    # Swap (% of swap in use)
    swap_high: float = 50.0
    swap_moderate: float = 10.0

    # Network (KB/s in either direction)
    net_very_high_kbs: float = 50000.0
    net_significant_kbs: float = 10000.0

    # TCP retransmissions per second
    retrans_critical: float = 10.0
    retrans_warning: float = 2.0


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass
class Settings:
    """Resolved configuration for one perfcheck run."""

    thresholds: Thresholds = field(default_factory=Thresholds)

    # Sampling (seconds between samples, number of samples per tool)
    interval: int = 1
    vmstat_count: int = 3
    mpstat_count: int = 2
    pidstat_count: int = 1
    iostat_count: int = 2
    sar_count: int = 3

    # Kernel log scan
    dmesg_lines: int = 100
    dmesg_matches: int = 10

    # Process listing
    top_processes: int = 5

    # Per-invocation timeout in seconds
    tool_timeout: float = 60.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        thresholds = data.pop("thresholds")
        return {"sampling": data, "thresholds": thresholds}


_SAMPLING_KEYS = {f.name for f in fields(Settings)} - {"thresholds"}
_THRESHOLD_KEYS = {f.name for f in fields(Thresholds)}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str


# (warning field, critical field, True if critical fires on the high side)
_ORDERED_PAIRS: list[tuple[str, str, bool]] = [
    ("cpu_idle_warning", "cpu_idle_critical", False),
    ("imbalance_moderate_spread", "imbalance_severe_spread", True),
    ("disk_await_warning_ms", "disk_await_critical_ms", True),
    ("disk_util_warning", "disk_util_critical", True),
    ("mem_available_warning", "mem_available_critical", False),
    ("swap_moderate", "swap_high", True),
    ("net_significant_kbs", "net_very_high_kbs", True),
    ("retrans_warning", "retrans_critical", True),
]


def validate_settings(settings: Settings) -> list[ValidationError]:
    """Validate resolved settings.

    Returns a list of validation errors. Empty list means valid.
    """
    errors: list[ValidationError] = []

    if settings.interval < 1:
        errors.append(
            ValidationError("interval", f"Interval must be at least 1 second (got {settings.interval}).")
        )

    for name in ("vmstat_count", "mpstat_count", "pidstat_count", "iostat_count", "sar_count"):
        value = getattr(settings, name)
        if value < 1:
            errors.append(ValidationError(name, f"Sample count must be at least 1 (got {value})."))

    # vmstat's first row and iostat's first report are since-boot averages.
    for name in ("vmstat_count", "iostat_count"):
        value = getattr(settings, name)
        if value == 1:
            errors.append(
                ValidationError(
                    name,
                    "Need at least 2 samples; the first report covers the time since boot.",
                )
            )

    for name in ("dmesg_lines", "dmesg_matches", "top_processes"):
        value = getattr(settings, name)
        if value < 1:
            errors.append(ValidationError(name, f"Must be at least 1 (got {value})."))

    if settings.tool_timeout <= 0:
        errors.append(
            ValidationError("tool_timeout", f"Timeout must be positive (got {settings.tool_timeout}).")
        )

    th = settings.thresholds
    for warn_name, crit_name, high_side in _ORDERED_PAIRS:
        warn = getattr(th, warn_name)
        crit = getattr(th, crit_name)
        if high_side and warn >= crit:
            errors.append(
                ValidationError(
                    f"thresholds.{warn_name}",
                    f"{warn_name} ({warn}) must be lower than {crit_name} ({crit}).",
                )
            )
        elif not high_side and warn <= crit:
            errors.append(
                ValidationError(
                    f"thresholds.{warn_name}",
                    f"{warn_name} ({warn}) must be higher than {crit_name} ({crit}).",
                )
            )

    for name in _THRESHOLD_KEYS:
        if getattr(th, name) < 0:
            errors.append(ValidationError(f"thresholds.{name}", f"{name} cannot be negative."))

    return errors


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def load_config(config_path: Path) -> Settings:
    """Load settings from a YAML file.

    File format::

        sampling:
          interval: 1
          sar_count: 5
          top_processes: 10
        thresholds:
          disk_util_warning: 60
          retrans_critical: 20

    Missing keys keep their defaults.

    Raises:
        ConfigError: If the file is missing, malformed, or fails validation.
    """
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(data).__name__}")

    settings = settings_from_dict(data)
    log.debug("Loaded config from %s", config_path)
    return settings


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build validated :class:`Settings` from a parsed config mapping."""
    unknown = set(data) - {"sampling", "thresholds"}
    if unknown:
        raise ConfigError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    sampling = _section(data, "sampling", _SAMPLING_KEYS)
    threshold_data = _section(data, "thresholds", _THRESHOLD_KEYS)

    defaults = Settings()
    for key, value in sampling.items():
        expected = type(getattr(defaults, key))
        sampling[key] = _coerce(f"sampling.{key}", value, expected)
    for key, value in threshold_data.items():
        threshold_data[key] = _coerce(f"thresholds.{key}", value, float)

    settings = Settings(thresholds=Thresholds(**threshold_data), **sampling)

    errors = validate_settings(settings)
    if errors:
        details = "; ".join(f"{e.field}: {e.message}" for e in errors)
        raise ConfigError(f"Invalid configuration: {details}")
    return settings


def _section(data: dict[str, Any], name: str, known: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    unknown = set(section) - known
    if unknown:
        raise ConfigError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    return dict(section)


def _coerce(name: str, value: Any, expected: type) -> Any:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if expected is int:
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"{name} must be a whole number, got {value!r}")
        return int(value)
    return float(value)
