"""Structured samples parsed from tool output.

Each sample is transient: it is produced by one parser call, classified,
and discarded. ``to_dict`` exists for the JSON report.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


def truncated_pct(part: int, whole: int) -> float | None:
    """Return ``part * 100 / whole`` truncated (not rounded) to one decimal.

    Returns None when *whole* is zero.
    """
    if whole <= 0:
        return None
    return (part * 1000 // whole) / 10


@dataclass
class LoadSample:
    """1/5/15-minute load averages and the logical CPU count."""

    load_1m: float
    load_5m: float
    load_15m: float
    cpu_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VmstatSample:
    """One interval row of vmstat (swap volumes in MB)."""

    run_queue: int
    blocked: int
    swap_in: int
    swap_out: int
    cpu_idle: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CpuCoreSample:
    """Busy percentage (100 - %idle) of one logical core."""

    core: str
    busy_pct: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessSample:
    """Per-process (or per-thread) CPU split from pidstat."""

    pid: int
    user_pct: float
    system_pct: float
    cpu_pct: float
    command: str = ""
    tid: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DiskSample:
    """Extended I/O statistics of one block device."""

    device: str
    await_ms: float | None
    util_pct: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MemorySample:
    """Memory and swap figures from ``free -m``, all in MB."""

    total: int
    used: int
    free: int
    shared: int
    cache: int
    available: int
    swap_total: int = 0
    swap_used: int = 0

    @property
    def used_pct(self) -> float | None:
        return truncated_pct(self.used, self.total)

    @property
    def cache_pct(self) -> float | None:
        return truncated_pct(self.cache, self.total)

    @property
    def available_pct(self) -> float | None:
        return truncated_pct(self.available, self.total)

    @property
    def swap_used_pct(self) -> float | None:
        return truncated_pct(self.swap_used, self.swap_total)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["used_pct"] = self.used_pct
        data["cache_pct"] = self.cache_pct
        data["available_pct"] = self.available_pct
        data["swap_used_pct"] = self.swap_used_pct
        return data


@dataclass
class InterfaceSample:
    """Packet and byte rates of one network interface (per second)."""

    name: str
    rx_packets: float | None
    tx_packets: float | None
    rx_kbytes: float | None
    tx_kbytes: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TcpSample:
    """TCP connection rates and, optionally, current socket state counts."""

    active: float | None = None
    passive: float | None = None
    retrans: float | None = None
    states: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
