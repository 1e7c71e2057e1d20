"""Threshold classification of parsed samples.

Every function here is pure: it takes a sample (or a list of samples)
and a :class:`~perfcheck.config.Thresholds` instance and returns one
:class:`Verdict`. Missing data never counts as zero; it yields
``Severity.UNKNOWN`` with an "insufficient data" message instead.

All comparisons are strict, so a value sitting exactly on a threshold
falls into the lower bucket.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Sequence

from perfcheck.config import Thresholds
from perfcheck.samples import (
    CpuCoreSample,
    DiskSample,
    InterfaceSample,
    LoadSample,
    MemorySample,
    TcpSample,
    VmstatSample,
)

DEFAULT_THRESHOLDS = Thresholds()


class Severity(enum.Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


@dataclass
class Verdict:
    """Outcome of one classification rule."""

    severity: Severity
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"severity": self.severity.value, "code": self.code, "message": self.message}


def insufficient(what: str) -> Verdict:
    """Verdict for a metric that could not be read."""
    return Verdict(Severity.UNKNOWN, "insufficient_data", f"Insufficient data: could not read {what}")


# ---------------------------------------------------------------------------
# Load averages
# ---------------------------------------------------------------------------


def classify_load_trend(sample: LoadSample | None) -> Verdict:
    """Label the load trend; the first matching rule wins."""
    if sample is None:
        return insufficient("load averages")
    if sample.load_1m > sample.load_5m:
        return Verdict(
            Severity.WARNING,
            "increasing",
            "Short-term load (1m) is higher than medium-term (5m) - load may be increasing",
        )
    if sample.load_5m > sample.load_15m:
        return Verdict(
            Severity.WARNING,
            "increasing_established",
            "Medium-term load (5m) is higher than long-term (15m) - load has been increasing",
        )
    if sample.load_1m < sample.load_5m:
        return Verdict(
            Severity.OK,
            "decreasing",
            "Short-term load (1m) is lower than medium-term (5m) - load may be decreasing",
        )
    return Verdict(Severity.OK, "stable", "Load appears stable")


def classify_load_capacity(sample: LoadSample | None) -> Verdict:
    if sample is None or sample.cpu_count < 1:
        return insufficient("load averages or CPU count")
    if sample.load_1m > sample.cpu_count:
        return Verdict(
            Severity.CRITICAL,
            "overloaded",
            f"Current load ({sample.load_1m:.2f}) exceeds available CPUs "
            f"({sample.cpu_count}) - system may be overloaded",
        )
    return Verdict(
        Severity.OK,
        "within_capacity",
        f"Current load ({sample.load_1m:.2f}) is within available CPU capacity ({sample.cpu_count})",
    )


# ---------------------------------------------------------------------------
# vmstat
# ---------------------------------------------------------------------------


def classify_run_queue(sample: VmstatSample | None, cpu_count: int) -> Verdict:
    if sample is None or cpu_count < 1:
        return insufficient("run queue length")
    if sample.run_queue > cpu_count:
        return Verdict(
            Severity.CRITICAL,
            "cpu_bottleneck",
            f"Run queue length ({sample.run_queue}) exceeds CPU count ({cpu_count}) "
            f"- possible CPU bottleneck",
        )
    return Verdict(Severity.OK, "run_queue_normal", f"Run queue length ({sample.run_queue}) is normal")


def classify_blocked(sample: VmstatSample | None) -> Verdict:
    if sample is None:
        return insufficient("blocked process count")
    if sample.blocked > 0:
        return Verdict(
            Severity.WARNING,
            "io_bottleneck",
            f"{sample.blocked} processes blocked - possible I/O bottleneck",
        )
    return Verdict(Severity.OK, "no_blocked", "No blocked processes")


def classify_swapping(sample: VmstatSample | None) -> Verdict:
    if sample is None:
        return insufficient("swap activity")
    if sample.swap_in > 0 or sample.swap_out > 0:
        return Verdict(
            Severity.CRITICAL,
            "swapping",
            f"System is swapping (in: {sample.swap_in} MB, out: {sample.swap_out} MB) "
            f"- possible memory shortage",
        )
    return Verdict(Severity.OK, "no_swapping", "No swapping detected")


def classify_cpu_idle(
    sample: VmstatSample | None, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> Verdict:
    if sample is None:
        return insufficient("CPU idle percentage")
    idle = sample.cpu_idle
    if idle < thresholds.cpu_idle_critical:
        return Verdict(
            Severity.CRITICAL,
            "cpu_bound",
            f"Very high CPU usage (idle: {idle}%) - system is CPU-bound",
        )
    if idle < thresholds.cpu_idle_warning:
        return Verdict(Severity.WARNING, "cpu_busy", f"High CPU usage (idle: {idle}%) - system is busy")
    return Verdict(Severity.OK, "cpu_normal", f"CPU usage is normal (idle: {idle}%)")


# ---------------------------------------------------------------------------
# Per-CPU balance
# ---------------------------------------------------------------------------


def find_busiest_and_idlest(
    cores: Sequence[CpuCoreSample],
) -> tuple[CpuCoreSample, CpuCoreSample] | None:
    """Return ``(busiest, idlest)``; the first core seen wins ties."""
    if not cores:
        return None
    busiest = idlest = cores[0]
    for core in cores[1:]:
        if core.busy_pct > busiest.busy_pct:
            busiest = core
        if core.busy_pct < idlest.busy_pct:
            idlest = core
    return busiest, idlest


def classify_cpu_balance(
    cores: Sequence[CpuCoreSample], thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> Verdict:
    extremes = find_busiest_and_idlest(cores)
    if extremes is None:
        return insufficient("per-CPU utilization")
    busiest, idlest = extremes
    spread = busiest.busy_pct - idlest.busy_pct
    if busiest.busy_pct > thresholds.imbalance_busy and spread > thresholds.imbalance_severe_spread:
        return Verdict(
            Severity.CRITICAL,
            "severe_imbalance",
            f"Poor CPU balance detected - CPU {busiest.core} is much busier than others. "
            f"This may indicate poor thread scaling or a single-threaded bottleneck.",
        )
    if spread > thresholds.imbalance_moderate_spread:
        return Verdict(Severity.WARNING, "moderate_imbalance", "Moderate CPU imbalance detected.")
    return Verdict(Severity.OK, "balanced", "CPU load is relatively balanced across all cores.")


# ---------------------------------------------------------------------------
# Disk
# ---------------------------------------------------------------------------


def classify_disk_wait(disk: DiskSample, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Verdict:
    value = disk.await_ms
    if value is None:
        return insufficient(f"average wait time for {disk.device}")
    if value > thresholds.disk_await_critical_ms:
        return Verdict(
            Severity.CRITICAL,
            "high_wait",
            f"High I/O wait time: {value:.2f} ms - potential disk bottleneck",
        )
    if value > thresholds.disk_await_warning_ms:
        return Verdict(Severity.WARNING, "elevated_wait", f"Elevated I/O wait time: {value:.2f} ms")
    return Verdict(Severity.OK, "wait_normal", f"I/O wait time normal: {value:.2f} ms")


def classify_disk_util(disk: DiskSample, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Verdict:
    value = disk.util_pct
    if value is None:
        return insufficient(f"utilization for {disk.device}")
    if value > thresholds.disk_util_critical:
        return Verdict(
            Severity.CRITICAL,
            "very_high_util",
            f"Very high disk utilization: {value:.2f}% - disk is a bottleneck",
        )
    if value > thresholds.disk_util_warning:
        return Verdict(Severity.WARNING, "high_util", f"High disk utilization: {value:.2f}%")
    return Verdict(Severity.OK, "util_normal", f"Disk utilization normal: {value:.2f}%")


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


def classify_memory(
    sample: MemorySample | None, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> Verdict:
    if sample is None or sample.available_pct is None:
        return insufficient("memory usage")
    pct = sample.available_pct
    if pct < thresholds.mem_available_critical:
        return Verdict(
            Severity.CRITICAL,
            "very_low_memory",
            f"Very low available memory ({pct:.1f}%) - system may start swapping soon",
        )
    if pct < thresholds.mem_available_warning:
        return Verdict(
            Severity.WARNING,
            "low_memory",
            f"Low available memory ({pct:.1f}%) - monitor for potential issues",
        )
    return Verdict(Severity.OK, "sufficient_memory", f"Sufficient available memory ({pct:.1f}%)")


def classify_swap(sample: MemorySample | None, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Verdict:
    """Distinguish not-configured, configured-but-unused and in-use swap."""
    if sample is None:
        return insufficient("swap usage")
    if sample.swap_total <= 0:
        return Verdict(Severity.WARNING, "swap_not_configured", "No swap configured on this system")
    if sample.swap_used <= 0:
        return Verdict(Severity.OK, "swap_unused", "No swap in use")

    pct = sample.swap_used_pct or 0.0
    usage = f"Swap usage: {sample.swap_used} MB of {sample.swap_total} MB ({pct:.1f}%)"
    if pct > thresholds.swap_high:
        return Verdict(
            Severity.CRITICAL, "swap_high", f"{usage} - high swap usage, system is under memory pressure"
        )
    if pct > thresholds.swap_moderate:
        return Verdict(
            Severity.WARNING, "swap_moderate", f"{usage} - moderate swap usage, monitor memory usage"
        )
    return Verdict(Severity.OK, "swap_minimal", f"{usage} - minimal swap usage")


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


def classify_network(
    iface: InterfaceSample, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> Verdict:
    rx, tx = iface.rx_kbytes, iface.tx_kbytes
    if rx is None or tx is None:
        return insufficient(f"throughput for {iface.name}")
    if rx > thresholds.net_very_high_kbs or tx > thresholds.net_very_high_kbs:
        return Verdict(Severity.WARNING, "very_high_traffic", "Very high network traffic detected")
    if rx > thresholds.net_significant_kbs or tx > thresholds.net_significant_kbs:
        return Verdict(Severity.WARNING, "significant_traffic", "Significant network traffic")
    return Verdict(Severity.OK, "normal_traffic", "Normal network traffic levels")


# ---------------------------------------------------------------------------
# TCP
# ---------------------------------------------------------------------------


def classify_retransmits(
    sample: TcpSample | None, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> Verdict:
    if sample is None or sample.retrans is None:
        return insufficient("TCP retransmission rate")
    if sample.retrans > thresholds.retrans_critical:
        return Verdict(
            Severity.CRITICAL,
            "high_retransmits",
            "High TCP retransmission rate - potential network issues",
        )
    if sample.retrans > thresholds.retrans_warning:
        return Verdict(Severity.WARNING, "elevated_retransmits", "Elevated TCP retransmission rate")
    return Verdict(Severity.OK, "normal_retransmits", "Normal TCP retransmission rate")


# ---------------------------------------------------------------------------
# Kernel log
# ---------------------------------------------------------------------------


def classify_kernel_log(matches: Sequence[str]) -> Verdict:
    if matches:
        return Verdict(Severity.CRITICAL, "kernel_errors", "Recent kernel errors found:")
    return Verdict(Severity.OK, "no_kernel_errors", "No recent kernel errors found.")


def worst_severity(verdicts: Sequence[Verdict]) -> Severity:
    """Return the most severe level among *verdicts* (OK if empty)."""
    order = [Severity.OK, Severity.UNKNOWN, Severity.WARNING, Severity.CRITICAL]
    worst = Severity.OK
    for verdict in verdicts:
        if order.index(verdict.severity) > order.index(worst):
            worst = verdict.severity
    return worst
