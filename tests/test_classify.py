"""Tests for perfcheck.classify — threshold classification rules."""

from __future__ import annotations

import unittest

from perfcheck.classify import (
    Severity,
    Verdict,
    classify_blocked,
    classify_cpu_balance,
    classify_cpu_idle,
    classify_disk_util,
    classify_disk_wait,
    classify_kernel_log,
    classify_load_capacity,
    classify_load_trend,
    classify_memory,
    classify_network,
    classify_retransmits,
    classify_run_queue,
    classify_swap,
    classify_swapping,
    find_busiest_and_idlest,
    worst_severity,
)
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


def _load(one: float, five: float, fifteen: float, cpus: int = 4) -> LoadSample:
    return LoadSample(load_1m=one, load_5m=five, load_15m=fifteen, cpu_count=cpus)


def _vm(r: int = 0, b: int = 0, si: int = 0, so: int = 0, idle: int = 90) -> VmstatSample:
    return VmstatSample(run_queue=r, blocked=b, swap_in=si, swap_out=so, cpu_idle=idle)


def _cores(*busy: float) -> list[CpuCoreSample]:
    return [CpuCoreSample(core=str(i), busy_pct=b) for i, b in enumerate(busy)]


def _mem(total: int = 1000, available: int = 500, swap_total: int = 0, swap_used: int = 0) -> MemorySample:
    return MemorySample(
        total=total,
        used=total - available,
        free=available // 2,
        shared=0,
        cache=available // 2,
        available=available,
        swap_total=swap_total,
        swap_used=swap_used,
    )


class TestLoadTrend(unittest.TestCase):
    def test_increasing(self) -> None:
        self.assertEqual(classify_load_trend(_load(2.5, 1.8, 1.2)).code, "increasing")

    def test_increasing_established(self) -> None:
        self.assertEqual(classify_load_trend(_load(1.0, 2.0, 1.5)).code, "increasing_established")

    def test_decreasing(self) -> None:
        self.assertEqual(classify_load_trend(_load(1.0, 2.0, 3.0)).code, "decreasing")

    def test_stable(self) -> None:
        self.assertEqual(classify_load_trend(_load(1.0, 1.0, 1.0)).code, "stable")

    def test_priority_first_rule_wins(self) -> None:
        # 1m > 5m and 5m > 15m both hold; the 1m/5m rule is checked first.
        self.assertEqual(classify_load_trend(_load(3.0, 2.0, 1.0)).code, "increasing")

    def test_exactly_one_label_for_grid(self) -> None:
        labels = {"increasing", "increasing_established", "decreasing", "stable"}
        for one in (0.5, 1.0, 1.5):
            for five in (0.5, 1.0, 1.5):
                for fifteen in (0.5, 1.0, 1.5):
                    verdict = classify_load_trend(_load(one, five, fifteen))
                    self.assertIn(verdict.code, labels)

    def test_missing_sample(self) -> None:
        verdict = classify_load_trend(None)
        self.assertEqual(verdict.severity, Severity.UNKNOWN)


class TestLoadCapacity(unittest.TestCase):
    def test_within_capacity(self) -> None:
        verdict = classify_load_capacity(_load(2.5, 1.8, 1.2, cpus=4))
        self.assertEqual(verdict.code, "within_capacity")
        self.assertEqual(verdict.severity, Severity.OK)

    def test_equal_is_not_overloaded(self) -> None:
        self.assertEqual(classify_load_capacity(_load(4.0, 1.0, 1.0, cpus=4)).code, "within_capacity")

    def test_just_above_is_overloaded(self) -> None:
        verdict = classify_load_capacity(_load(4.01, 1.0, 1.0, cpus=4))
        self.assertEqual(verdict.code, "overloaded")
        self.assertEqual(verdict.severity, Severity.CRITICAL)

    def test_unknown_cpu_count(self) -> None:
        self.assertEqual(
            classify_load_capacity(_load(1.0, 1.0, 1.0, cpus=0)).severity, Severity.UNKNOWN
        )


class TestVmstatRules(unittest.TestCase):
    def test_run_queue(self) -> None:
        self.assertEqual(classify_run_queue(_vm(r=4), 4).severity, Severity.OK)
        self.assertEqual(classify_run_queue(_vm(r=5), 4).code, "cpu_bottleneck")

    def test_blocked(self) -> None:
        self.assertEqual(classify_blocked(_vm(b=0)).code, "no_blocked")
        verdict = classify_blocked(_vm(b=3))
        self.assertEqual(verdict.code, "io_bottleneck")
        self.assertEqual(verdict.severity, Severity.WARNING)

    def test_swapping(self) -> None:
        self.assertEqual(classify_swapping(_vm()).code, "no_swapping")
        self.assertEqual(classify_swapping(_vm(si=1)).code, "swapping")
        self.assertEqual(classify_swapping(_vm(so=2)).code, "swapping")

    def test_cpu_idle(self) -> None:
        self.assertEqual(classify_cpu_idle(_vm(idle=9)).code, "cpu_bound")
        self.assertEqual(classify_cpu_idle(_vm(idle=10)).code, "cpu_busy")
        self.assertEqual(classify_cpu_idle(_vm(idle=29)).code, "cpu_busy")
        self.assertEqual(classify_cpu_idle(_vm(idle=30)).code, "cpu_normal")

    def test_missing_sample(self) -> None:
        for verdict in (
            classify_run_queue(None, 4),
            classify_blocked(None),
            classify_swapping(None),
            classify_cpu_idle(None),
        ):
            self.assertEqual(verdict.severity, Severity.UNKNOWN)


class TestCpuBalance(unittest.TestCase):
    def test_severe_imbalance(self) -> None:
        verdict = classify_cpu_balance(_cores(85.0, 20.0, 40.0))
        self.assertEqual(verdict.code, "severe_imbalance")
        self.assertEqual(verdict.severity, Severity.CRITICAL)
        self.assertIn("CPU 0", verdict.message)

    def test_busy_but_small_spread_is_moderate(self) -> None:
        # max > 80 but spread 40: only the moderate rule applies.
        self.assertEqual(classify_cpu_balance(_cores(90.0, 50.0)).code, "moderate_imbalance")

    def test_spread_at_threshold_is_balanced(self) -> None:
        self.assertEqual(classify_cpu_balance(_cores(50.0, 20.0)).code, "balanced")

    def test_max_at_threshold_not_severe(self) -> None:
        self.assertEqual(classify_cpu_balance(_cores(80.0, 10.0)).code, "moderate_imbalance")

    def test_single_core(self) -> None:
        self.assertEqual(classify_cpu_balance(_cores(99.0)).code, "balanced")

    def test_no_cores(self) -> None:
        self.assertEqual(classify_cpu_balance([]).severity, Severity.UNKNOWN)

    def test_first_core_wins_ties(self) -> None:
        extremes = find_busiest_and_idlest(_cores(50.0, 50.0, 10.0, 10.0))
        assert extremes is not None
        busiest, idlest = extremes
        self.assertEqual(busiest.core, "0")
        self.assertEqual(idlest.core, "2")

    def test_custom_thresholds(self) -> None:
        strict = Thresholds(imbalance_moderate_spread=5.0)
        self.assertEqual(
            classify_cpu_balance(_cores(30.0, 20.0), strict).code, "moderate_imbalance"
        )


class TestDiskRules(unittest.TestCase):
    def test_both_critical(self) -> None:
        disk = DiskSample(device="sda", await_ms=25.0, util_pct=95.0)
        self.assertEqual(classify_disk_wait(disk).severity, Severity.CRITICAL)
        self.assertEqual(classify_disk_util(disk).severity, Severity.CRITICAL)

    def test_wait_boundaries(self) -> None:
        self.assertEqual(classify_disk_wait(DiskSample("sda", 20.0, 0.0)).code, "elevated_wait")
        self.assertEqual(classify_disk_wait(DiskSample("sda", 10.0, 0.0)).code, "wait_normal")

    def test_util_boundaries(self) -> None:
        self.assertEqual(classify_disk_util(DiskSample("sda", 0.0, 90.0)).code, "high_util")
        self.assertEqual(classify_disk_util(DiskSample("sda", 0.0, 70.0)).code, "util_normal")
        self.assertEqual(classify_disk_util(DiskSample("sda", 0.0, 70.5)).code, "high_util")

    def test_missing_values(self) -> None:
        disk = DiskSample(device="sdb", await_ms=None, util_pct=None)
        wait = classify_disk_wait(disk)
        self.assertEqual(wait.severity, Severity.UNKNOWN)
        self.assertIn("sdb", wait.message)
        self.assertEqual(classify_disk_util(disk).severity, Severity.UNKNOWN)


class TestMemoryRules(unittest.TestCase):
    def test_percentages_truncate(self) -> None:
        sample = MemorySample(
            total=3000, used=1000, free=1000, shared=0, cache=999, available=2000
        )
        self.assertEqual(sample.used_pct, 33.3)
        self.assertEqual(sample.cache_pct, 33.3)
        self.assertEqual(sample.available_pct, 66.6)

    def test_critical_low_memory(self) -> None:
        verdict = classify_memory(_mem(total=1000, available=80))
        self.assertEqual(verdict.code, "very_low_memory")
        self.assertEqual(verdict.severity, Severity.CRITICAL)

    def test_boundaries(self) -> None:
        self.assertEqual(classify_memory(_mem(total=1000, available=100)).code, "low_memory")
        self.assertEqual(classify_memory(_mem(total=1000, available=200)).code, "sufficient_memory")

    def test_zero_total(self) -> None:
        self.assertEqual(classify_memory(_mem(total=0, available=0)).severity, Severity.UNKNOWN)


class TestSwapRules(unittest.TestCase):
    def test_three_distinct_outcomes(self) -> None:
        not_configured = classify_swap(_mem(swap_total=0, swap_used=0))
        unused = classify_swap(_mem(swap_total=2048, swap_used=0))
        used = classify_swap(_mem(swap_total=2048, swap_used=100))
        self.assertEqual(not_configured.code, "swap_not_configured")
        self.assertEqual(unused.code, "swap_unused")
        self.assertEqual(used.code, "swap_minimal")
        messages = {not_configured.message, unused.message, used.message}
        self.assertEqual(len(messages), 3)

    def test_levels(self) -> None:
        self.assertEqual(classify_swap(_mem(swap_total=1000, swap_used=501)).code, "swap_high")
        self.assertEqual(classify_swap(_mem(swap_total=1000, swap_used=500)).code, "swap_moderate")
        self.assertEqual(classify_swap(_mem(swap_total=1000, swap_used=100)).code, "swap_minimal")


class TestNetworkRules(unittest.TestCase):
    def test_levels(self) -> None:
        def iface(rx: float, tx: float) -> InterfaceSample:
            return InterfaceSample("eth0", 1.0, 1.0, rx, tx)

        self.assertEqual(classify_network(iface(50001.0, 0.0)).code, "very_high_traffic")
        self.assertEqual(classify_network(iface(0.0, 50000.0)).code, "significant_traffic")
        self.assertEqual(classify_network(iface(10000.0, 10000.0)).code, "normal_traffic")

    def test_missing(self) -> None:
        verdict = classify_network(InterfaceSample("eth0", None, None, None, 5.0))
        self.assertEqual(verdict.severity, Severity.UNKNOWN)


class TestRetransmitRules(unittest.TestCase):
    def test_normal_below_warning(self) -> None:
        verdict = classify_retransmits(TcpSample(retrans=1.5))
        self.assertEqual(verdict.code, "normal_retransmits")
        self.assertEqual(verdict.severity, Severity.OK)

    def test_levels(self) -> None:
        self.assertEqual(classify_retransmits(TcpSample(retrans=2.0)).code, "normal_retransmits")
        self.assertEqual(classify_retransmits(TcpSample(retrans=2.5)).code, "elevated_retransmits")
        self.assertEqual(classify_retransmits(TcpSample(retrans=10.0)).code, "elevated_retransmits")
        self.assertEqual(classify_retransmits(TcpSample(retrans=11.0)).code, "high_retransmits")

    def test_missing(self) -> None:
        self.assertEqual(classify_retransmits(TcpSample()).severity, Severity.UNKNOWN)
        self.assertEqual(classify_retransmits(None).severity, Severity.UNKNOWN)


class TestKernelLog(unittest.TestCase):
    def test_errors(self) -> None:
        self.assertEqual(classify_kernel_log(["oom"]).severity, Severity.CRITICAL)

    def test_clean(self) -> None:
        self.assertEqual(classify_kernel_log([]).code, "no_kernel_errors")


class TestWorstSeverity(unittest.TestCase):
    def test_ordering(self) -> None:
        verdicts = [
            Verdict(Severity.OK, "a", ""),
            Verdict(Severity.UNKNOWN, "b", ""),
            Verdict(Severity.WARNING, "c", ""),
        ]
        self.assertEqual(worst_severity(verdicts), Severity.WARNING)

    def test_empty(self) -> None:
        self.assertEqual(worst_severity([]), Severity.OK)


if __name__ == "__main__":
    unittest.main()
