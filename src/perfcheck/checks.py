"""The nine performance checks and their registry.

Each check invokes its tool(s) once through a :class:`ToolRunner`,
parses the output into samples, classifies them and records everything
in a :class:`CheckResult`. The analysis always uses the same data that
is displayed. Checks never share state, so they can run in any subset;
:data:`CHECKS` fixes the order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence

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
    insufficient,
    worst_severity,
)
from perfcheck.config import Settings
from perfcheck.formatting import clean_tool_output, format_number, format_table
from perfcheck.logging import get_logger
from perfcheck.parsers import (
    filter_kernel_errors,
    parse_free,
    parse_iostat,
    parse_mpstat,
    parse_pidstat,
    parse_ps_top_pid,
    parse_sar_dev,
    parse_sar_tcp,
    parse_ss_summary,
    parse_uptime,
    parse_vmstat,
    top_processes,
)
from perfcheck.runner import ToolOutput, ToolRunner
from perfcheck.samples import ProcessSample

log = get_logger("checks")

# Package that provides each tool, for install hints.
TOOL_PACKAGES: dict[str, str] = {
    "uptime": "procps",
    "vmstat": "procps",
    "free": "procps",
    "ps": "procps",
    "dmesg": "util-linux",
    "mpstat": "sysstat",
    "pidstat": "sysstat",
    "iostat": "sysstat",
    "sar": "sysstat",
    "ss": "iproute2",
}


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass
class ReportItem:
    """One line (or block) of a check's report, in display order.

    ``kind`` is one of ``"heading"``, ``"note"``, ``"output"`` or
    ``"verdict"``.
    """

    kind: str
    text: str = ""
    verdict: Verdict | None = None


@dataclass
class CheckResult:
    """Everything one check observed and concluded."""

    name: str
    title: str
    intro: str = ""
    items: list[ReportItem] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    skipped: str | None = None

    def add_heading(self, text: str) -> None:
        self.items.append(ReportItem("heading", text))

    def add_note(self, text: str) -> None:
        self.items.append(ReportItem("note", text))

    def add_output(self, caption: str, text: str) -> None:
        """Add a caption line followed by cleaned raw tool output."""
        if caption:
            self.add_heading(caption)
        cleaned = clean_tool_output(text)
        if cleaned:
            self.items.append(ReportItem("output", cleaned))

    def add_verdict(self, verdict: Verdict) -> None:
        self.items.append(ReportItem("verdict", verdict.message, verdict))

    @property
    def verdicts(self) -> list[Verdict]:
        return [item.verdict for item in self.items if item.verdict is not None]

    @property
    def notes(self) -> list[str]:
        return [item.text for item in self.items if item.kind == "note"]

    @property
    def severity(self) -> Severity:
        return worst_severity(self.verdicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "skipped": self.skipped,
            "severity": self.severity.value,
            "verdicts": [v.to_dict() for v in self.verdicts],
            "notes": self.notes,
            "data": self.data,
        }


CheckFunc = Callable[[ToolRunner, Settings, CheckResult], None]


@dataclass(frozen=True)
class CheckSpec:
    """Static description of one check."""

    name: str
    title: str
    intro: str
    tools: tuple[str, ...]
    func: CheckFunc
    # Required tools abort the whole run when missing; others skip the check.
    required: bool = False

    def new_result(self) -> CheckResult:
        return CheckResult(name=self.name, title=self.title, intro=self.intro)


def _failed(result: CheckResult, output: ToolOutput, what: str) -> None:
    """Record a tool failure as an insufficient-data verdict."""
    detail = output.stderr.strip().splitlines()
    reason = detail[-1] if detail else f"exit status {output.returncode}"
    result.add_note(f"'{output.command}' failed: {reason}")
    result.add_verdict(insufficient(what))


def _sampling(settings: Settings, count: int) -> list[str]:
    return [str(settings.interval), str(count)]


# ---------------------------------------------------------------------------
# 1. Load averages
# ---------------------------------------------------------------------------


def check_load(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Classify load trend and capacity from ``uptime``."""
    output = runner.run(["uptime"])
    if not output.ok:
        _failed(result, output, "load averages")
        return
    result.add_output("", output.stdout)

    cpu_count = runner.cpu_count()
    sample = parse_uptime(output.stdout, cpu_count)
    result.data["load"] = sample.to_dict() if sample else None

    result.add_heading("Load trend analysis:")
    result.add_verdict(classify_load_trend(sample))
    if cpu_count > 0:
        result.add_note(f"System has {cpu_count} CPU(s)")
    else:
        result.add_note("Number of CPUs could not be determined")
    result.add_verdict(classify_load_capacity(sample))


# ---------------------------------------------------------------------------
# 2. Kernel errors
# ---------------------------------------------------------------------------


def check_kernel(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Scan the tail of the kernel ring buffer for errors and OOM kills."""
    output = runner.run(["dmesg", "-T"])
    if not output.ok:
        # Unprivileged users get EPERM when kernel.dmesg_restrict is set.
        result.add_verdict(
            Verdict(
                Severity.WARNING,
                "permission_denied",
                "Cannot access dmesg. Try running with sudo.",
            )
        )
        return

    matches = filter_kernel_errors(
        output.stdout, scan_lines=settings.dmesg_lines, limit=settings.dmesg_matches
    )
    result.data["matches"] = matches
    result.add_verdict(classify_kernel_log(matches))
    if matches:
        result.add_output("", "\n".join(matches))


# ---------------------------------------------------------------------------
# 3. System-wide statistics
# ---------------------------------------------------------------------------


def check_vmstat(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Run queue, blocked processes, swapping and CPU idle from ``vmstat``."""
    count = settings.vmstat_count
    output = runner.run(["vmstat", "-S", "M", *_sampling(settings, count)])
    if not output.ok:
        _failed(result, output, "vmstat statistics")
        return
    result.add_output(
        f"Running vmstat for {count} samples at {settings.interval} second intervals:",
        output.stdout,
    )

    sample = parse_vmstat(output.stdout)
    result.data["vmstat"] = sample.to_dict() if sample else None
    thresholds = settings.thresholds

    result.add_heading("Analysis:")
    result.add_verdict(classify_run_queue(sample, runner.cpu_count()))
    result.add_verdict(classify_blocked(sample))
    result.add_verdict(classify_swapping(sample))
    result.add_verdict(classify_cpu_idle(sample, thresholds))


# ---------------------------------------------------------------------------
# 4. Per-CPU balance
# ---------------------------------------------------------------------------


def check_mpstat(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Look for a single hot CPU with ``mpstat -P ALL``."""
    count = settings.mpstat_count
    output = runner.run(["mpstat", "-P", "ALL", *_sampling(settings, count)])
    if not output.ok:
        _failed(result, output, "per-CPU utilization")
        return
    result.add_output("Running mpstat for all CPUs:", output.stdout)

    cores = parse_mpstat(output.stdout)
    result.data["cores"] = [core.to_dict() for core in cores]

    result.add_heading("CPU Balance Analysis:")
    extremes = find_busiest_and_idlest(cores)
    if extremes is not None:
        busiest, idlest = extremes
        result.add_note(f"Highest usage: CPU {busiest.core} at {busiest.busy_pct:.2f}%")
        result.add_note(f"Lowest usage: CPU {idlest.core} at {idlest.busy_pct:.2f}%")
    result.add_verdict(classify_cpu_balance(cores, settings.thresholds))


# ---------------------------------------------------------------------------
# 5. Per-process CPU usage
# ---------------------------------------------------------------------------


def _process_table(samples: Sequence[ProcessSample], *, threads: bool = False) -> str:
    headers = ["TID" if threads else "PID", "%usr", "%system", "%CPU", "Command"]
    rows = [
        [
            str(s.tid if threads and s.tid is not None else s.pid),
            f"{s.user_pct:.2f}",
            f"{s.system_pct:.2f}",
            f"{s.cpu_pct:.2f}",
            s.command,
        ]
        for s in samples
    ]
    return format_table(headers, rows, alignments=["r", "r", "r", "r", "l"], max_col_width={4: 60})


def check_pidstat(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """List top CPU consumers and the user/system split of the busiest one.

    Purely descriptive: no thresholds apply.
    """
    output = runner.run(["pidstat", "-l", "-u", *_sampling(settings, settings.pidstat_count)])
    if not output.ok:
        _failed(result, output, "per-process CPU usage")
        return

    top = top_processes(parse_pidstat(output.stdout), settings.top_processes)
    result.data["top"] = [s.to_dict() for s in top]
    result.add_heading(f"Top {settings.top_processes} CPU consuming processes:")
    if top:
        result.items.append(ReportItem("output", _process_table(top)))
    else:
        result.add_note("No process CPU activity recorded during the sample.")

    ps_output = runner.run(["ps", "-eo", "pid,%cpu", "--sort=-%cpu"])
    top_pid = parse_ps_top_pid(ps_output.stdout) if ps_output.ok else None
    result.data["top_pid"] = top_pid
    if top_pid is None:
        result.add_verdict(insufficient("the top CPU consumer"))
        return

    result.add_heading(f"Detailed analysis of top consumer (PID {top_pid}):")
    detail = runner.run(
        ["pidstat", "-t", "-l", "-u", "-p", str(top_pid), *_sampling(settings, settings.pidstat_count)]
    )
    threads = parse_pidstat(detail.stdout) if detail.ok else []
    result.data["threads"] = [s.to_dict() for s in threads]
    if threads:
        result.items.append(ReportItem("output", _process_table(threads, threads=True)))
    else:
        # The process may have exited between ps and pidstat.
        result.add_note(f"No samples for PID {top_pid}; it may have exited.")


# ---------------------------------------------------------------------------
# 6. Disk I/O
# ---------------------------------------------------------------------------


def check_iostat(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Per-device wait time and utilization from ``iostat -dxz``."""
    count = settings.iostat_count
    output = runner.run(["iostat", "-d", "-x", "-z", *_sampling(settings, count)])
    if not output.ok:
        _failed(result, output, "disk I/O statistics")
        return
    result.add_output(
        f"Running iostat for {count} samples at {settings.interval} second intervals:",
        output.stdout,
    )

    disks = parse_iostat(output.stdout)
    result.data["disks"] = [disk.to_dict() for disk in disks]

    result.add_heading("Disk I/O Analysis:")
    if not disks:
        result.add_note("No active block devices reported during the sample.")
    thresholds = settings.thresholds
    for disk in disks:
        result.add_heading(f"Disk: {disk.device}")
        result.add_verdict(classify_disk_wait(disk, thresholds))
        result.add_verdict(classify_disk_util(disk, thresholds))


# ---------------------------------------------------------------------------
# 7. Memory usage
# ---------------------------------------------------------------------------


def check_memory(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Available memory, page cache and swap from ``free -m``."""
    output = runner.run(["free", "-m"])
    if not output.ok:
        _failed(result, output, "memory usage")
        return
    result.add_output("", output.stdout)

    sample = parse_free(output.stdout)
    result.data["memory"] = sample.to_dict() if sample else None

    result.add_heading("Memory Analysis:")
    if sample is not None and sample.total > 0:
        result.add_note(f"Total Memory: {sample.total} MB")
        result.add_note(f"Used Memory: {sample.used} MB ({sample.used_pct:.1f}%)")
        result.add_note(f"File System Cache: {sample.cache} MB ({sample.cache_pct:.1f}%)")
        result.add_note(f"Available Memory: {sample.available} MB ({sample.available_pct:.1f}%)")
    thresholds = settings.thresholds
    result.add_verdict(classify_memory(sample, thresholds))
    result.add_verdict(classify_swap(sample, thresholds))


# ---------------------------------------------------------------------------
# 8. Network device I/O
# ---------------------------------------------------------------------------


def check_network(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Per-interface packet and byte rates from ``sar -n DEV``."""
    count = settings.sar_count
    output = runner.run(["sar", "-n", "DEV", *_sampling(settings, count)])
    if not output.ok:
        _failed(result, output, "network device statistics")
        return
    result.add_output(
        f"Running network device check for {count} samples at {settings.interval} second intervals:",
        output.stdout,
    )

    interfaces = parse_sar_dev(output.stdout)
    result.data["interfaces"] = [iface.to_dict() for iface in interfaces]

    result.add_heading("Network Interface Analysis:")
    if not interfaces:
        result.add_note("No non-loopback interfaces reported.")
    for iface in interfaces:
        result.add_heading(f"Interface: {iface.name}")
        result.add_note(
            f"RX: {format_number(iface.rx_packets)} packets/s, {format_number(iface.rx_kbytes)} KB/s"
        )
        result.add_note(
            f"TX: {format_number(iface.tx_packets)} packets/s, {format_number(iface.tx_kbytes)} KB/s"
        )
        result.add_verdict(classify_network(iface, settings.thresholds))


# ---------------------------------------------------------------------------
# 9. TCP statistics
# ---------------------------------------------------------------------------


def check_tcp(runner: ToolRunner, settings: Settings, result: CheckResult) -> None:
    """Connection rates and retransmits from ``sar``, state counts from ``ss``."""
    count = settings.sar_count
    output = runner.run(["sar", "-n", "TCP,ETCP", *_sampling(settings, count)])
    if not output.ok:
        _failed(result, output, "TCP statistics")
        sample = None
    else:
        result.add_output(
            f"Running TCP statistics check for {count} samples at "
            f"{settings.interval} second intervals:",
            output.stdout,
        )
        sample = parse_sar_tcp(output.stdout)
        result.add_heading("TCP Connection Analysis:")
        if sample is not None:
            result.add_note(f"Active Connections/s: {format_number(sample.active)}")
            result.add_note(f"Passive Connections/s: {format_number(sample.passive)}")
            result.add_note(f"Retransmissions/s: {format_number(sample.retrans)}")
        result.add_verdict(classify_retransmits(sample, settings.thresholds))

    states: dict[str, int] = {}
    if runner.which("ss") is None:
        result.add_note("ss command not found; current connection states unavailable.")
    else:
        ss_output = runner.run(["ss", "-s"])
        if ss_output.ok:
            states = parse_ss_summary(ss_output.stdout)
            result.add_output("Current TCP connection states:", _ss_tcp_lines(ss_output.stdout))
        else:
            result.add_note("Could not read current connection states from ss.")

    if sample is not None:
        sample.states = states
        result.data["tcp"] = sample.to_dict()
    else:
        result.data["tcp"] = {"states": states} if states else None


def _ss_tcp_lines(text: str, context: int = 4) -> str:
    """Return the ``TCP:`` line of ``ss -s`` and the *context* lines after it."""
    lines = text.splitlines()
    for index, line in enumerate(lines):
        if line.startswith("TCP:"):
            return "\n".join(lines[index : index + context + 1])
    return ""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

CHECKS: tuple[CheckSpec, ...] = (
    CheckSpec(
        "load",
        "LOAD AVERAGES",
        "Checking if load is increasing or decreasing...",
        ("uptime",),
        check_load,
        required=True,
    ),
    CheckSpec(
        "kernel",
        "KERNEL ERRORS",
        "Checking for recent kernel errors including OOM events...",
        ("dmesg",),
        check_kernel,
        required=True,
    ),
    CheckSpec(
        "vmstat",
        "SYSTEM-WIDE STATISTICS",
        "Capturing system-wide statistics (run queue, swapping, CPU usage)...",
        ("vmstat",),
        check_vmstat,
        required=True,
    ),
    CheckSpec(
        "mpstat",
        "PER-CPU BALANCE",
        "Checking CPU balance (looking for single busy CPU)...",
        ("mpstat",),
        check_mpstat,
    ),
    CheckSpec(
        "pidstat",
        "PER-PROCESS CPU USAGE",
        "Identifying top CPU consumers and user/system time split...",
        ("pidstat", "ps"),
        check_pidstat,
    ),
    CheckSpec(
        "iostat",
        "DISK I/O STATISTICS",
        "Checking disk I/O: IOPS, throughput, wait time, percent busy...",
        ("iostat",),
        check_iostat,
    ),
    CheckSpec(
        "memory",
        "MEMORY USAGE",
        "Checking memory usage including file system cache...",
        ("free",),
        check_memory,
        required=True,
    ),
    CheckSpec(
        "network",
        "NETWORK DEVICE I/O",
        "Checking network device I/O: packets and throughput...",
        ("sar",),
        check_network,
    ),
    CheckSpec(
        "tcp",
        "TCP STATISTICS",
        "Checking TCP statistics: connection rates, retransmits...",
        ("sar",),
        check_tcp,
    ),
)

CHECK_NAMES: tuple[str, ...] = tuple(spec.name for spec in CHECKS)


def select_checks(names: Sequence[str] | None = None) -> list[CheckSpec]:
    """Return the checks named in *names* (all if empty), in fixed order.

    Raises:
        ValueError: If a name does not match any check.
    """
    if not names:
        return list(CHECKS)
    unknown = sorted(set(names) - set(CHECK_NAMES))
    if unknown:
        raise ValueError(f"Unknown check(s): {', '.join(unknown)}")
    wanted = set(names)
    return [spec for spec in CHECKS if spec.name in wanted]


def required_tools(specs: Sequence[CheckSpec]) -> list[str]:
    """Tools whose absence should abort the run, for the selected checks."""
    tools: list[str] = []
    for spec in specs:
        if spec.required:
            tools.extend(t for t in spec.tools if t not in tools)
    return tools


def install_hint(tool: str) -> str:
    package = TOOL_PACKAGES.get(tool, tool)
    return f"{tool} command not found. Please install the {package} package."


def run_check(spec: CheckSpec, runner: ToolRunner, settings: Settings) -> CheckResult:
    """Run one check, converting a missing tool or a crash into a result."""
    result = spec.new_result()

    for tool in spec.tools:
        if runner.which(tool) is None:
            result.skipped = install_hint(tool)
            log.warning("Skipping %s check: %s not found", spec.name, tool)
            return result

    try:
        spec.func(runner, settings, result)
    except Exception as exc:  # noqa: BLE001
        log.exception("Check %s failed", spec.name)
        result.add_verdict(
            Verdict(Severity.UNKNOWN, "check_error", f"Check failed unexpectedly: {exc}")
        )
    return result


def iter_checks(
    runner: ToolRunner,
    settings: Settings,
    names: Sequence[str] | None = None,
) -> Iterator[CheckResult]:
    """Run the selected checks sequentially, yielding each result as it completes."""
    for spec in select_checks(names):
        log.debug("Starting check %s", spec.name)
        yield run_check(spec, runner, settings)


def run_checks(
    runner: ToolRunner,
    settings: Settings,
    names: Sequence[str] | None = None,
) -> list[CheckResult]:
    """Run the selected checks and return all results."""
    return list(iter_checks(runner, settings, names))
