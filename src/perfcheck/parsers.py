"""Parsers for the text output of the performance tools.

Every parser is a pure function from captured stdout to a sample from
:mod:`perfcheck.samples`. Missing or malformed fields produce ``None``
(or an empty list) rather than an exception, so a tool that prints
something unexpected degrades to "insufficient data" instead of
aborting the report.

Column positions are found from each table's header row, so the parsers
follow the layout of whichever sysstat/procps version is installed.
Only ``free`` and ``uptime`` are read positionally.
"""

from __future__ import annotations

import re

from perfcheck.samples import (
    CpuCoreSample,
    DiskSample,
    InterfaceSample,
    LoadSample,
    MemorySample,
    ProcessSample,
    TcpSample,
    VmstatSample,
)

# Key under which the leading timestamp (or "Average:") of a row is kept.
TIME_KEY = "_time"
AVERAGE = "Average:"

_KERNEL_ERROR_RE = re.compile(r"error|fail|oom|killed", re.IGNORECASE)
_LOAD_RE = re.compile(r"load averages?:\s*(.*)$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_SS_TCP_RE = re.compile(r"^TCP:\s+(\d+)\s*(?:\((.*)\))?")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def to_float(value: str | None) -> float | None:
    """Parse a float, returning None for missing or non-numeric text."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def to_int(value: str | None) -> int | None:
    """Parse an integer, returning None for missing or non-numeric text."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Generic sysstat-style tables
# ---------------------------------------------------------------------------


def _split_time(tokens: list[str]) -> tuple[str, list[str]]:
    """Split the leading timestamp off a sysstat row.

    Handles ``12:00:01``, ``12:00:01 AM`` and ``Average:``.
    """
    if len(tokens) > 1 and tokens[1] in ("AM", "PM"):
        return " ".join(tokens[:2]), tokens[2:]
    return tokens[0], tokens[1:]


def parse_table_blocks(
    text: str,
    marker: str,
    *,
    timestamped: bool = True,
    rest_column: str | None = None,
    keep_empty: bool = False,
) -> list[list[dict[str, str]]]:
    """Split column-table output into blocks of rows keyed by header name.

    A header is any line containing *marker* as a whitespace-separated
    token (a trailing ``:`` is ignored, for ``Device:``). Rows below it,
    up to the next blank line, are mapped onto the header's column names.
    Lines before the first header (tool banners) are ignored.

    Args:
        text: Raw tool output.
        marker: A column name that identifies the header row.
        timestamped: Whether rows start with a timestamp or ``Average:``
            that is absent from the column names. The value is kept under
            :data:`TIME_KEY`.
        rest_column: If the last header column has this name, it absorbs
            the remainder of the row (for commands containing spaces).
        keep_empty: Also return tables that have a header but no rows.

    Returns:
        One list of rows per table, in output order.
    """
    blocks: list[list[dict[str, str]]] = []
    columns: list[str] | None = None
    current: list[dict[str, str]] = []

    for line in text.splitlines():
        tokens = line.split()
        if not tokens:
            columns = None
            continue

        if marker in (t.rstrip(":") for t in tokens):
            if timestamped:
                _, columns = _split_time(tokens)
            else:
                columns = [t.rstrip(":") for t in tokens]
            current = []
            blocks.append(current)
            continue

        if columns is None:
            continue

        stamp = ""
        values = tokens
        if timestamped:
            stamp, values = _split_time(tokens)

        if rest_column is not None and columns and columns[-1] == rest_column:
            head = len(columns) - 1
            if len(values) > head:
                values = values[:head] + [" ".join(values[head:])]
        if len(values) < len(columns):
            continue

        row = dict(zip(columns, values))
        if timestamped:
            row[TIME_KEY] = stamp
        current.append(row)

    if keep_empty:
        return blocks
    return [block for block in blocks if block]


def last_block(
    text: str,
    marker: str,
    *,
    timestamped: bool = True,
    rest_column: str | None = None,
) -> list[dict[str, str]]:
    """Return the rows of the final table (the ``Average:`` block for sysstat).

    The last header wins even when no rows follow it: iostat -z prints a
    bare header for an interval with no active device.
    """
    blocks = parse_table_blocks(
        text, marker, timestamped=timestamped, rest_column=rest_column, keep_empty=True
    )
    return blocks[-1] if blocks else []


# ---------------------------------------------------------------------------
# uptime
# ---------------------------------------------------------------------------


def parse_uptime(text: str, cpu_count: int) -> LoadSample | None:
    """Parse ``... load average: 2.50, 1.80, 1.20``."""
    for line in text.splitlines():
        match = _LOAD_RE.search(line)
        if not match:
            continue
        numbers = _NUMBER_RE.findall(match.group(1))
        if len(numbers) < 3:
            return None
        return LoadSample(
            load_1m=float(numbers[0]),
            load_5m=float(numbers[1]),
            load_15m=float(numbers[2]),
            cpu_count=cpu_count,
        )
    return None


# ---------------------------------------------------------------------------
# dmesg
# ---------------------------------------------------------------------------


def filter_kernel_errors(text: str, scan_lines: int = 100, limit: int = 10) -> list[str]:
    """Return the last *limit* error-like lines among the last *scan_lines*."""
    recent = text.splitlines()[-scan_lines:]
    matches = [line for line in recent if _KERNEL_ERROR_RE.search(line)]
    return matches[-limit:]


# ---------------------------------------------------------------------------
# vmstat
# ---------------------------------------------------------------------------


def parse_vmstat(text: str) -> VmstatSample | None:
    """Parse the last data row of ``vmstat -S M <interval> <count>``.

    The first row reports averages since boot, so callers should sample
    at least twice.
    """
    rows = last_block(text, "id", timestamped=False)
    if not rows:
        return None
    row = rows[-1]
    values = [to_int(row.get(key)) for key in ("r", "b", "si", "so", "id")]
    if any(v is None for v in values):
        return None
    run_queue, blocked, swap_in, swap_out, idle = values
    return VmstatSample(
        run_queue=run_queue,  # type: ignore[arg-type]
        blocked=blocked,  # type: ignore[arg-type]
        swap_in=swap_in,  # type: ignore[arg-type]
        swap_out=swap_out,  # type: ignore[arg-type]
        cpu_idle=idle,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# mpstat
# ---------------------------------------------------------------------------


def parse_mpstat(text: str) -> list[CpuCoreSample]:
    """Parse per-core busy percentages from ``mpstat -P ALL``.

    Uses the final table and skips the aggregate ``all`` row. Rows with
    an unreadable ``%idle`` are dropped.
    """
    cores: list[CpuCoreSample] = []
    for row in last_block(text, "%idle"):
        cpu = row.get("CPU")
        if cpu is None or cpu == "all":
            continue
        idle = to_float(row.get("%idle"))
        if idle is None:
            continue
        cores.append(CpuCoreSample(core=cpu, busy_pct=round(100.0 - idle, 2)))
    return cores


# ---------------------------------------------------------------------------
# pidstat / ps
# ---------------------------------------------------------------------------


def parse_pidstat(text: str) -> list[ProcessSample]:
    """Parse the final table of ``pidstat [-l] [-t] -u``.

    With ``-t``, thread rows carry a numeric ``TID`` and process rows a
    ``-``.
    """
    samples: list[ProcessSample] = []
    last_pid: int | None = None
    for row in last_block(text, "%CPU", rest_column="Command"):
        pid = to_int(row.get("PID") or row.get("TGID"))
        if pid is None:
            # Thread rows print "-" as TGID; they belong to the row above.
            pid = last_pid
        else:
            last_pid = pid
        cpu = to_float(row.get("%CPU"))
        if pid is None or cpu is None:
            continue
        samples.append(
            ProcessSample(
                pid=pid,
                user_pct=to_float(row.get("%usr")) or 0.0,
                system_pct=to_float(row.get("%system")) or 0.0,
                cpu_pct=cpu,
                command=row.get("Command", ""),
                tid=to_int(row.get("TID")),
            )
        )
    return samples


def top_processes(samples: list[ProcessSample], limit: int) -> list[ProcessSample]:
    """Return the *limit* highest-%CPU samples; ties keep output order."""
    return sorted(samples, key=lambda s: s.cpu_pct, reverse=True)[:limit]


def parse_ps_top_pid(text: str) -> int | None:
    """Return the PID on the first data row of ``ps -eo pid,%cpu --sort=-%cpu``."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    return to_int(lines[1].split()[0])


# ---------------------------------------------------------------------------
# iostat
# ---------------------------------------------------------------------------


def parse_iostat(text: str) -> list[DiskSample]:
    """Parse device rows of the final report of ``iostat -dxz``.

    Average wait comes from ``await`` when present (older sysstat and the
    short ``-s`` layout), otherwise the larger of ``r_await``/``w_await``.
    """
    disks: list[DiskSample] = []
    for row in last_block(text, "Device", timestamped=False):
        device = row.get("Device")
        if not device:
            continue
        await_ms = to_float(row.get("await"))
        if await_ms is None:
            split = [to_float(row.get(k)) for k in ("r_await", "w_await")]
            known = [v for v in split if v is not None]
            await_ms = max(known) if known else None
        disks.append(DiskSample(device=device, await_ms=await_ms, util_pct=to_float(row.get("%util"))))
    return disks


# ---------------------------------------------------------------------------
# free
# ---------------------------------------------------------------------------


def parse_free(text: str) -> MemorySample | None:
    """Parse the ``Mem:`` and ``Swap:`` rows of ``free -m``.

    Needs the ``available`` column (procps-ng 3.3.10+).
    """
    mem: list[int | None] | None = None
    swap: list[int | None] = [0, 0]
    for line in text.splitlines():
        tokens = line.split()
        if not tokens:
            continue
        if tokens[0] == "total":
            # Older layouts end in "buffers cached" instead of "buff/cache available".
            if "available" not in tokens:
                return None
        elif tokens[0] == "Mem:":
            if len(tokens) < 7:
                return None
            mem = [to_int(t) for t in tokens[1:7]]
        elif tokens[0] == "Swap:" and len(tokens) >= 3:
            swap = [to_int(tokens[1]), to_int(tokens[2])]

    if mem is None or any(v is None for v in mem) or any(v is None for v in swap):
        return None
    total, used, free, shared, cache, available = mem
    return MemorySample(
        total=total,  # type: ignore[arg-type]
        used=used,  # type: ignore[arg-type]
        free=free,  # type: ignore[arg-type]
        shared=shared,  # type: ignore[arg-type]
        cache=cache,  # type: ignore[arg-type]
        available=available,  # type: ignore[arg-type]
        swap_total=swap[0],  # type: ignore[arg-type]
        swap_used=swap[1],  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# sar
# ---------------------------------------------------------------------------


def parse_sar_dev(text: str) -> list[InterfaceSample]:
    """Parse the final ``IFACE`` table of ``sar -n DEV``, skipping loopback."""
    interfaces: list[InterfaceSample] = []
    for row in last_block(text, "IFACE"):
        name = row.get("IFACE", "")
        if not name or name.startswith("lo"):
            continue
        interfaces.append(
            InterfaceSample(
                name=name,
                rx_packets=to_float(row.get("rxpck/s")),
                tx_packets=to_float(row.get("txpck/s")),
                rx_kbytes=to_float(row.get("rxkB/s")),
                tx_kbytes=to_float(row.get("txkB/s")),
            )
        )
    return interfaces


def parse_sar_tcp(text: str) -> TcpSample | None:
    """Parse ``sar -n TCP,ETCP``: opens from TCP, retransmits from ETCP."""
    tcp_rows = last_block(text, "active/s")
    etcp_rows = last_block(text, "retrans/s")
    if not tcp_rows and not etcp_rows:
        return None
    sample = TcpSample()
    if tcp_rows:
        sample.active = to_float(tcp_rows[-1].get("active/s"))
        sample.passive = to_float(tcp_rows[-1].get("passive/s"))
    if etcp_rows:
        sample.retrans = to_float(etcp_rows[-1].get("retrans/s"))
    return sample


# ---------------------------------------------------------------------------
# ss
# ---------------------------------------------------------------------------


def parse_ss_summary(text: str) -> dict[str, int]:
    """Parse ``TCP:   12 (estab 5, closed 2, orphaned 0, timewait 2/0)``.

    Returns state counts plus ``total``; empty if the line is absent.
    """
    for line in text.splitlines():
        match = _SS_TCP_RE.match(line.strip())
        if not match:
            continue
        states = {"total": int(match.group(1))}
        for part in (match.group(2) or "").split(","):
            words = part.split()
            if len(words) != 2:
                continue
            count = to_int(words[1].split("/")[0])
            if count is not None:
                states[words[0]] = count
        return states
    return {}
