"""Shared text formatting helpers for perfcheck.

Provides section headers, banners, aligned tables and severity colors
used by the text report.
"""

from __future__ import annotations

import click

from perfcheck.classify import Severity

_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.OK: "green",
    Severity.WARNING: "yellow",
    Severity.CRITICAL: "red",
    Severity.UNKNOWN: "magenta",
}

_BANNER_RULE = "=" * 50


def severity_color(severity: Severity) -> str:
    """Return the click color name used for *severity*."""
    return _SEVERITY_COLORS[severity]


def style_severity(text: str, severity: Severity) -> str:
    """Wrap *text* in the ANSI color for *severity*.

    Warnings and criticals are bold so they stand out on dim terminals.
    """
    return click.style(
        text,
        fg=_SEVERITY_COLORS[severity],
        bold=severity in (Severity.WARNING, Severity.CRITICAL),
    )


def format_section_header(title: str) -> str:
    """Format a check header: ``'==== TITLE ===='`` in blue."""
    return click.style(f"==== {title} ====", fg="blue")


def format_banner(*lines: str) -> str:
    """Format centered lines between two rules, all in blue."""
    out = [_BANNER_RULE]
    out.extend(f"    {line}    " for line in lines)
    out.append(_BANNER_RULE)
    return "\n".join(click.style(line, fg="blue") for line in out)


def clean_tool_output(text: str) -> str:
    """Drop blank lines and the sysstat ``Linux ...`` banner from tool output."""
    lines = [
        line.rstrip()
        for line in text.splitlines()
        if line.strip() and not line.startswith("Linux ")
    ]
    return "\n".join(lines)


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    max_col_width: dict[int, int] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Auto-calculates column widths from content. Truncates columns that
    exceed *max_col_width* (with ``'...'`` suffix). Right-aligns columns
    marked ``'r'`` in *alignments*.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'`` or ``'r'``.
        max_col_width: Column index to max width mapping.
        indent: Number of leading spaces per line.

    Returns:
        The formatted table as a string.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    while len(aligns) < ncols:
        aligns.append("l")

    proc_headers = list(headers)
    proc_rows: list[list[str]] = []
    for row in rows:
        padded = list(row) + [""] * (ncols - len(row))
        proc_rows.append(padded[:ncols])

    for ci, max_w in (max_col_width or {}).items():
        if ci < ncols:
            proc_headers[ci] = truncate(proc_headers[ci], max_w)
            for row in proc_rows:
                row[ci] = truncate(row[ci], max_w)

    widths = [len(h) for h in proc_headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _cell(text: str, width: int, align: str) -> str:
        return text.rjust(width) if align == "r" else text.ljust(width)

    prefix = " " * indent
    lines = [
        prefix + "  ".join(_cell(proc_headers[i], widths[i], aligns[i]) for i in range(ncols))
    ]
    for row in proc_rows:
        lines.append(prefix + "  ".join(_cell(row[i], widths[i], aligns[i]) for i in range(ncols)))
    return "\n".join(line.rstrip() for line in lines)


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to *max_len*, adding *suffix* if truncated."""
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix


def format_number(value: float | None, precision: int = 2) -> str:
    """Format a rate or percentage; ``'n/a'`` when the value is missing."""
    if value is None:
        return "n/a"
    return f"{value:.{precision}f}"
