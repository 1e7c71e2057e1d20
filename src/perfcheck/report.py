"""Rendering of check results as a colored text report or JSON."""

from __future__ import annotations

import json
import platform
import time
from typing import Any, Sequence

import click

from perfcheck import __version__
from perfcheck.checks import CheckResult
from perfcheck.classify import Severity
from perfcheck.formatting import format_banner, format_section_header, style_severity


def format_start_banner() -> str:
    return format_banner(
        "Linux System Performance Checker",
        "Based on Brendan Gregg's Performance Checklist",
    )


def format_end_banner() -> str:
    return format_banner("System Performance Check Complete")


def format_result(result: CheckResult) -> str:
    """Format one check for terminal display.

    Verdict lines are colored by severity; notes and raw tool output are
    printed as-is.
    """
    lines = ["", format_section_header(result.title)]
    if result.intro:
        lines.append(click.style(result.intro, fg="green"))

    if result.skipped:
        lines.append(style_severity(result.skipped, Severity.CRITICAL))
        return "\n".join(lines)

    for item in result.items:
        if item.kind == "heading":
            lines.append("")
            lines.append(item.text)
        elif item.kind == "verdict" and item.verdict is not None:
            lines.append(style_severity(item.text, item.verdict.severity))
        else:
            lines.append(item.text)
    return "\n".join(lines)


def format_summary(results: Sequence[CheckResult]) -> str:
    """One line per check with its worst severity."""
    lines = ["", "Summary:"]
    width = max((len(r.title) for r in results), default=0)
    for result in results:
        if result.skipped:
            label = style_severity("SKIPPED", Severity.UNKNOWN)
        else:
            severity = result.severity
            label = style_severity(severity.value.upper(), severity)
        lines.append(f"  {result.title:<{width}}  {label}")
    return "\n".join(lines)


def results_to_dict(results: Sequence[CheckResult]) -> dict[str, Any]:
    """Build the JSON document for a run."""
    return {
        "version": __version__,
        "hostname": platform.node(),
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        "checks": [result.to_dict() for result in results],
    }


def results_to_json(results: Sequence[CheckResult], indent: int = 2) -> str:
    return json.dumps(results_to_dict(results), indent=indent)
