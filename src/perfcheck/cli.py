"""Command-line interface for perfcheck.

A single command runs the performance checks in fixed order and prints
a colored report (or JSON with ``--json``).
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from perfcheck import __version__
from perfcheck.checks import (
    CHECK_NAMES,
    CHECKS,
    TOOL_PACKAGES,
    iter_checks,
    required_tools,
    select_checks,
)
from perfcheck.classify import Severity
from perfcheck.config import ConfigError, Settings, load_config
from perfcheck.formatting import format_table, style_severity
from perfcheck.logging import setup_logging
from perfcheck.report import (
    format_end_banner,
    format_result,
    format_start_banner,
    format_summary,
    results_to_json,
)
from perfcheck.runner import ToolRunner, missing_tools


@click.command()
@click.version_option(version=__version__, prog_name="perfcheck")
@click.option(
    "--check",
    "check_names",
    type=click.Choice(CHECK_NAMES),
    multiple=True,
    help="Run only this check (repeatable). Checks still run in the standard order.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML file overriding thresholds and sampling parameters.",
)
@click.option("--json", "as_json", is_flag=True, help="Emit results as JSON.")
@click.option("--color/--no-color", default=None, help="Force colored output on or off.")
@click.option("--list-checks", is_flag=True, help="List available checks and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write a DEBUG log to this file.",
)
def main(
    check_names: tuple[str, ...],
    config_path: Path | None,
    as_json: bool,
    color: bool | None,
    list_checks: bool,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """perfcheck — Linux performance checklist: find likely bottlenecks fast."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    if list_checks:
        rows = [[spec.name, spec.title, ", ".join(spec.tools)] for spec in CHECKS]
        click.echo(format_table(["Name", "Title", "Tools"], rows, indent=0))
        return

    settings = Settings()
    if config_path is not None:
        try:
            settings = load_config(config_path)
        except ConfigError as exc:
            raise click.UsageError(str(exc)) from exc

    specs = select_checks(check_names)
    runner = ToolRunner(timeout=settings.tool_timeout)

    missing = missing_tools(runner, required_tools(specs))
    if missing:
        for tool in missing:
            click.echo(
                style_severity(
                    f"Error: '{tool}' command not found. Please install the required packages.",
                    Severity.CRITICAL,
                ),
                err=True,
                color=color,
            )
        packages = sorted({TOOL_PACKAGES.get(tool, tool) for tool in missing})
        click.echo(
            style_severity(
                f"Tip: You may need to install the {', '.join(repr(p) for p in packages)} "
                f"package(s) for these tools.",
                Severity.WARNING,
            ),
            err=True,
            color=color,
        )
        sys.exit(1)

    if as_json:
        results = list(iter_checks(runner, settings, check_names))
        click.echo(results_to_json(results))
        return

    click.echo(format_start_banner(), color=color)
    results = []
    for result in iter_checks(runner, settings, check_names):
        click.echo(format_result(result), color=color)
        results.append(result)
    click.echo(format_summary(results), color=color)
    click.echo("\n" + format_end_banner(), color=color)
