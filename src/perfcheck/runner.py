"""External tool invocation.

Every performance tool is run through :class:`ToolRunner`, the only
place in perfcheck that touches :mod:`subprocess`. Failures never raise:
a missing binary, an OS error or a timeout produce a failed
:class:`ToolOutput` and a warning in the log, so one broken tool cannot
abort the remaining checks.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Sequence

from perfcheck.logging import get_logger

log = get_logger("runner")

# Exit statuses mirroring the shell conventions for these failures.
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class ToolOutput:
    """Captured result of one tool invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return " ".join(self.args)


class ToolRunner:
    """Run performance tools with a stable locale and a timeout."""

    def __init__(self, *, timeout: float = 60.0, env: dict[str, str] | None = None) -> None:
        self.timeout = timeout
        run_env = dict(os.environ)
        if env:
            run_env.update(env)
        # Column layouts, decimal separators and 24h timestamps depend on it.
        run_env["LC_ALL"] = "C"
        self.env = run_env

    def cpu_count(self) -> int:
        """Return the number of CPUs this process may run on (0 if unknown).

        Honours the affinity mask (taskset, cpusets) like ``nproc``.
        """
        if hasattr(os, "sched_getaffinity"):
            try:
                return len(os.sched_getaffinity(0))
            except OSError as exc:
                log.debug("sched_getaffinity failed: %s", exc)
        return os.cpu_count() or 0

    def which(self, name: str) -> str | None:
        """Return the resolved path of *name*, or None if it is not installed."""
        return shutil.which(name, path=self.env.get("PATH"))

    def run(self, args: Sequence[str]) -> ToolOutput:
        """Run *args* and capture its output.

        Returns a :class:`ToolOutput` in all cases; check ``.ok`` before
        trusting ``stdout``.
        """
        argv = [str(a) for a in args]
        log.debug("Running: %s", " ".join(argv))
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self.env,
            )
        except FileNotFoundError as exc:
            log.warning("Command not found: %s (%s)", argv[0], exc)
            return ToolOutput(argv, EXIT_NOT_FOUND, "", str(exc))
        except subprocess.TimeoutExpired:
            log.warning("Command timed out after %.0fs: %s", self.timeout, " ".join(argv))
            return ToolOutput(argv, EXIT_TIMEOUT, "", f"timed out after {self.timeout:.0f}s")
        except OSError as exc:
            log.warning("Could not run %s: %s", argv[0], exc)
            return ToolOutput(argv, EXIT_NOT_FOUND, "", str(exc))

        elapsed = time.monotonic() - start
        log.debug("%s exited %d in %.2fs", argv[0], proc.returncode, elapsed)
        if proc.returncode != 0:
            log.warning(
                "%s exited with status %d: %s",
                " ".join(argv),
                proc.returncode,
                proc.stderr.strip()[:200],
            )
        return ToolOutput(argv, proc.returncode, proc.stdout, proc.stderr)


def missing_tools(runner: ToolRunner, tools: Sequence[str]) -> list[str]:
    """Return the subset of *tools* that cannot be found on PATH, in order."""
    return [name for name in tools if runner.which(name) is None]
