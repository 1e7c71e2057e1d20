"""perfcheck — Linux performance checklist runner.

Runs the standard OS observability tools (uptime, dmesg, vmstat, mpstat,
pidstat, iostat, free, sar, ss), parses their output and flags likely
bottlenecks against static thresholds.
"""

__version__ = "0.1.0"
