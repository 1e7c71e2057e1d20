"""Logging setup for perfcheck.

Console output goes to stderr so log lines never interleave with the
report written to stdout. With ``-v`` the console shows which module
emitted each line (``runner``, ``checks``, ``config``), which is enough
to follow every tool invocation. An optional file handler always records
DEBUG and is appended to, one run after another.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "perfcheck"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_VERBOSE_FORMAT = "%(levelname)-8s [%(name)s] %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the root perfcheck logger.

    Args:
        verbose: Console at DEBUG, tagged with the emitting module.
        quiet: Console at WARNING. Ignored if *verbose* is True.
        log_file: Append a DEBUG log to this path, creating parent
            directories as needed.

    Returns:
        The configured root logger for perfcheck.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Reconfiguring (e.g. repeated CLI invocations in one process) replaces handlers.
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if verbose:
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(_VERBOSE_FORMAT))
    else:
        console.setLevel(logging.WARNING if quiet else logging.INFO)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)
        logger.debug("perfcheck run started (argv: %s)", " ".join(sys.argv[1:]))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``perfcheck.<name>`` child logger."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
