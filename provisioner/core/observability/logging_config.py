"""
Logging setup for the ``provision`` CLI.

Step results are printed to stdout by the CLI itself; logging carries
the narrative around them (commands spawned, probes that failed, locks
taken) and always goes to stderr so ``--json`` output stays parseable.

The console level comes from ``--debug`` / ``--verbose`` / ``--quiet``,
then $PROVISION_LOG_LEVEL, then WARNING. A second, usually more
detailed, copy can be kept in $PROVISION_LOG_FILE.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ENV_LEVEL = "PROVISION_LOG_LEVEL"
ENV_FILE = "PROVISION_LOG_FILE"
ENV_FILE_LEVEL = "PROVISION_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"

# console level → (format, datefmt); the first row whose level is >= wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)


def resolve_level(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name. ``--debug`` beats ``--verbose`` beats ``--quiet``."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers for one CLI invocation.

    ``log_file`` and ``log_file_level`` default to $PROVISION_LOG_FILE
    and $PROVISION_LOG_FILE_LEVEL. The file handler falls back to the
    console level and always uses the detailed format.
    """
    console_level = _level_number(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    fmt, datefmt = next((f, d) for lvl, f, d in _CONSOLE_FORMATS if console_level <= lvl)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _level_number(log_file_level) if log_file_level else console_level
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    # handlers filter on their own; the root must let the lowest through
    root.setLevel(root_level)
    logging.raiseExceptions = False


def _level_number(name: str | None) -> int:
    """Numeric level for ``name``; unknown or empty names mean WARNING."""
    number = getattr(logging, (name or "").upper(), None)
    return number if isinstance(number, int) else logging.WARNING
