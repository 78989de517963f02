"""
Run log — append-only history of provisioning runs.

Every ``run`` appends one NDJSON line with the plan and each step's
outcome. The engine never reads this file back: detection always asks
the machine, not the log.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

RUN_LOG_ENV = "PROVISION_RUN_LOG"
DEFAULT_RUN_LOG = "~/.local/state/provisioner/runs.ndjson"


class StepOutcome(BaseModel):
    step: str
    status: str
    error: str | None = None
    note: str = ""
    duration_ms: int = 0


class RunLogEntry(BaseModel):
    """A single run log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    selectors: list[str] = Field(default_factory=list)
    plan: list[str] = Field(default_factory=list)
    dry_run: bool = False

    status: str = ""               # ok, partial, failed
    counts: dict[str, int] = Field(default_factory=dict)
    outcomes: list[StepOutcome] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)


def resolve_run_log_path(configured: str | None = None) -> Path:
    """$PROVISION_RUN_LOG, then the catalog setting, then the default."""
    raw = os.environ.get(RUN_LOG_ENV) or configured or DEFAULT_RUN_LOG
    return Path(os.path.expandvars(os.path.expanduser(raw)))


class RunLogWriter:
    """Append-only run log writer.

    Each call to write() appends a single JSON line.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or resolve_run_log_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: RunLogEntry) -> bool:
        """Append an entry. Returns False if the log could not be written."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write run log entry: %s", e)
            return False
        logger.debug("Run log entry written: %s", entry.operation_id)
        return True

    def read_all(self) -> list[RunLogEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(RunLogEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt run log entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run log: %s", e)

        return entries

    def read_recent(self, n: int = 10) -> list[RunLogEntry]:
        return self.read_all()[-n:] if n > 0 else []
