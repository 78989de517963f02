"""
RunResult — the outcome of attempting one step in one execution.

Results are created by the execution engine, are immutable once
created, and are discarded after the run. Idempotence comes from
re-querying ``detect``, never from replaying stored results.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepStatus(StrEnum):
    """Terminal status of a step within a run."""

    ALREADY_SATISFIED = "already_satisfied"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_success(self) -> bool:
        return self in (StepStatus.ALREADY_SATISFIED, StepStatus.APPLIED)

    @property
    def blocks_dependents(self) -> bool:
        return self in (StepStatus.FAILED, StepStatus.SKIPPED)


class RunResult(BaseModel):
    """Outcome of one step. ``error`` is present iff the step failed."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    status: StepStatus
    error: str | None = None
    error_type: str | None = None
    note: str = ""                  # why a step was skipped
    started_at: str = Field(default_factory=_now_iso)
    finished_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
    undo_hint: str = ""
    # Dry-run skips do not propagate to dependents.
    blocking: bool = True

    @model_validator(mode="after")
    def _error_iff_failed(self) -> RunResult:
        if self.status == StepStatus.FAILED and not self.error:
            raise ValueError("A failed result must carry an error")
        if self.status != StepStatus.FAILED and self.error is not None:
            raise ValueError("Only failed results may carry an error")
        return self

    @property
    def ok(self) -> bool:
        return self.status.is_success

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status == StepStatus.SKIPPED

    @property
    def blocks_dependents(self) -> bool:
        return self.status.blocks_dependents and self.blocking

    @classmethod
    def satisfied(cls, step_name: str, **kwargs) -> RunResult:
        return cls(step_name=step_name, status=StepStatus.ALREADY_SATISFIED, **kwargs)

    @classmethod
    def applied(cls, step_name: str, **kwargs) -> RunResult:
        return cls(step_name=step_name, status=StepStatus.APPLIED, **kwargs)

    @classmethod
    def failure(
        cls,
        step_name: str,
        error: str,
        error_type: str = "ApplyError",
        **kwargs,
    ) -> RunResult:
        return cls(
            step_name=step_name,
            status=StepStatus.FAILED,
            error=error,
            error_type=error_type,
            **kwargs,
        )

    @classmethod
    def skip(cls, step_name: str, note: str, **kwargs) -> RunResult:
        return cls(step_name=step_name, status=StepStatus.SKIPPED, note=note, **kwargs)
