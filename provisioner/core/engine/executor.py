"""
Execution engine — the central provisioning loop.

Walks a resolved plan strictly in order, one step at a time:

    dependency failed? → skip
    detect satisfied?  → already satisfied
    otherwise          → apply → detect again to confirm

Apply errors are caught at the step boundary and recorded; ``run()``
always completes and returns a summary. Steps are never run
concurrently: most of them mutate the same shell profile or package
database.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable

from provisioner.core.engine.cancellation import CancelToken
from provisioner.core.engine.registry import StepRegistry
from provisioner.core.engine.reporter import RunSummary, summarize
from provisioner.core.engine.resolver import RunPlan
from provisioner.core.errors import (
    ApplyError,
    DetectConfirmationError,
    SkippedDueToDependencyError,
)
from provisioner.core.models.result import RunResult, StepStatus
from provisioner.core.models.step import DetectState, Step

logger = logging.getLogger(__name__)

ResultCallback = Callable[[RunResult], None]

NOTE_HALTED = "halted after earlier failure"
NOTE_DRY_RUN = "dry-run: would apply"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def generate_operation_id() -> str:
    """Generate a unique run identifier."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


@dataclass
class RunOptions:
    """Knobs for one engine invocation."""

    continue_on_failure: bool = True
    dry_run: bool = False
    cancel: CancelToken | None = None
    operation_id: str = ""


class Engine:
    """Runs plans against a step registry."""

    def __init__(
        self,
        registry: StepRegistry,
        on_result: ResultCallback | None = None,
    ):
        self._registry = registry
        self._on_result = on_result

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    # ── Public API ──────────────────────────────────────────────

    def run(self, plan: RunPlan, options: RunOptions | None = None) -> RunSummary:
        """Execute ``plan`` and return the consolidated summary."""
        options = options or RunOptions()
        operation_id = options.operation_id or generate_operation_id()
        cancel = options.cancel

        results: dict[str, RunResult] = {}
        halted = False

        logger.info(
            "Starting %s%s: %d step(s)",
            operation_id,
            " (dry-run)" if options.dry_run else "",
            len(plan),
        )

        for name in plan:
            step = self._registry.get(name)

            if cancel is not None and cancel.cancelled:
                result = RunResult.skip(name, note=cancel.reason or "run cancelled")
            elif (blocker := self._failed_dependency(step, results)) is not None:
                result = RunResult.skip(
                    name, note=str(SkippedDueToDependencyError(name, blocker)),
                )
            elif halted:
                result = RunResult.skip(name, note=NOTE_HALTED)
            else:
                result = self._attempt(step, dry_run=options.dry_run)

            if result.status == StepStatus.FAILED and not options.continue_on_failure:
                halted = True

            results[name] = result
            self._record(result)

        return summarize(
            list(results.values()),
            operation_id=operation_id,
            dry_run=options.dry_run,
            cancelled=bool(cancel and cancel.cancelled),
        )

    def check(self, names: list[str]) -> dict[str, DetectState]:
        """Run only ``detect`` for ``names``. Never calls apply."""
        return {name: self.detect(self._registry.get(name)) for name in names}

    def detect(self, step: Step) -> DetectState:
        """Query a step's detect predicate; errors become UNKNOWN."""
        try:
            return DetectState.coerce(step.detect())
        except Exception as e:
            logger.warning("Detect for '%s' raised: %s", step.name, e)
            return DetectState.UNKNOWN

    # ── Internals ───────────────────────────────────────────────

    def _failed_dependency(
        self, step: Step, results: dict[str, RunResult],
    ) -> str | None:
        for dep in step.dependencies:
            prior = results.get(dep)
            if prior is not None and prior.blocks_dependents:
                return dep
        return None

    def _attempt(self, step: Step, *, dry_run: bool) -> RunResult:
        detect_started = _now_iso()
        t0 = time.monotonic()
        state = self.detect(step)

        if state == DetectState.SATISFIED and not step.force_apply:
            return RunResult.satisfied(
                step.name,
                started_at=detect_started,
                finished_at=_now_iso(),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

        if dry_run:
            note = NOTE_DRY_RUN if not step.force_apply else "dry-run: would re-apply"
            return RunResult.skip(
                step.name,
                note=f"{note} (detect={state})",
                blocking=False,
                started_at=detect_started,
                finished_at=_now_iso(),
            )

        logger.info("Applying %s (detect=%s)", step.name, state)
        apply_started = _now_iso()
        t0 = time.monotonic()

        try:
            outcome = step.apply()
            if outcome is False:
                raise ApplyError("apply reported failure", step_name=step.name)
            confirmed = self.detect(step)
            if confirmed != DetectState.SATISFIED:
                raise DetectConfirmationError(step.name, str(confirmed))
        except Exception as e:
            return RunResult.failure(
                step.name,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
                started_at=apply_started,
                finished_at=_now_iso(),
                duration_ms=int((time.monotonic() - t0) * 1000),
                undo_hint=step.undo_hint,
            )

        return RunResult.applied(
            step.name,
            started_at=apply_started,
            finished_at=_now_iso(),
            duration_ms=int((time.monotonic() - t0) * 1000),
            undo_hint=step.undo_hint,
        )

    def _record(self, result: RunResult) -> None:
        if result.failed:
            logger.error("✗ %s → failed: %s", result.step_name, result.error)
        elif result.skipped:
            logger.info("⊘ %s → skipped (%s)", result.step_name, result.note)
        else:
            logger.info("✓ %s → %s", result.step_name, result.status)

        if self._on_result is not None:
            self._on_result(result)
