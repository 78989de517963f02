"""
Run use case — provision the selected steps.

This is the top-level orchestrator: it loads the catalog, expands the
selection, resolves dependencies, executes the plan, and appends the
outcome to the run log. The full vertical slice from user intent to a
logged run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.step_builder import load_step_registry
from provisioner.core.engine.cancellation import CancelToken, cancel_on_signals
from provisioner.core.engine.executor import Engine, ResultCallback, RunOptions, generate_operation_id
from provisioner.core.engine.reporter import RunSummary
from provisioner.core.engine.resolver import RunPlan, resolve_plan
from provisioner.core.engine.selection import expand_selection
from provisioner.core.errors import PlanError
from provisioner.core.persistence.run_log import (
    RunLogEntry,
    RunLogWriter,
    StepOutcome,
    resolve_run_log_path,
)

logger = logging.getLogger(__name__)


@dataclass
class RunCommandResult:
    """Result of a provisioning run."""

    summary: RunSummary | None = None
    plan: RunPlan | None = None
    selectors: list[str] = field(default_factory=list)
    run_log_path: Path | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 2
        return self.summary.exit_code if self.summary else 2

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
            result["exit_code"] = self.exit_code
            return result

        result["selectors"] = self.selectors
        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.summary:
            result["report"] = self.summary.to_dict()
        result["run_log"] = str(self.run_log_path) if self.run_log_path else None
        return result


def _log_entry(result: RunCommandResult) -> RunLogEntry:
    summary = result.summary
    assert summary is not None and result.plan is not None
    return RunLogEntry(
        operation_id=summary.operation_id,
        selectors=result.selectors,
        plan=list(result.plan.steps),
        dry_run=summary.dry_run,
        status=summary.status,
        counts=summary.counts,
        outcomes=[
            StepOutcome(
                step=r.step_name,
                status=r.status.value,
                error=r.error,
                note=r.note,
                duration_ms=r.duration_ms,
            )
            for r in summary.results
        ],
        context={"cancelled": summary.cancelled, "closure": list(result.plan.closure)},
    )


def run_steps(
    selectors: list[str] | None = None,
    *,
    select_all: bool = False,
    catalog_path: Path | None = None,
    dry_run: bool = False,
    continue_on_failure: bool | None = None,
    adapters: AdapterRegistry | None = None,
    cancel: CancelToken | None = None,
    on_result: ResultCallback | None = None,
    write_log: bool = True,
) -> RunCommandResult:
    """Provision the selected steps and their dependencies.

    Args:
        selectors: Step names and/or group tags.
        select_all: Run every step in the catalog.
        catalog_path: Optional explicit path to provision.yml.
        dry_run: Detect only; report what would be applied.
        continue_on_failure: Keep going after a failed step. None uses
            the catalog setting.
        adapters: Adapter registry override (tests).
        cancel: Token to stop the run between steps. SIGINT/SIGTERM
            also cancel it while the plan runs.
        on_result: Called with each step's result as soon as it is known.
        write_log: Append the outcome to the run log.

    Returns:
        RunCommandResult. Plan errors are reported in ``error``; the
        run itself never raises because a step failed.
    """
    selectors = list(selectors or [])
    result = RunCommandResult(selectors=selectors)

    if not selectors and not select_all:
        result.error = "No steps selected. Pass --select NAME or --all."
        result.error_type = "PlanError"
        return result

    try:
        catalog, registry = load_step_registry(catalog_path, adapters=adapters)
        requested = expand_selection(registry, selectors, select_all=select_all)
        result.plan = resolve_plan(registry, requested)
    except PlanError as e:
        result.error = str(e)
        result.error_type = type(e).__name__
        return result

    if continue_on_failure is None:
        continue_on_failure = catalog.settings.continue_on_failure

    token = cancel or CancelToken()
    options = RunOptions(
        continue_on_failure=continue_on_failure,
        dry_run=dry_run,
        cancel=token,
        operation_id=generate_operation_id(),
    )

    engine = Engine(registry, on_result=on_result)
    with cancel_on_signals(token):
        result.summary = engine.run(result.plan, options)

    if write_log:
        writer = RunLogWriter(resolve_run_log_path(catalog.settings.run_log))
        if writer.write(_log_entry(result)):
            result.run_log_path = writer.path

    logger.info(
        "Run %s finished: %s (exit %d)",
        result.summary.operation_id, result.summary.status, result.summary.exit_code,
    )
    return result
