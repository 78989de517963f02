"""Provisioning engine — registry, resolver, executor, reporter."""

from provisioner.core.engine.cancellation import CancelToken, cancel_on_signals
from provisioner.core.engine.executor import Engine, RunOptions
from provisioner.core.engine.registry import StepRegistry
from provisioner.core.engine.reporter import RunSummary, render, summarize, write_report
from provisioner.core.engine.resolver import RunPlan, resolve_plan
from provisioner.core.engine.selection import expand_selection

__all__ = [
    "CancelToken",
    "Engine",
    "RunOptions",
    "RunPlan",
    "RunSummary",
    "StepRegistry",
    "cancel_on_signals",
    "expand_selection",
    "render",
    "resolve_plan",
    "summarize",
    "write_report",
]
