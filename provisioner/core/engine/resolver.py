"""
Dependency resolver — requested steps to an ordered RunPlan.

Computes the transitive closure of the requested steps' dependencies
and orders it with a depth-first topological sort. Independent steps
are visited in registration order so the same request always yields
the same plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from provisioner.core.engine.registry import StepRegistry
from provisioner.core.errors import CyclicDependencyError, PlanError, UnknownStepError

logger = logging.getLogger(__name__)

_IN_PROGRESS = 1
_DONE = 2


@dataclass(frozen=True)
class RunPlan:
    """Step names in execution order; dependencies always come first."""

    steps: tuple[str, ...]
    requested: tuple[str, ...] = ()
    closure: tuple[str, ...] = field(default=())   # pulled in as dependencies only

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def index(self, name: str) -> int:
        return self.steps.index(name)

    def to_dict(self) -> dict:
        return {
            "steps": list(self.steps),
            "requested": list(self.requested),
            "closure": list(self.closure),
        }


def _topo_order(registry: StepRegistry, roots: Iterable[str]) -> list[str]:
    """Depth-first post-order walk from ``roots``.

    Raises:
        UnknownStepError: A root or dependency is not registered.
        CyclicDependencyError: A step is revisited while still on the path.
    """
    marks: dict[str, int] = {}
    path: list[str] = []
    order: list[str] = []

    def visit(name: str, required_by: str | None) -> None:
        if not registry.has(name):
            raise UnknownStepError(name, required_by=required_by)

        mark = marks.get(name)
        if mark == _DONE:
            return
        if mark == _IN_PROGRESS:
            start = path.index(name)
            raise CyclicDependencyError(path[start:] + [name])

        marks[name] = _IN_PROGRESS
        path.append(name)

        step = registry.get(name)
        for dep in step.dependencies:
            if not registry.has(dep):
                raise UnknownStepError(dep, required_by=name)
        for dep in sorted(step.dependencies, key=registry.position):
            visit(dep, name)

        path.pop()
        marks[name] = _DONE
        order.append(name)

    for root in roots:
        visit(root, None)

    return order


def resolve_plan(registry: StepRegistry, requested: Iterable[str]) -> RunPlan:
    """Build the execution plan for a non-empty set of requested steps."""
    wanted = list(dict.fromkeys(requested))
    if not wanted:
        raise PlanError("No steps requested")

    for name in wanted:
        if not registry.has(name):
            raise UnknownStepError(name)

    roots = sorted(wanted, key=registry.position)
    order = _topo_order(registry, roots)

    closure = tuple(name for name in order if name not in wanted)
    plan = RunPlan(steps=tuple(order), requested=tuple(wanted), closure=closure)
    logger.info(
        "Resolved plan: %d step(s) (%d pulled in as dependencies)",
        len(plan), len(closure),
    )
    logger.debug("Plan order: %s", " -> ".join(plan.steps))
    return plan


def find_cycle(registry: StepRegistry) -> list[str] | None:
    """Return one dependency cycle in the registry, or None."""
    try:
        _topo_order(registry, registry.names())
    except CyclicDependencyError as e:
        return e.cycle
    return None
