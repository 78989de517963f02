"""
Status use case — detect-only report of which steps are in place.

Never applies anything and never resolves dependencies: each selected
step is asked about itself only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.step_builder import load_step_registry
from provisioner.core.engine.executor import Engine
from provisioner.core.engine.selection import expand_selection
from provisioner.core.errors import PlanError
from provisioner.core.models.step import DetectState


@dataclass
class StepState:
    name: str
    state: DetectState
    description: str = ""
    groups: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "description": self.description,
            "groups": list(self.groups),
        }


@dataclass
class StatusResult:
    """Detect-only snapshot of the selected steps."""

    steps: list[StepState] = field(default_factory=list)
    error: str | None = None
    error_type: str | None = None

    @property
    def counts(self) -> dict[str, int]:
        counts = {state.value: 0 for state in DetectState}
        for s in self.steps:
            counts[s.state.value] += 1
        return counts

    @property
    def all_satisfied(self) -> bool:
        return all(s.state == DetectState.SATISFIED for s in self.steps)

    @property
    def exit_code(self) -> int:
        if self.error:
            return 2
        return 0 if self.all_satisfied else 1

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "error_type": self.error_type, "exit_code": self.exit_code}
        return {
            "steps": [s.to_dict() for s in self.steps],
            "counts": self.counts,
            "exit_code": self.exit_code,
        }

    def render(self, fmt: str = "text") -> str:
        """Plain-text table or JSON, for ``status --report``."""
        if fmt == "json":
            return json.dumps(self.to_dict(), indent=2) + "\n"
        if fmt != "text":
            raise ValueError(f"Unknown report format '{fmt}'")
        width = max((len(s.name) for s in self.steps), default=4)
        lines = [f"{s.name:<{width}}  {s.state.value}" for s in self.steps]
        counts = self.counts
        lines.append(
            f"{counts['satisfied']} satisfied, {counts['unsatisfied']} unsatisfied, "
            f"{counts['unknown']} unknown"
        )
        return "\n".join(lines) + "\n"


def get_status(
    selectors: list[str] | None = None,
    *,
    catalog_path: Path | None = None,
    adapters: AdapterRegistry | None = None,
) -> StatusResult:
    """Run detect for the selected steps (all steps when none selected)."""
    result = StatusResult()
    try:
        _, registry = load_step_registry(catalog_path, adapters=adapters)
        names = expand_selection(registry, selectors or (), select_all=not selectors)
    except PlanError as e:
        result.error = str(e)
        result.error_type = type(e).__name__
        return result

    engine = Engine(registry)
    for name, state in engine.check(names).items():
        step = registry.get(name)
        result.steps.append(StepState(name, state, step.description, step.groups))
    return result
