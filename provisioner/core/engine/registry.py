"""
Step registry — the static catalog of known steps.

Steps are registered once at startup and looked up by name. Iteration
order is registration order, which is what makes plans reproducible.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from provisioner.core.errors import DuplicateNameError, UnknownStepError
from provisioner.core.models.step import Step

logger = logging.getLogger(__name__)


class StepRegistry:
    """Holds every step definition, keyed by name."""

    def __init__(self, steps: Iterable[Step] = ()):
        self._steps: dict[str, Step] = {}
        self._positions: dict[str, int] = {}
        for step in steps:
            self.register(step)

    def register(self, step: Step) -> None:
        if step.name in self._steps:
            raise DuplicateNameError(step.name)
        self._positions[step.name] = len(self._steps)
        self._steps[step.name] = step
        logger.debug("Registered step: %s", step.name)

    def get(self, name: str) -> Step:
        try:
            return self._steps[name]
        except KeyError:
            raise UnknownStepError(name) from None

    def has(self, name: str) -> bool:
        return name in self._steps

    def has_group(self, tag: str) -> bool:
        return any(step.in_group(tag) for step in self._steps.values())

    def all_with_group(self, tag: str) -> list[str]:
        """Names of steps tagged with ``tag``, in registration order."""
        return [name for name, step in self._steps.items() if step.in_group(tag)]

    def names(self) -> list[str]:
        return list(self._steps)

    def groups(self) -> list[str]:
        seen: list[str] = []
        for step in self._steps.values():
            for tag in step.groups:
                if tag not in seen:
                    seen.append(tag)
        return seen

    def position(self, name: str) -> int:
        """Registration index, used to break ties deterministically."""
        try:
            return self._positions[name]
        except KeyError:
            raise UnknownStepError(name) from None

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def validate(self) -> list[str]:
        """Check the whole catalog: missing dependencies and cycles.

        Returns a list of error strings (empty = valid).
        """
        from provisioner.core.engine.resolver import find_cycle

        errors: list[str] = []
        for step in self._steps.values():
            for dep in step.dependencies:
                if dep not in self._steps:
                    errors.append(f"Step '{step.name}' depends on unknown step '{dep}'")
        if errors:
            return errors

        cycle = find_cycle(self)
        if cycle:
            errors.append("Dependency cycle detected: " + " -> ".join(cycle))
        return errors
