"""
Step model — the unit of provisioning work.

A step pairs a side-effect-free ``detect`` predicate with a
side-effecting ``apply`` action. Steps are registered once and never
mutated; only their per-run results vary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable


class DetectState(StrEnum):
    """Answer to "is this step already done on this machine?"."""

    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> DetectState:
        """Normalize what a detect callable returned.

        Booleans map to satisfied/unsatisfied; anything unrecognized
        is unknown.
        """
        if isinstance(value, DetectState):
            return value
        if isinstance(value, bool):
            return cls.SATISFIED if value else cls.UNSATISFIED
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


DetectFn = Callable[[], Any]
ApplyFn = Callable[[], Any]


@dataclass(frozen=True)
class Step:
    """A named detect/apply pair with dependencies and group tags."""

    name: str
    detect: DetectFn
    apply: ApplyFn
    dependencies: tuple[str, ...] = ()
    groups: tuple[str, ...] = ()
    description: str = ""
    undo_hint: str = ""
    force_apply: bool = False   # re-apply even when detect is satisfied
    version_command: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Step name must be a non-empty string")
        # Accept lists from callers; store tuples so the step stays hashable.
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "groups", tuple(self.groups))

    def in_group(self, tag: str) -> bool:
        return tag in self.groups
