"""
List use case — what the catalog offers, without touching the machine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.loader import load_catalog
from provisioner.core.errors import ConfigError
from provisioner.core.models.catalog import StepDefinition


@dataclass
class ListResult:
    steps: list[StepDefinition] = field(default_factory=list)
    groups: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return 2 if self.error else 0

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "steps": [
                {
                    "name": s.name,
                    "description": s.description,
                    "groups": s.groups,
                    "depends_on": s.depends_on,
                    "force_apply": s.force_apply,
                }
                for s in self.steps
            ],
            "groups": self.groups,
        }


def list_steps(catalog_path: Path | None = None, group: str | None = None) -> ListResult:
    """Steps in catalog order, optionally only those tagged ``group``."""
    result = ListResult()
    try:
        catalog = load_catalog(catalog_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if group is not None and group not in catalog.group_names:
        result.error = f"Unknown group '{group}'. Known: {', '.join(catalog.group_names) or '(none)'}"
        return result

    result.steps = [s for s in catalog.steps if group is None or group in s.groups]
    for tag in catalog.group_names:
        result.groups[tag] = [s.name for s in catalog.steps if tag in s.groups]
    return result
