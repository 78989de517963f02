"""
Versions use case — installed versions of the selected tools.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.step_builder import load_step_registry
from provisioner.core.engine.selection import expand_selection
from provisioner.core.errors import PlanError
from provisioner.core.services.versions import NOT_AVAILABLE, get_version


@dataclass
class VersionsResult:
    versions: dict[str, str | None] = field(default_factory=dict)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return 2 if self.error else 0

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {"versions": {name: v or NOT_AVAILABLE for name, v in self.versions.items()}}


def get_versions(
    selectors: list[str] | None = None,
    *,
    catalog_path: Path | None = None,
) -> VersionsResult:
    """Version line for every selected step that declares a version command."""
    result = VersionsResult()
    try:
        _, registry = load_step_registry(catalog_path)
        names = expand_selection(registry, selectors or (), select_all=not selectors)
    except PlanError as e:
        result.error = str(e)
        return result

    for name in names:
        step = registry.get(name)
        if step.version_command:
            result.versions[name] = get_version(step.version_command)
    return result
