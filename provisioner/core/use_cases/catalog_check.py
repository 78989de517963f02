"""
Catalog check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import load_catalog, resolve_catalog_path
from provisioner.core.config.step_builder import build_step, to_action
from provisioner.core.engine.registry import StepRegistry
from provisioner.core.errors import ConfigError, DuplicateNameError


@dataclass
class CatalogCheckResult:
    """Result of catalog validation."""

    valid: bool = False
    catalog_path: Path | None = None
    step_count: int = 0
    group_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    adapters: dict[str, bool] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return 0 if self.valid else 2

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "catalog_path": str(self.catalog_path) if self.catalog_path else None,
            "step_count": self.step_count,
            "group_count": self.group_count,
            "errors": self.errors,
            "warnings": self.warnings,
            "adapters": self.adapters,
        }


def check_catalog(catalog_path: Path | None = None) -> CatalogCheckResult:
    """Validate the catalog: schema, duplicate names, dependencies, cycles."""
    result = CatalogCheckResult()

    try:
        result.catalog_path = resolve_catalog_path(catalog_path)
        catalog = load_catalog(result.catalog_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.step_count = len(catalog.steps)
    result.group_count = len(catalog.group_names)

    # Steps are built but never run here: an adapter-less registry is enough
    adapters = AdapterRegistry()
    registry = StepRegistry()
    for definition in catalog.steps:
        try:
            registry.register(build_step(definition, catalog.settings, adapters))
        except DuplicateNameError as e:
            result.errors.append(str(e))

    result.errors.extend(registry.validate())

    step_names = set(registry.names())
    for group in catalog.group_names:
        if group in step_names:
            result.warnings.append(
                f"Group '{group}' has the same name as a step; selecting it picks the step"
            )
    for definition in catalog.steps:
        if not definition.undo_hint:
            result.warnings.append(f"Step '{definition.name}' has no undo_hint")
        if definition.force_apply:
            result.warnings.append(f"Step '{definition.name}' re-applies on every run (force_apply)")

    _check_adapters(catalog, result)

    result.valid = not result.errors
    return result


def _check_adapters(catalog, result: CatalogCheckResult) -> None:
    """Warn about steps whose operations need a tool this machine lacks."""
    status = default_registry().adapter_status()
    result.adapters = {name: info["available"] for name, info in status.items()}

    users: dict[str, list[str]] = {}
    for definition in catalog.steps:
        for i, spec in enumerate(definition.apply):
            adapter = to_action(definition.name, i, spec, catalog.settings).adapter
            steps = users.setdefault(adapter, [])
            if definition.name not in steps:
                steps.append(definition.name)

    for adapter, steps in users.items():
        if not result.adapters.get(adapter, False):
            result.warnings.append(
                f"Adapter '{adapter}' is not available on this machine (used by: {', '.join(steps)})"
            )
