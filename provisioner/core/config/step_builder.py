"""
Step builder — turn catalog definitions into executable steps.

``detect`` becomes a closure over the step's probes; ``apply`` becomes
a closure that dispatches each declared operation to the adapter
registry in order and stops at the first failed receipt.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import load_catalog
from provisioner.core.engine.registry import StepRegistry
from provisioner.core.errors import ApplyError
from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.catalog import ActionSpec, Catalog, CatalogSettings, StepDefinition
from provisioner.core.models.step import Step
from provisioner.core.services.detection import evaluate_probes

logger = logging.getLogger(__name__)


def to_action(step_name: str, index: int, spec: ActionSpec, settings: CatalogSettings) -> Action:
    """Map one declared operation to an adapter Action."""
    kind = spec.kind
    action_id = f"{step_name}:{index}:{kind}"

    if kind == "shell":
        params: dict[str, Any] = {"command": spec.shell}
        if spec.sudo:
            params["sudo"] = True
        if spec.cwd is not None:
            params["cwd"] = spec.cwd
        if spec.env:
            params["env"] = dict(spec.env)
        return Action(id=action_id, adapter="shell", params=params, for_step=step_name)
    if kind == "packages":
        return Action(
            id=action_id,
            adapter="packages",
            params={"manager": spec.packages.manager, "names": list(spec.packages.names)},
            for_step=step_name,
        )
    if kind == "ensure_line":
        params = {
            "operation": "ensure_line",
            "path": spec.ensure_line.path or settings.shell_profile,
            "line": spec.ensure_line.line,
            "marker": spec.ensure_line.marker,
        }
    elif kind == "symlink":
        params = {"operation": "symlink", "source": spec.symlink.source, "target": spec.symlink.target}
    elif kind == "mkdir":
        params = {"operation": "mkdir", "path": spec.mkdir.path}
    else:
        params = {"operation": "write", "path": spec.write.path, "content": spec.write.content}
    return Action(id=action_id, adapter="filesystem", params=params, for_step=step_name)


def _make_apply(
    definition: StepDefinition,
    settings: CatalogSettings,
    adapters: AdapterRegistry,
) -> Callable[[], list[Receipt]]:
    actions = [
        (to_action(definition.name, i, spec, settings), spec.timeout or settings.command_timeout)
        for i, spec in enumerate(definition.apply)
    ]

    def apply() -> list[Receipt]:
        receipts: list[Receipt] = []
        for action, timeout in actions:
            receipt = adapters.execute_action(action, timeout=timeout)
            receipts.append(receipt)
            if receipt.failed:
                raise ApplyError(
                    f"{action.adapter} operation {action.id} failed: {receipt.error}",
                    step_name=definition.name,
                )
            logger.debug("[%s] %s ok (changed=%s)", definition.name, action.id, receipt.changed)
        return receipts

    return apply


def build_step(
    definition: StepDefinition,
    settings: CatalogSettings,
    adapters: AdapterRegistry,
) -> Step:
    probes = list(definition.detect)

    def detect() -> bool:
        return evaluate_probes(probes, definition.name)

    return Step(
        name=definition.name,
        detect=detect,
        apply=_make_apply(definition, settings, adapters),
        dependencies=tuple(definition.depends_on),
        groups=tuple(definition.groups),
        description=definition.description,
        undo_hint=definition.undo_hint,
        force_apply=definition.force_apply,
        version_command=definition.version,
        metadata={"definition": definition},
    )


def build_registry(catalog: Catalog, adapters: AdapterRegistry) -> StepRegistry:
    """Register every catalog step, in declaration order.

    Raises:
        DuplicateNameError: Two steps share a name.
    """
    registry = StepRegistry()
    for definition in catalog.steps:
        registry.register(build_step(definition, catalog.settings, adapters))
    logger.debug("Built registry with %d steps", len(registry))
    return registry


def load_step_registry(
    catalog_path: Path | None = None,
    *,
    adapters: AdapterRegistry | None = None,
    mock_mode: bool = False,
) -> tuple[Catalog, StepRegistry]:
    """Load the catalog and build its registry in one go.

    Raises:
        ConfigError: The catalog is missing or invalid.
        DuplicateNameError: Two steps share a name.
    """
    catalog = load_catalog(catalog_path)
    if adapters is None:
        adapters = default_registry(mock_mode=mock_mode)
    return catalog, build_registry(catalog, adapters)
