"""
Domain models for the provisioner.

    from provisioner.core.models import Step, DetectState, RunResult, StepStatus
"""

from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.catalog import (
    ActionSpec,
    Catalog,
    CatalogSettings,
    ProbeSpec,
    StepDefinition,
)
from provisioner.core.models.result import RunResult, StepStatus
from provisioner.core.models.step import DetectState, Step

__all__ = [
    "Action",
    "ActionSpec",
    "Catalog",
    "CatalogSettings",
    "DetectState",
    "ProbeSpec",
    "Receipt",
    "RunResult",
    "Step",
    "StepDefinition",
    "StepStatus",
]
