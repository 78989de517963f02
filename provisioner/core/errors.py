"""
Error taxonomy for the provisioning engine.

Plan-construction errors (``PlanError`` and subclasses) are raised
before any step is applied and are always fatal to the invocation.
Apply errors are caught at the step boundary and recorded in the
step's RunResult; they never escape ``Engine.run()``.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for every error raised by the provisioner."""


# ── Plan construction (fatal, exit code 2) ──────────────────────────


class PlanError(ProvisionError):
    """A plan could not be built. Nothing has been applied."""


class UnknownStepError(PlanError):
    """A step or group name is not in the registry."""

    def __init__(self, name: str, *, required_by: str | None = None):
        self.name = name
        self.required_by = required_by
        if required_by:
            msg = f"Unknown step '{name}' (required by '{required_by}')"
        else:
            msg = f"Unknown step or group '{name}'"
        super().__init__(msg)


class DuplicateNameError(PlanError):
    """A step with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Step '{name}' is already registered")


class CyclicDependencyError(PlanError):
    """The dependency relation contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__("Dependency cycle detected: " + " -> ".join(self.cycle))


class ConfigError(PlanError):
    """Raised when the step catalog is invalid or missing."""


# ── Per-step errors (recorded, not fatal) ───────────────────────────


class ApplyError(ProvisionError):
    """A step's apply raised or reported failure."""

    def __init__(self, message: str, *, step_name: str | None = None):
        self.step_name = step_name
        super().__init__(message)


class DetectConfirmationError(ApplyError):
    """Apply returned normally but detect still does not report satisfied."""

    def __init__(self, step_name: str, observed: str):
        self.observed = observed
        super().__init__(
            f"apply succeeded but detect did not confirm (detect={observed})",
            step_name=step_name,
        )


class SkippedDueToDependencyError(ProvisionError):
    """Informational: a step was not attempted because a dependency failed.

    Never raised out of the engine; its message becomes the skip note.
    """

    def __init__(self, step_name: str, dependency: str):
        self.step_name = step_name
        self.dependency = dependency
        super().__init__(f"dependency failed: {dependency}")


# ── Credential backup ───────────────────────────────────────────────


class BackupError(ProvisionError):
    """A credential backup or restore could not be completed."""
