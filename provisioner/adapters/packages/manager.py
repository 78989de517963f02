"""
Package manager adapter — install packages through the system or
language package managers (apt, dnf, brew, cargo, npm, flatpak, snap).

Only the packages that are not installed yet are passed to the
installer, so a re-run with everything present changes nothing.
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.models.catalog import PACKAGE_MANAGERS
from provisioner.core.services.detection import is_installed
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

# manager → (install argv prefix, needs root)
INSTALL_COMMANDS: dict[str, tuple[list[str], bool]] = {
    "apt":     (["apt-get", "install", "-y"], True),
    "dnf":     (["dnf", "install", "-y"], True),
    "brew":    (["brew", "install"], False),
    "cargo":   (["cargo", "install"], False),
    "npm":     (["npm", "install", "-g"], False),
    "flatpak": (["flatpak", "install", "-y", "flathub"], False),
    "snap":    (["snap", "install"], True),
}

# Binary that must be on PATH for the manager to be usable
MANAGER_BINARIES = {
    "apt": "apt-get",
    "dnf": "dnf",
    "brew": "brew",
    "cargo": "cargo",
    "npm": "npm",
    "flatpak": "flatpak",
    "snap": "snap",
}


def install_argv(manager: str, names: list[str]) -> tuple[list[str], bool]:
    prefix, needs_sudo = INSTALL_COMMANDS[manager]
    return [*prefix, *names], needs_sudo


def _installed(package: str, manager: str) -> bool:
    try:
        return is_installed(package, manager)
    except RuntimeError as e:
        # the installer is a no-op for packages already present
        logger.warning("%s; installing anyway", e)
        return False


class PackageManagerAdapter(Adapter):
    """Install a list of packages with one package manager.

    Action params:
        manager (str): One of apt, dnf, brew, cargo, npm, flatpak, snap.
        names (list[str]): Package names in the manager's naming.
    """

    @property
    def name(self) -> str:
        return "packages"

    def is_available(self) -> bool:
        return any(shutil.which(b) for b in MANAGER_BINARIES.values())

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        manager = context.param("manager", "")
        if manager not in PACKAGE_MANAGERS:
            return False, f"Unknown package manager '{manager}'. Valid: {', '.join(PACKAGE_MANAGERS)}"
        names = context.param("names") or []
        if not names:
            return False, "Missing required param: 'names'"
        if shutil.which(MANAGER_BINARIES[manager]) is None:
            return False, f"Package manager '{manager}' is not available on this machine"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        manager = context.param("manager")
        names = list(context.param("names"))

        missing = [n for n in names if not _installed(n, manager)]
        if not missing:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=f"Already installed: {', '.join(names)}",
                changed=False,
                metadata={"manager": manager, "installed": []},
            )

        argv, needs_sudo = install_argv(manager, missing)
        logger.info("[%s] %s install %s", context.step_name or "-", manager, " ".join(missing))
        result = run_command(argv, needs_sudo=needs_sudo, timeout=context.timeout)

        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result.get("stdout", "").strip(),
                changed=True,
                metadata={"manager": manager, "installed": missing},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result["error"],
            metadata={"manager": manager, "attempted": missing},
        )
