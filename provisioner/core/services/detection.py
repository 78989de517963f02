"""
Detection probes — read-only checks that tell whether a step's
postcondition already holds.

Probes never change the machine. A step is satisfied when all of its
probes pass; a probe that cannot be evaluated raises, and the engine
turns that into ``unknown``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess

from provisioner.core.models.catalog import ProbeSpec
from provisioner.core.services.profile_edit import expand, has_line
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 30


def is_installed(package: str, manager: str) -> bool:
    """Check whether a single package is installed.

    Uses the appropriate checker for the given package manager:
      apt     → dpkg-query -W -f='${Status}' PKG
      dnf     → rpm -q PKG
      brew    → brew ls --versions PKG
      cargo   → cargo install --list
      npm     → npm ls -g --depth=0 PKG
      flatpak → flatpak info PKG
      snap    → snap list PKG

    Returns:
        True if installed, False if not.

    Raises:
        RuntimeError: The checker could not run, so the answer is unknown.
    """
    try:
        if manager == "apt":
            r = subprocess.run(
                ["dpkg-query", "-W", "-f=${Status}", package],
                capture_output=True, text=True, timeout=10,
            )
            return "install ok installed" in r.stdout

        if manager == "dnf":
            r = subprocess.run(["rpm", "-q", package], capture_output=True, timeout=10)
            return r.returncode == 0

        if manager == "brew":
            r = subprocess.run(
                ["brew", "ls", "--versions", package],
                capture_output=True, timeout=30,  # brew is slow
            )
            return r.returncode == 0

        if manager == "cargo":
            r = subprocess.run(
                ["cargo", "install", "--list"],
                capture_output=True, text=True, timeout=10,
            )
            return any(line.startswith(f"{package} ") for line in r.stdout.splitlines())

        if manager == "npm":
            r = subprocess.run(
                ["npm", "ls", "-g", "--depth=0", package],
                capture_output=True, timeout=30,
            )
            return r.returncode == 0

        if manager == "flatpak":
            r = subprocess.run(["flatpak", "info", package], capture_output=True, timeout=10)
            return r.returncode == 0

        if manager == "snap":
            r = subprocess.run(["snap", "list", package], capture_output=True, timeout=10)
            return r.returncode == 0

    except FileNotFoundError as e:
        # Checker binary not on PATH (e.g. dpkg-query on Fedora)
        raise RuntimeError(f"Package checker for {manager} not found (checking {package})") from e
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(f"Timeout checking package {package} with {manager}") from e
    except OSError as e:
        raise RuntimeError(f"Cannot check package {package} with {manager}: {e}") from e

    raise ValueError(f"Unknown package manager '{manager}'")


def command_exists(name: str) -> bool:
    """Executable on PATH. ``~`` and ``$VARS`` are expanded for absolute paths."""
    if "/" in name:
        path = expand(name)
        return path.is_file() and bool(path.stat().st_mode & 0o111)
    return shutil.which(name) is not None


def evaluate_probe(probe: ProbeSpec) -> bool:
    """Evaluate one probe. Returns whether it holds."""
    kind = probe.kind
    if kind == "command":
        return command_exists(probe.command)
    if kind == "path":
        return expand(probe.path).exists()
    if kind == "file_contains":
        return has_line(probe.file_contains.path, "", marker=probe.file_contains.text)
    if kind == "shell":
        result = run_command(probe.shell, shell=True, timeout=PROBE_TIMEOUT)
        if result.get("returncode") is None and not result["ok"]:
            # timed out or could not spawn: the answer is unknown, not "no"
            raise RuntimeError(result["error"])
        return result["ok"]
    if kind == "package":
        return is_installed(probe.package.name, probe.package.manager)
    raise ValueError(f"Unknown probe kind: {kind}")


def evaluate_probes(probes: list[ProbeSpec], step_name: str = "") -> bool:
    """All probes must hold. Stops at the first one that does not."""
    for probe in probes:
        if not evaluate_probe(probe):
            logger.debug("[%s] not satisfied: %s", step_name or "-", describe_probe(probe))
            return False
    return True


def describe_probe(probe: ProbeSpec) -> str:
    kind = probe.kind
    if kind == "file_contains":
        return f"file_contains {probe.file_contains.path}: {probe.file_contains.text!r}"
    if kind == "package":
        return f"package {probe.package.manager}:{probe.package.name}"
    return f"{kind} {getattr(probe, kind)}"
