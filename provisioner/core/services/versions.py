"""
Installed version lookup — run each step's version command.

Read-only: nothing is installed or changed. A step without a version
command, or whose command fails, reports "Not available".
"""

from __future__ import annotations

import logging

from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "Not available"
VERSION_TIMEOUT = 10


def get_version(command: str) -> str | None:
    """First line of ``command``'s output, or None if it failed.

    Some tools write the version to stderr, so both streams are read.
    """
    if not command:
        return None
    result = run_command(command, shell=True, timeout=VERSION_TIMEOUT)
    if not result["ok"]:
        logger.debug("Version command failed: %s (%s)", command, result.get("error"))
        return None
    output = (result.get("stdout") or "") + (result.get("stderr") or "")
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return None

