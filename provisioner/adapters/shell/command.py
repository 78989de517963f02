"""
Shell command adapter — run installer commands through ``sh -c``.

This covers everything the catalog expresses as a shell line:
``curl ... | sh`` installers, ``git config --global``, ``chsh``.
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.profile_edit import expand
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute a shell command and capture its output.

    Action params:
        command (str): The command line.
        sudo (bool): Run through sudo (default: False).
        cwd (str): Working directory, ``~`` expanded (default: current).
        env (dict): Extra environment variables; ``$VARS`` in values are expanded.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.param("command", "")
        if not isinstance(command, str) or not command.strip():
            return False, "Missing required param: 'command'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.param("command")
        cwd = context.param("cwd")
        logger.info("[%s] $ %s", context.step_name or "-", command)

        result = run_command(
            command,
            shell=True,
            needs_sudo=bool(context.param("sudo", False)),
            timeout=context.timeout,
            env_overrides=context.param("env"),
            cwd=str(expand(cwd)) if cwd else None,
        )

        metadata = {"command": command, "return_code": result.get("returncode")}
        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result.get("stdout", "").strip(),
                changed=True,
                metadata={**metadata, "stderr": result.get("stderr", "").strip()},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result["error"],
            metadata={**metadata, "stdout": result.get("stdout", "").strip()},
        )
