"""
Subprocess runner — the one place provisioning commands are spawned.

Both apply (shell commands, package managers) and detect (shell and
package probes) go through ``run_command`` so logging, timeouts, and
privilege escalation behave the same everywhere.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

_TAIL = 2000


def _fmt_cmd(cmd: list[str] | str) -> str:
    if isinstance(cmd, str):
        return cmd
    return " ".join(shlex.quote(c) for c in cmd)


def _ignore_interrupts() -> None:
    # Children share the terminal's process group (sudo prompts there) and
    # would otherwise die on Ctrl-C. Stopping is the engine's job.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGTERM, signal.SIG_IGN)


def run_command(
    cmd: list[str] | str,
    *,
    shell: bool = False,
    needs_sudo: bool = False,
    timeout: int = 900,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Run a command and capture its output.

    ``needs_sudo`` prefixes ``sudo`` unless we already run as root.
    sudo reads the password from the controlling terminal, so an
    interactive session prompts for it as usual.

    The child ignores SIGINT and SIGTERM: a stop request cancels the run
    between steps, and the command already in flight runs to completion.

    Returns:
        ``{"ok": True, "stdout": ..., "stderr": ..., "returncode": 0, "elapsed_ms": N}``
        on success, ``{"ok": False, "error": ..., ...}`` on failure.
        Never raises.
    """
    if needs_sudo and os.geteuid() != 0:
        if shutil.which("sudo") is None:
            return {"ok": False, "error": "Command requires root but sudo is not available"}
        if shell:
            cmd = ["sudo", "sh", "-c", cmd] if isinstance(cmd, str) else ["sudo", *cmd]
            shell = False
        else:
            cmd = ["sudo", *cmd]

    env = os.environ.copy()
    if env_overrides:
        for key, value in env_overrides.items():
            env[key] = os.path.expandvars(value)

    logger.debug("CMD %s", _fmt_cmd(cmd))
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            shell=shell,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
            preexec_fn=_ignore_interrupts,
        )
    except subprocess.TimeoutExpired:
        return {"ok": False, "error": f"Command timed out ({timeout}s)", "returncode": None}
    except OSError as e:
        return {"ok": False, "error": f"Cannot execute {_fmt_cmd(cmd)}: {e}", "returncode": None}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout[-_TAIL:] if result.stdout else ""
    stderr = result.stderr[-_TAIL:] if result.stderr else ""

    if stdout:
        logger.debug("STDOUT %s", stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if result.returncode == 0:
        return {
            "ok": True,
            "stdout": stdout,
            "stderr": stderr,
            "returncode": 0,
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "error": stderr.strip() or f"Command exited with code {result.returncode}",
        "stdout": stdout,
        "stderr": stderr,
        "returncode": result.returncode,
        "elapsed_ms": elapsed_ms,
    }
