"""
Filesystem adapter — profile lines, symlinks, directories, files.

Each operation checks the target first and reports ``changed=False``
when it was already in place, so re-running a step is harmless.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.profile_edit import atomic_write, ensure_line, expand

logger = logging.getLogger(__name__)

OPERATIONS = ("ensure_line", "symlink", "mkdir", "write")

_REQUIRED = {
    "ensure_line": ("path", "line"),
    "symlink": ("source", "target"),
    "mkdir": ("path",),
    "write": ("path", "content"),
}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of 'ensure_line', 'symlink', 'mkdir', 'write'.
        path (str): Target path; ``~`` and ``$VARS`` are expanded.
        line (str), marker (str): For 'ensure_line'.
        source (str), target (str): For 'symlink'.
        content (str): For 'write'.
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.param("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(OPERATIONS)}"
        for key in _REQUIRED[operation]:
            if context.param(key) in (None, ""):
                return False, f"Missing required param: '{key}' for {operation} operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.param("operation")
        handler = getattr(self, f"_{operation}")
        try:
            return handler(context)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{operation} failed: {e}",
            )

    def _ok(self, context: ExecutionContext, output: str, changed: bool, **meta) -> Receipt:
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output,
            changed=changed,
            metadata=meta,
        )

    def _ensure_line(self, context: ExecutionContext) -> Receipt:
        path = expand(context.param("path"))
        changed = ensure_line(path, context.param("line"), context.param("marker"))
        output = f"Appended to {path}" if changed else f"Already present in {path}"
        return self._ok(context, output, changed, path=str(path))

    def _symlink(self, context: ExecutionContext) -> Receipt:
        source = expand(context.param("source"))
        target = expand(context.param("target"))

        if target.is_symlink():
            if Path(target.readlink()) == source:
                return self._ok(context, f"{target} -> {source}", False, target=str(target))
            target.unlink()
        elif target.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{target} exists and is not a symlink",
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(source)
        logger.info("Linked %s -> %s", target, source)
        return self._ok(context, f"{target} -> {source}", True, target=str(target))

    def _mkdir(self, context: ExecutionContext) -> Receipt:
        path = expand(context.param("path"))
        if path.is_dir():
            return self._ok(context, f"Directory exists: {path}", False, path=str(path))
        path.mkdir(parents=True, exist_ok=True)
        return self._ok(context, f"Created directory: {path}", True, path=str(path))

    def _write(self, context: ExecutionContext) -> Receipt:
        path = expand(context.param("path"))
        content = context.param("content")
        if path.is_file() and path.read_text(encoding="utf-8", errors="replace") == content:
            return self._ok(context, f"Unchanged: {path}", False, path=str(path))
        atomic_write(path, content)
        return self._ok(
            context,
            f"Wrote {len(content)} bytes to {path}",
            True,
            path=str(path),
            bytes=len(content),
        )
