"""
Profile editing — idempotent, locked, atomic line insertion.

Shell profiles (~/.zshrc, ~/.bashrc) and config files gain lines like
``export PATH="$HOME/.cargo/bin:$PATH"``. Two concurrent runs must not
duplicate a line or lose each other's edits, and a crash mid-write
must not truncate the file.
"""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

# Undecodable bytes survive a read-modify-write unchanged
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def expand(path: str | Path) -> Path:
    """Expand ``~`` and ``$VARS`` in a catalog path."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Exclusive advisory lock on ``<path>.lock``."""
    lock_path = path.with_name(path.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a") as lock_fh:
        fcntl.flock(lock_fh.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)


def atomic_write(path: Path, content: str) -> None:
    """Write ``content`` via a temp file in the same directory and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = path.stat().st_mode & 0o7777 if path.exists() else 0o644
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=_ENCODING, errors=_ERRORS) as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def has_line(path: str | Path, line: str, marker: str | None = None) -> bool:
    """Whether ``path`` already carries ``line`` (or any line containing ``marker``)."""
    target = expand(path)
    if not target.is_file():
        return False
    content = target.read_text(encoding=_ENCODING, errors=_ERRORS)
    return _contains(content, line, marker)


def _contains(content: str, line: str, marker: str | None) -> bool:
    if marker:
        return marker in content
    wanted = line.strip()
    return any(existing.strip() == wanted for existing in content.splitlines())


def ensure_line(path: str | Path, line: str, marker: str | None = None) -> bool:
    """Append ``line`` to ``path`` unless it is already there.

    The check and the write happen under the same lock, so concurrent
    callers never append the same line twice.

    Returns:
        True if the file changed, False if the line was already present.
    """
    target = expand(path)
    with file_lock(target):
        content = target.read_text(encoding=_ENCODING, errors=_ERRORS) if target.exists() else ""
        if _contains(content, line, marker):
            logger.debug("Line already present in %s", target)
            return False

        if content and not content.endswith("\n"):
            content += "\n"
        atomic_write(target, content + line.rstrip("\n") + "\n")

    logger.info("Added line to %s: %s", target, line.strip())
    return True
