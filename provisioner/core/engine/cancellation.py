"""
Cancellation — an external stop signal for a running plan.

The engine polls the token between steps. A step whose apply is
already in flight runs to completion; everything after it is skipped.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "run cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.warning("Cancellation requested: %s", reason)


@contextmanager
def cancel_on_signals(
    token: CancelToken,
    signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancelToken]:
    """Route SIGINT/SIGTERM to ``token`` for the duration of the block.

    Only the main thread may install signal handlers; elsewhere the
    block runs without them.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, _frame) -> None:
        token.cancel(f"run cancelled ({signal.Signals(signum).name})")

    previous = {sig: signal.signal(sig, _handler) for sig in signals}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
