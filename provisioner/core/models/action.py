"""
Action and Receipt models — the contract between steps and adapters.

A declarative step's apply is a list of Actions. Each Action is
dispatched through the adapter registry and comes back as a Receipt.
Adapters report failure in the Receipt; they do not raise.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """One side-effecting operation requested by a step."""

    id: str                         # "<step>:<index>:<kind>"
    adapter: str                    # shell, filesystem, packages
    params: dict[str, Any] = Field(default_factory=dict)
    for_step: str | None = None


class Receipt(BaseModel):
    """What an adapter did with an Action."""

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    changed: bool = False           # False when the target was already in place

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
