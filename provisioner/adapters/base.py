"""
Adapter base — how steps reach the outside world.

Declarative steps never shell out or touch files directly: every
apply operation is an Action dispatched to an adapter, which performs
the side effect and answers with a Receipt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to carry out one action."""

    action: Action
    step_name: str = ""
    timeout: int = 900
    params: dict[str, Any] = Field(default_factory=dict)

    def param(self, key: str, default: Any = None) -> Any:
        return self.action.params.get(key, default)


class Adapter(ABC):
    """Abstract base class for all adapters.

    ``execute`` must not raise: failures are reported in the Receipt
    with status ``failed``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (``shell``, ``filesystem``, ``packages``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool exists on this machine. Never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the action's params before executing.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action and return a receipt."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
