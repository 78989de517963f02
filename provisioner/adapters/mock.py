"""
Recording adapter for mock-mode registries and tests.

Installed with ``AdapterRegistry.set_mock_mode``, it stands in for the
shell, filesystem and package adapters alike: each operation a step
would perform is logged and answered with a successful receipt, so a
catalog can be walked end to end without touching the workstation.
"""

from __future__ import annotations

import logging

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


class MockAdapter(Adapter):
    """Pretends to apply every operation it is handed.

    Tests script individual outcomes by action id
    (``"starship:0:shell"``) with ``set_response`` or ``set_failure``;
    anything unscripted reports ``changed=True``.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._scripted: dict[str, Receipt] = {}
        self._calls: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """Contexts in dispatch order, for asserting what a step did."""
        return self._calls

    @property
    def call_count(self) -> int:
        return len(self._calls)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._scripted[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        self.set_response(action_id, Receipt.failure(adapter=self._name, action_id=action_id, error=error))

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._calls.append(context)
        action = context.action
        logger.info("[%s] (mock) %s %s", context.step_name or "-", action.adapter, action.params)
        scripted = self._scripted.get(action.id)
        if scripted is not None:
            return scripted
        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=self._default_output,
            changed=True,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self._calls.clear()
        self._scripted.clear()
