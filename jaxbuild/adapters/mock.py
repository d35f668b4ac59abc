"""
Mock adapter — stands in for every external tool.

Used by ``jaxbuild build --mock`` and by the tests: records every
action it receives and succeeds unless told to fail a given action ID.
"""

from __future__ import annotations

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.core.models.action import Receipt


class MockAdapter(Adapter):
    """Mock adapter for tests and --mock runs.

    Succeeds for every action except those given to ``set_failure``.
    ``available=False`` makes it look like a tool missing from the host.
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
        self._failures: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def executed_ids(self) -> list[str]:
        """Action IDs in execution order."""
        return [ctx.action.id for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._failures[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
            metadata={"return_code": 1},
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.action.id in self._failures:
            return self._failures[context.action.id]

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )
