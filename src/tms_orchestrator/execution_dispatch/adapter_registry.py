"""Execution adapter contract and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

from tms_orchestrator.errors import DispatchError
from tms_orchestrator.execution_targets.target_snapshot import (
    ExecutionTargetSnapshot,
    ExecutionTargetType,
)

from .dispatch_outcomes import DispatchReceipt

if TYPE_CHECKING:
    from tms_orchestrator.test_runs.run_entities import TestRun


class ExecutionAdapter(Protocol):  # pylint: disable=too-few-public-methods
    """Hands one test run to the execution target it was resolved to."""

    async def dispatch(self, run: TestRun, target: ExecutionTargetSnapshot) -> DispatchReceipt: ...


class ExecutionAdapterRegistry:
    """Adapters keyed by the execution target type they serve."""

    def __init__(
        self, adapters: Mapping[ExecutionTargetType, ExecutionAdapter] | None = None
    ) -> None:
        self._adapters: dict[ExecutionTargetType, ExecutionAdapter] = dict(adapters or {})

    def register(self, target_type: ExecutionTargetType, adapter: ExecutionAdapter) -> None:
        self._adapters[target_type] = adapter

    def supports(self, target_type: ExecutionTargetType) -> bool:
        return target_type in self._adapters

    def adapter_for(self, target_type: ExecutionTargetType) -> ExecutionAdapter:
        """Return the adapter for `target_type` or raise DispatchError."""
        adapter = self._adapters.get(target_type)
        if adapter is None:
            registered = ", ".join(sorted(kind.value for kind in self._adapters)) or "none"
            raise DispatchError(
                f"No execution adapter configured for target type {target_type.value}. "
                f"Configured types: {registered}"
            )
        return adapter
