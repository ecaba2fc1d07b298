"""Manual execution adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot

from .dispatch_outcomes import DispatchReceipt

if TYPE_CHECKING:
    from tms_orchestrator.test_runs.run_entities import TestRun

logger = logging.getLogger(__name__)


class ManualExecutionAdapter:  # pylint: disable=too-few-public-methods
    """Leave the run for a human tester to confirm through a completion signal."""

    async def dispatch(self, run: TestRun, target: ExecutionTargetSnapshot) -> DispatchReceipt:
        logger.info("test run %s awaits manual confirmation on %s", run.id, target.name)
        return DispatchReceipt.awaiting_external_results()
