"""Execution target resolution service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tms_orchestrator.errors import NotFoundError

from .target_snapshot import DEFAULT_MANUAL_TARGET, ExecutionTargetSnapshot

if TYPE_CHECKING:
    from tms_orchestrator.test_catalog.catalog_repositories import (
        TestCaseRepository,
        TestSuiteRepository,
    )

logger = logging.getLogger(__name__)


class ExecutionTargetResolver:
    """Choose the execution target snapshot a new test run should use.

    Priority, highest first: runtime override, the test case's own snapshot,
    the suite's default target, the configured default (manual) target.
    """

    def __init__(
        self,
        test_case_repository: TestCaseRepository,
        test_suite_repository: TestSuiteRepository | None = None,
        *,
        default_target: ExecutionTargetSnapshot = DEFAULT_MANUAL_TARGET,
    ) -> None:
        self._test_cases = test_case_repository
        self._test_suites = test_suite_repository
        self._default_target = default_target

    async def resolve(
        self,
        test_case_id: str,
        *,
        test_suite_id: str = "",
        runtime_override: ExecutionTargetSnapshot | None = None,
    ) -> ExecutionTargetSnapshot:
        """Return the target for `test_case_id` or raise NotFoundError."""
        test_case = await self._test_cases.find_by_id(test_case_id)
        if test_case is None:
            raise NotFoundError("TestCase", test_case_id)

        if runtime_override is not None:
            return runtime_override
        if test_case.execution_target_snapshot is not None:
            return test_case.execution_target_snapshot

        suite_target = await self._suite_default_target(test_suite_id)
        if suite_target is not None:
            return suite_target

        logger.debug(
            "test case %s has no execution target, using default target %s",
            test_case_id,
            self._default_target.id,
        )
        return self._default_target

    async def _suite_default_target(self, test_suite_id: str) -> ExecutionTargetSnapshot | None:
        if not test_suite_id or self._test_suites is None:
            return None
        test_suite = await self._test_suites.find_by_id(test_suite_id)
        if test_suite is None:
            return None
        return test_suite.default_execution_target
