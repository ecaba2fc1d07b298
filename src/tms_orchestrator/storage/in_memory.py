"""Dictionary-backed repositories for tests and single-process use."""

from __future__ import annotations

from collections.abc import Sequence

from tms_orchestrator.test_catalog.catalog_entities import TestCase, TestSuite
from tms_orchestrator.test_runs.run_entities import TestRun

from .concurrency import KeyedLocks, ensure_successor


class InMemoryTestCaseRepository:
    def __init__(self, test_cases: Sequence[TestCase] = ()) -> None:
        self._items = {test_case.id: test_case for test_case in test_cases}
        self._locks = KeyedLocks()

    async def save(self, test_case: TestCase) -> str:
        async with self._locks.lock_for(test_case.id):
            self._items[test_case.id] = test_case
        return test_case.id

    async def find_by_id(self, test_case_id: str) -> TestCase | None:
        return self._items.get(test_case_id)

    async def find_all(self) -> Sequence[TestCase]:
        return list(self._items.values())


class InMemoryTestSuiteRepository:
    def __init__(self, test_suites: Sequence[TestSuite] = ()) -> None:
        self._items = {test_suite.id: test_suite for test_suite in test_suites}
        self._locks = KeyedLocks()

    async def save(self, test_suite: TestSuite) -> str:
        async with self._locks.lock_for(test_suite.id):
            self._items[test_suite.id] = test_suite
        return test_suite.id

    async def find_by_id(self, test_suite_id: str) -> TestSuite | None:
        return self._items.get(test_suite_id)

    async def find_all(self) -> Sequence[TestSuite]:
        return list(self._items.values())


class InMemoryTestRunRepository:
    """Run repository with compare-and-set saves on `TestRun.version`."""

    def __init__(self, test_runs: Sequence[TestRun] = ()) -> None:
        self._items = {test_run.id: test_run for test_run in test_runs}
        self._locks = KeyedLocks()
        self.save_count = 0

    async def save(self, test_run: TestRun) -> str:
        async with self._locks.lock_for(test_run.id):
            ensure_successor(self._items.get(test_run.id), test_run)
            self._items[test_run.id] = test_run
            self.save_count += 1
        return test_run.id

    async def find_by_id(self, test_run_id: str) -> TestRun | None:
        return self._items.get(test_run_id)

    async def find_by_pipeline_id(self, pipeline_id: str) -> TestRun | None:
        for test_run in self._items.values():
            if test_run.pipeline_id == pipeline_id:
                return test_run
        return None

    async def find_all(self) -> Sequence[TestRun]:
        return list(self._items.values())
