"""Storage ports for the test catalog."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .catalog_entities import TestCase, TestSuite


class TestCaseRepository(Protocol):
    """Upsert/lookup contract for test cases."""

    async def save(self, test_case: TestCase) -> str: ...

    async def find_by_id(self, test_case_id: str) -> TestCase | None: ...

    async def find_all(self) -> Sequence[TestCase]: ...


class TestSuiteRepository(Protocol):
    """Upsert/lookup contract for test suites."""

    async def save(self, test_suite: TestSuite) -> str: ...

    async def find_by_id(self, test_suite_id: str) -> TestSuite | None: ...

    async def find_all(self) -> Sequence[TestSuite]: ...
