"""Catalog use-case services for test cases and test suites."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace

from tms_orchestrator.errors import NotFoundError, ValidationError
from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot

from .catalog_contracts import (
    UNSET,
    CompositionChange,
    CreateTestCaseRequest,
    CreateTestSuiteRequest,
    UpdateTestCaseExecutionTargetRequest,
    UpdateTestSuiteCompositionRequest,
    UpdateTestSuiteMetadataRequest,
)
from .catalog_entities import TestCase, TestSuite
from .catalog_repositories import TestCaseRepository, TestSuiteRepository

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid.uuid4())


class CreateTestCaseUseCase:  # pylint: disable=too-few-public-methods
    """Create a test case with an optional explicit execution target."""

    def __init__(self, repository: TestCaseRepository, *, id_factory: IdFactory = _new_id) -> None:
        self._repository = repository
        self._id_factory = id_factory

    async def execute(self, request: CreateTestCaseRequest) -> str:
        summary = _require_text(request.summary, "summary")
        test_case = TestCase(
            id=self._id_factory(),
            summary=summary,
            description=request.description or "",
            execution_target_snapshot=request.execution_target_snapshot,
        )
        test_case_id = await self._repository.save(test_case)
        logger.info("created test case %s", test_case_id)
        return test_case_id


class UpdateTestCaseExecutionTargetUseCase:  # pylint: disable=too-few-public-methods
    """Attach, replace or clear the execution target configured on a test case."""

    def __init__(self, repository: TestCaseRepository) -> None:
        self._repository = repository

    async def execute(self, request: UpdateTestCaseExecutionTargetRequest) -> TestCase:
        test_case_id = _require_text(request.test_case_id, "test_case_id")
        test_case = await self._repository.find_by_id(test_case_id)
        if test_case is None:
            raise NotFoundError("TestCase", test_case_id)
        updated = replace(test_case, execution_target_snapshot=request.execution_target_snapshot)
        await self._repository.save(updated)
        return updated


class CreateTestSuiteUseCase:  # pylint: disable=too-few-public-methods
    """Create an empty test suite."""

    def __init__(self, repository: TestSuiteRepository, *, id_factory: IdFactory = _new_id) -> None:
        self._repository = repository
        self._id_factory = id_factory

    async def execute(self, request: CreateTestSuiteRequest) -> str:
        name = _require_text(request.name, "name")
        test_suite = TestSuite(
            id=self._id_factory(),
            name=name,
            description=request.description or "",
        )
        test_suite_id = await self._repository.save(test_suite)
        logger.info("created test suite %s (%s)", test_suite_id, name)
        return test_suite_id


class UpdateTestSuiteCompositionUseCase:  # pylint: disable=too-few-public-methods
    """Replace a suite's test case ids wholesale.

    The requested ids are de-duplicated (first occurrence wins) and every id must
    exist in the test case repository. Added and removed ids are computed as set
    differences against the previous composition, so repeating a request with the
    same list is a no-op.
    """

    def __init__(
        self,
        test_suite_repository: TestSuiteRepository,
        test_case_repository: TestCaseRepository,
    ) -> None:
        self._test_suites = test_suite_repository
        self._test_cases = test_case_repository

    async def execute(self, request: UpdateTestSuiteCompositionRequest) -> CompositionChange:
        test_suite_id = _require_text(request.test_suite_id, "test_suite_id")
        requested_ids = _deduplicate(request.test_case_ids)
        test_suite = await self._test_suites.find_by_id(test_suite_id)
        if test_suite is None:
            raise NotFoundError("TestSuite", test_suite_id)
        await self._ensure_test_cases_exist(requested_ids)

        previous = set(test_suite.test_case_ids)
        target = set(requested_ids)
        change = CompositionChange(
            test_suite_id=test_suite_id,
            test_case_ids=requested_ids,
            added=tuple(case_id for case_id in requested_ids if case_id not in previous),
            removed=tuple(case_id for case_id in test_suite.test_case_ids if case_id not in target),
        )
        if requested_ids != test_suite.test_case_ids:
            await self._test_suites.save(replace(test_suite, test_case_ids=requested_ids))
            logger.info(
                "updated composition of test suite %s: +%d -%d",
                test_suite_id,
                len(change.added),
                len(change.removed),
            )
        return change

    async def _ensure_test_cases_exist(self, test_case_ids: Sequence[str]) -> None:
        unknown = [
            test_case_id
            for test_case_id in test_case_ids
            if await self._test_cases.find_by_id(test_case_id) is None
        ]
        if unknown:
            raise ValidationError(f"Unknown test case ids: {', '.join(unknown)}")


class UpdateTestSuiteMetadataUseCase:  # pylint: disable=too-few-public-methods
    """Patch name, description and default target of a suite, never its composition."""

    def __init__(self, repository: TestSuiteRepository) -> None:
        self._repository = repository

    async def execute(self, request: UpdateTestSuiteMetadataRequest) -> TestSuite:
        test_suite_id = _require_text(request.test_suite_id, "test_suite_id")
        test_suite = await self._repository.find_by_id(test_suite_id)
        if test_suite is None:
            raise NotFoundError("TestSuite", test_suite_id)

        changes: dict[str, object] = {}
        if request.name is not None:
            changes["name"] = _require_text(request.name, "name")
        if request.description is not None:
            changes["description"] = request.description
        if request.default_execution_target is not UNSET:
            target = request.default_execution_target
            if target is not None and not isinstance(target, ExecutionTargetSnapshot):
                raise ValidationError("default_execution_target must be an execution target.")
            changes["default_execution_target"] = target
        if not changes:
            return test_suite

        updated = replace(test_suite, **changes)
        await self._repository.save(updated)
        return updated


def _require_text(value: object, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"{field_name} must not be empty.")
    return stripped


def _deduplicate(test_case_ids: Sequence[str]) -> tuple[str, ...]:
    if isinstance(test_case_ids, str):
        raise ValidationError("test_case_ids must be a list of ids.")
    seen: dict[str, None] = {}
    for test_case_id in test_case_ids:
        seen.setdefault(_require_text(test_case_id, "test_case_ids entry"), None)
    return tuple(seen)
