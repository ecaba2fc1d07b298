"""Run dispatch use-case services."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence

from tms_orchestrator.errors import (
    DispatchError,
    InvalidStateTransition,
    NotFoundError,
    TmsError,
    ValidationError,
)
from tms_orchestrator.execution_dispatch.adapter_registry import ExecutionAdapterRegistry
from tms_orchestrator.execution_targets.target_resolver import ExecutionTargetResolver

from .run_contracts import (
    CaseDispatchResult,
    ExecutionMode,
    RunTestCasesOutcome,
    RunTestCasesRequest,
)
from .run_entities import TestRun, TestRunStatus
from .run_repository import TestRunRepository

logger = logging.getLogger(__name__)

DEFAULT_PARALLELISM = 4


class RunTestCasesUseCase:  # pylint: disable=too-few-public-methods
    """Create and dispatch one test run per requested test case.

    Cases are processed concurrently up to `parallelism`. A failure resolving or
    dispatching one case is recorded in that case's result and never stops the
    others; results keep the input order. Errors that are not domain errors are
    reported with kind "internal".
    """

    def __init__(
        self,
        test_run_repository: TestRunRepository,
        resolver: ExecutionTargetResolver,
        adapters: ExecutionAdapterRegistry,
        *,
        parallelism: int = DEFAULT_PARALLELISM,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._runs = test_run_repository
        self._resolver = resolver
        self._adapters = adapters
        self._parallelism = max(1, parallelism)
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    async def execute(self, request: RunTestCasesRequest) -> RunTestCasesOutcome:
        test_case_ids = _validate_test_case_ids(request.test_case_ids)
        semaphore = asyncio.Semaphore(self._parallelism)

        async def run_one(test_case_id: str) -> CaseDispatchResult:
            async with semaphore:
                return await self._run_case(test_case_id, request)

        results = await asyncio.gather(*(run_one(test_case_id) for test_case_id in test_case_ids))
        outcome = RunTestCasesOutcome(results=tuple(results))
        logger.info(
            "dispatched %d of %d test cases (suite=%s)",
            len(outcome.test_run_ids),
            len(test_case_ids),
            request.suite_id or "-",
        )
        return outcome

    async def _run_case(
        self, test_case_id: str, request: RunTestCasesRequest
    ) -> CaseDispatchResult:
        try:
            target = await self._resolver.resolve(
                test_case_id,
                test_suite_id=request.suite_id,
                runtime_override=request.execution_target_override,
            )
        except TmsError as exc:
            logger.warning("cannot resolve execution target for %s: %s", test_case_id, exc)
            return CaseDispatchResult.failed(test_case_id, exc)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("unexpected error resolving execution target for %s", test_case_id)
            return CaseDispatchResult.failed(test_case_id, exc)

        run = TestRun(
            id=self._id_factory(),
            test_case_ids=(test_case_id,),
            test_suite_id=request.suite_id,
            execution_target=target,
        )
        try:
            await self._runs.save(run)
            if request.execution_mode == ExecutionMode.OBSERVED:
                return await _observe_pending_run(run, self._runs)
            return await _dispatch_pending_run(run, self._runs, self._adapters)
        except TmsError as exc:
            logger.warning("cannot store test run %s for %s: %s", run.id, test_case_id, exc)
            return CaseDispatchResult.failed(test_case_id, exc, test_run_id=run.id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("unexpected error running test run %s for %s", run.id, test_case_id)
            return CaseDispatchResult.failed(test_case_id, exc, test_run_id=run.id)


class RedispatchTestRunUseCase:  # pylint: disable=too-few-public-methods
    """Retry dispatching a run that a previous dispatch error left PENDING."""

    def __init__(
        self,
        test_run_repository: TestRunRepository,
        adapters: ExecutionAdapterRegistry,
    ) -> None:
        self._runs = test_run_repository
        self._adapters = adapters

    async def execute(self, test_run_id: str) -> CaseDispatchResult:
        if not isinstance(test_run_id, str) or not test_run_id.strip():
            raise ValidationError("test_run_id must not be empty.")
        run = await self._runs.find_by_id(test_run_id)
        if run is None:
            raise NotFoundError("TestRun", test_run_id)
        if run.status is not TestRunStatus.PENDING:
            raise InvalidStateTransition(
                f"TestRun '{run.id}' is {run.status.value}; only PENDING runs can be re-dispatched."
            )
        return await _dispatch_pending_run(run, self._runs, self._adapters)


async def _dispatch_pending_run(
    run: TestRun,
    runs: TestRunRepository,
    adapters: ExecutionAdapterRegistry,
) -> CaseDispatchResult:
    test_case_id = run.test_case_ids[0] if run.test_case_ids else ""
    target = run.execution_target
    try:
        adapter = adapters.adapter_for(target.type)
        receipt = await adapter.dispatch(run, target)
    except DispatchError as exc:
        logger.warning("dispatch of test run %s failed, run stays PENDING: %s", run.id, exc)
        return CaseDispatchResult.failed(
            test_case_id, exc, test_run_id=run.id, status=TestRunStatus.PENDING
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.exception("adapter failed on test run %s, run stays PENDING", run.id)
        return CaseDispatchResult.failed(
            test_case_id, exc, test_run_id=run.id, status=TestRunStatus.PENDING
        )

    dispatched = run.record_dispatch(
        TestRunStatus(receipt.outcome.value),
        pipeline_id=receipt.pipeline_id,
    )
    await runs.save(dispatched)
    logger.info(
        "test run %s for %s is %s on %s target %s",
        dispatched.id,
        test_case_id,
        dispatched.status.value,
        target.type.value,
        target.id,
    )
    return CaseDispatchResult.dispatched(test_case_id, dispatched.id, dispatched.status)


async def _observe_pending_run(run: TestRun, runs: TestRunRepository) -> CaseDispatchResult:
    """Wait for an externally started execution without invoking any adapter."""
    awaiting = run.transition_to(TestRunStatus.AWAITING_EXTERNAL_RESULTS)
    await runs.save(awaiting)
    test_case_id = run.test_case_ids[0] if run.test_case_ids else ""
    logger.info("test run %s for %s is observed, awaiting external results", run.id, test_case_id)
    return CaseDispatchResult.dispatched(test_case_id, awaiting.id, awaiting.status)

def _validate_test_case_ids(test_case_ids: Sequence[str]) -> tuple[str, ...]:
    if isinstance(test_case_ids, str) or not test_case_ids:
        raise ValidationError("test_case_ids must be a non-empty list of ids.")
    validated = []
    for test_case_id in test_case_ids:
        if not isinstance(test_case_id, str) or not test_case_id.strip():
            raise ValidationError("test_case_ids must not contain empty ids.")
        validated.append(test_case_id.strip())
    return tuple(validated)
