"""RunTestCases and RedispatchTestRun use case tests."""

from __future__ import annotations

import asyncio
import itertools

import pytest
from tms_orchestrator.errors import (
    DispatchError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from tms_orchestrator.execution_dispatch import (
    DispatchReceipt,
    ExecutionAdapterRegistry,
    ManualExecutionAdapter,
)
from tms_orchestrator.execution_targets import (
    ExecutionTargetResolver,
    ExecutionTargetSnapshot,
    ExecutionTargetType,
)
from tms_orchestrator.storage import (
    InMemoryTestCaseRepository,
    InMemoryTestRunRepository,
    InMemoryTestSuiteRepository,
)
from tms_orchestrator.test_catalog import TestCase
from tms_orchestrator.test_runs import (
    ExecutionMode,
    RedispatchTestRunUseCase,
    RunTestCasesRequest,
    RunTestCasesUseCase,
    TestRun,
    TestRunStatus,
)

GITLAB_TARGET = ExecutionTargetSnapshot(
    id="gitlab-main", name="GitLab main", type=ExecutionTargetType.GITLAB, ref="main"
)


class UnwritableRunRepository(InMemoryTestRunRepository):
    async def save(self, test_run: TestRun) -> str:
        raise OSError("disk full")


class FakeGitLabAdapter:
    def __init__(
        self,
        *,
        fail_for: set[str] | None = None,
        crash_for: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail_for = fail_for or set()
        self.crash_for = crash_for or set()
        self.delay = delay
        self.dispatched: list[str] = []
        self.active = 0
        self.max_active = 0
        self._pipelines = itertools.count(100)

    async def dispatch(self, run, target) -> DispatchReceipt:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if run.test_case_ids[0] in self.fail_for:
                raise DispatchError("GitLab API returned 503: unavailable")
            if run.test_case_ids[0] in self.crash_for:
                raise RuntimeError("adapter bug")
            self.dispatched.append(run.id)
            return DispatchReceipt.running(pipeline_id=str(next(self._pipelines)))
        finally:
            self.active -= 1


def _use_case(
    test_cases: list[TestCase],
    gitlab: FakeGitLabAdapter | None = None,
    *,
    parallelism: int = 4,
) -> tuple[RunTestCasesUseCase, InMemoryTestRunRepository, ExecutionAdapterRegistry]:
    case_repository = InMemoryTestCaseRepository(test_cases)
    runs = InMemoryTestRunRepository()
    registry = ExecutionAdapterRegistry({ExecutionTargetType.MANUAL: ManualExecutionAdapter()})
    if gitlab is not None:
        registry.register(ExecutionTargetType.GITLAB, gitlab)
    counter = itertools.count(1)
    use_case = RunTestCasesUseCase(
        runs,
        ExecutionTargetResolver(case_repository, InMemoryTestSuiteRepository()),
        registry,
        parallelism=parallelism,
        id_factory=lambda: f"run-{next(counter)}",
    )
    return use_case, runs, registry


@pytest.mark.asyncio
async def test_one_run_per_case_in_input_order() -> None:
    cases = [TestCase(id=f"tc-{index}", summary=f"Case {index}") for index in range(1, 6)]
    use_case, runs, _ = _use_case(cases)

    outcome = await use_case.execute(
        RunTestCasesRequest(test_case_ids=("tc-3", "tc-1", "tc-5", "tc-2", "tc-4"))
    )

    assert len(outcome.test_run_ids) == 5
    assert len(set(outcome.test_run_ids)) == 5
    assert [result.test_case_id for result in outcome.results] == [
        "tc-3",
        "tc-1",
        "tc-5",
        "tc-2",
        "tc-4",
    ]
    for result in outcome.results:
        stored = await runs.find_by_id(result.test_run_id)
        assert stored.test_case_ids == (result.test_case_id,)
        assert stored.status is TestRunStatus.AWAITING_EXTERNAL_RESULTS
        assert stored.execution_target.type is ExecutionTargetType.MANUAL


@pytest.mark.asyncio
async def test_ci_dispatch_records_running_status_and_pipeline_id() -> None:
    gitlab = FakeGitLabAdapter()
    use_case, runs, _ = _use_case(
        [TestCase(id="tc-1", summary="CI case", execution_target_snapshot=GITLAB_TARGET)], gitlab
    )

    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1",), suite_id="s-1"))

    stored = await runs.find_by_id(outcome.test_run_ids[0])
    assert stored.status is TestRunStatus.RUNNING
    assert stored.pipeline_id == "100"
    assert stored.test_suite_id == "s-1"
    assert stored.execution_target == GITLAB_TARGET
    assert await runs.find_by_pipeline_id("100") == stored


@pytest.mark.asyncio
async def test_failures_are_reported_per_case_without_stopping_others() -> None:
    gitlab = FakeGitLabAdapter(fail_for={"tc-2"})
    cases = [
        TestCase(id="tc-1", summary="ok", execution_target_snapshot=GITLAB_TARGET),
        TestCase(id="tc-2", summary="broken", execution_target_snapshot=GITLAB_TARGET),
        TestCase(id="tc-3", summary="manual"),
    ]
    use_case, runs, _ = _use_case(cases, gitlab)

    outcome = await use_case.execute(
        RunTestCasesRequest(test_case_ids=("tc-1", "tc-2", "missing", "tc-3"))
    )

    assert [result.succeeded for result in outcome.results] == [True, False, False, True]
    dispatch_failure, missing_failure = outcome.failures
    assert dispatch_failure.error_kind == "dispatch"
    assert dispatch_failure.status is TestRunStatus.PENDING
    assert (await runs.find_by_id(dispatch_failure.test_run_id)).status is TestRunStatus.PENDING
    assert missing_failure.error_kind == "not_found"
    assert missing_failure.test_run_id is None
    assert len(outcome.test_run_ids) == 2
    assert len(await runs.find_all()) == 3


@pytest.mark.asyncio
async def test_unexpected_adapter_errors_stay_with_their_case() -> None:
    gitlab = FakeGitLabAdapter(crash_for={"tc-1"})
    cases = [
        TestCase(id="tc-1", summary="ci", execution_target_snapshot=GITLAB_TARGET),
        TestCase(id="tc-2", summary="manual"),
    ]
    use_case, runs, _ = _use_case(cases, gitlab)

    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1", "tc-2")))

    assert [result.succeeded for result in outcome.results] == [False, True]
    (failure,) = outcome.failures
    assert failure.error_kind == "internal"
    assert failure.error_message == "adapter bug"
    assert failure.status is TestRunStatus.PENDING
    assert (await runs.find_by_id(failure.test_run_id)).status is TestRunStatus.PENDING


@pytest.mark.asyncio
async def test_unexpected_storage_errors_stay_with_their_case() -> None:
    use_case = RunTestCasesUseCase(
        UnwritableRunRepository(),
        ExecutionTargetResolver(
            InMemoryTestCaseRepository([TestCase(id="tc-1", summary="manual")]),
            InMemoryTestSuiteRepository(),
        ),
        ExecutionAdapterRegistry({ExecutionTargetType.MANUAL: ManualExecutionAdapter()}),
        id_factory=lambda: "run-1",
    )

    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1",)))

    (failure,) = outcome.failures
    assert failure.error_kind == "internal"
    assert failure.test_run_id == "run-1"
    assert "disk full" in failure.error_message


@pytest.mark.asyncio
async def test_observed_mode_awaits_results_without_invoking_adapters() -> None:
    gitlab = FakeGitLabAdapter()
    use_case, runs, _ = _use_case(
        [TestCase(id="tc-1", summary="CI case", execution_target_snapshot=GITLAB_TARGET)], gitlab
    )

    outcome = await use_case.execute(
        RunTestCasesRequest(test_case_ids=("tc-1",), execution_mode=ExecutionMode.OBSERVED)
    )

    (result,) = outcome.results
    assert result.succeeded
    assert result.status is TestRunStatus.AWAITING_EXTERNAL_RESULTS
    stored = await runs.find_by_id(result.test_run_id)
    assert stored.status is TestRunStatus.AWAITING_EXTERNAL_RESULTS
    assert stored.execution_target == GITLAB_TARGET
    assert stored.pipeline_id is None
    assert stored.version == 2
    assert gitlab.dispatched == []

@pytest.mark.asyncio
async def test_unregistered_target_type_is_a_dispatch_failure() -> None:
    use_case, runs, _ = _use_case(
        [TestCase(id="tc-1", summary="CI case", execution_target_snapshot=GITLAB_TARGET)]
    )

    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1",)))

    (failure,) = outcome.failures
    assert failure.error_kind == "dispatch"
    assert "GITLAB" in failure.error_message
    assert (await runs.find_by_id(failure.test_run_id)).status is TestRunStatus.PENDING


@pytest.mark.asyncio
async def test_runtime_override_replaces_case_target() -> None:
    gitlab = FakeGitLabAdapter()
    use_case, runs, _ = _use_case([TestCase(id="tc-1", summary="manual case")], gitlab)

    outcome = await use_case.execute(
        RunTestCasesRequest(test_case_ids=("tc-1",), execution_target_override=GITLAB_TARGET)
    )

    stored = await runs.find_by_id(outcome.test_run_ids[0])
    assert stored.execution_target == GITLAB_TARGET
    assert gitlab.dispatched == [stored.id]


@pytest.mark.asyncio
async def test_fan_out_respects_parallelism() -> None:
    gitlab = FakeGitLabAdapter(delay=0.01)
    cases = [
        TestCase(id=f"tc-{index}", summary="ci", execution_target_snapshot=GITLAB_TARGET)
        for index in range(8)
    ]
    use_case, _, _ = _use_case(cases, gitlab, parallelism=3)

    outcome = await use_case.execute(
        RunTestCasesRequest(test_case_ids=tuple(case.id for case in cases))
    )

    assert len(outcome.test_run_ids) == 8
    assert gitlab.max_active == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("test_case_ids", [(), ("tc-1", " ")])
async def test_invalid_input_is_rejected_before_any_run_is_created(test_case_ids) -> None:
    use_case, runs, _ = _use_case([TestCase(id="tc-1", summary="case")])

    with pytest.raises(ValidationError):
        await use_case.execute(RunTestCasesRequest(test_case_ids=test_case_ids))

    assert await runs.find_all() == []


@pytest.mark.asyncio
async def test_redispatch_sends_a_pending_run_again() -> None:
    gitlab = FakeGitLabAdapter(fail_for={"tc-1"})
    use_case, runs, registry = _use_case(
        [TestCase(id="tc-1", summary="CI case", execution_target_snapshot=GITLAB_TARGET)], gitlab
    )
    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1",)))
    (failure,) = outcome.failures

    gitlab.fail_for.clear()
    result = await RedispatchTestRunUseCase(runs, registry).execute(failure.test_run_id)

    assert result.succeeded
    assert result.test_run_id == failure.test_run_id
    stored = await runs.find_by_id(failure.test_run_id)
    assert stored.status is TestRunStatus.RUNNING
    assert stored.version == 2


@pytest.mark.asyncio
async def test_redispatch_rejects_runs_that_left_pending() -> None:
    use_case, runs, registry = _use_case([TestCase(id="tc-1", summary="manual")])
    outcome = await use_case.execute(RunTestCasesRequest(test_case_ids=("tc-1",)))
    redispatch = RedispatchTestRunUseCase(runs, registry)

    with pytest.raises(InvalidStateTransition):
        await redispatch.execute(outcome.test_run_ids[0])
    with pytest.raises(NotFoundError):
        await redispatch.execute("run-unknown")
    with pytest.raises(ValidationError):
        await redispatch.execute("")
