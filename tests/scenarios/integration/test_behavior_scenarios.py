"""Scenario-style integration tests for catalog, dispatch and reconciliation."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import yaml
from tms_orchestrator.configuration import load_configuration
from tms_orchestrator.errors import InvalidStateTransition, NotFoundError
from tms_orchestrator.execution_targets import ExecutionTargetSnapshot, ExecutionTargetType
from tms_orchestrator.service_wiring import (
    HostContext,
    OrchestratorServices,
    Repositories,
    open_services,
)
from tms_orchestrator.storage import (
    InMemoryTestCaseRepository,
    InMemoryTestRunRepository,
    InMemoryTestSuiteRepository,
)
from tms_orchestrator.test_catalog import (
    CreateTestCaseRequest,
    CreateTestCaseUseCase,
    CreateTestSuiteRequest,
    UpdateTestSuiteCompositionRequest,
    UpdateTestSuiteMetadataRequest,
)
from tms_orchestrator.test_runs import (
    ExecutionResultSignal,
    RunTestCasesRequest,
    TestRunStatus,
)

TARGET_1 = ExecutionTargetSnapshot(id="target-1", name="Target 1", type=ExecutionTargetType.MANUAL)


def _settings(tmp_path: Path, extra: dict | None = None):
    document = {"project": {"id": "QA"}, "storage": {"root_dir": "store"}, **(extra or {})}
    path = tmp_path / "tms.yaml"
    path.write_text(yaml.safe_dump(document), encoding="utf-8")
    return load_configuration(path)


def _in_memory() -> Repositories:
    return Repositories(
        test_cases=InMemoryTestCaseRepository(),
        test_suites=InMemoryTestSuiteRepository(),
        test_runs=InMemoryTestRunRepository(),
    )


async def _seed_smoke_suite(services: OrchestratorServices) -> str:
    ids = iter(["tc-1", "tc-2", "tc-3"])
    create_case = CreateTestCaseUseCase(
        services.repositories.test_cases, id_factory=lambda: next(ids)
    )
    suite_id = await services.create_test_suite.execute(CreateTestSuiteRequest(name="Smoke Suite"))
    for summary in ("Login", "Search", "Checkout"):
        await create_case.execute(
            CreateTestCaseRequest(summary=summary, execution_target_snapshot=TARGET_1)
        )
    await services.update_test_suite_composition.execute(
        UpdateTestSuiteCompositionRequest(suite_id, ("tc-1", "tc-2", "tc-3"))
    )
    return suite_id


@pytest.mark.asyncio
async def test_smoke_suite_dispatches_one_awaiting_run_per_case(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    async with open_services(
        settings, HostContext.from_settings(settings), repositories=_in_memory()
    ) as services:
        suite_id = await _seed_smoke_suite(services)

        outcome = await services.run_test_cases.execute(
            RunTestCasesRequest(test_case_ids=("tc-1", "tc-2", "tc-3"))
        )

        assert len(outcome.test_run_ids) == 3
        assert len(set(outcome.test_run_ids)) == 3
        assert [result.test_case_id for result in outcome.results] == ["tc-1", "tc-2", "tc-3"]
        for run_id in outcome.test_run_ids:
            run = await services.repositories.test_runs.find_by_id(run_id)
            assert run.status is TestRunStatus.AWAITING_EXTERNAL_RESULTS
            assert run.execution_target.id == "target-1"
            assert run.test_suite_id == ""
        suite = await services.repositories.test_suites.find_by_id(suite_id)
        assert suite.name == "Smoke Suite"


@pytest.mark.asyncio
async def test_manual_result_passes_once_and_repeats_are_no_ops(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    repositories = _in_memory()
    async with open_services(
        settings, HostContext.from_settings(settings), repositories=repositories
    ) as services:
        await _seed_smoke_suite(services)
        outcome = await services.run_test_cases.execute(RunTestCasesRequest(("tc-1",)))
        run_id = outcome.test_run_ids[0]
        saves_before = repositories.test_runs.save_count

        first = await services.handle_execution_result.execute(ExecutionResultSignal(run_id, True))
        second = await services.handle_execution_result.execute(ExecutionResultSignal(run_id, True))

        assert first.status is TestRunStatus.PASSED and first.applied
        assert second.status is TestRunStatus.PASSED and not second.applied
        assert repositories.test_runs.save_count == saves_before + 1
        with pytest.raises(InvalidStateTransition):
            await services.handle_execution_result.execute(ExecutionResultSignal(run_id, False))
        assert (await repositories.test_runs.find_by_id(run_id)).status is TestRunStatus.PASSED


@pytest.mark.asyncio
async def test_result_for_unknown_run_is_not_found(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    async with open_services(
        settings, HostContext.from_settings(settings), repositories=_in_memory()
    ) as services:
        with pytest.raises(NotFoundError):
            await services.handle_execution_result.execute(ExecutionResultSignal("nope", True))


@pytest.mark.asyncio
async def test_suite_default_gitlab_target_triggers_a_pipeline(tmp_path: Path) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"id": 981, "status": "created"})

    settings = _settings(
        tmp_path,
        {
            "gitlab": {
                "base_url": "https://gitlab.example.com",
                "api_token": "secret",
                "project_id": 42,
            }
        },
    )
    gitlab_target = ExecutionTargetSnapshot(
        id="gl-main", name="GitLab main", type=ExecutionTargetType.GITLAB, ref="main"
    )
    repositories = _in_memory()
    async with open_services(
        settings,
        HostContext.from_settings(settings),
        repositories=repositories,
        transport=httpx.MockTransport(handler),
    ) as services:
        case_id = await services.create_test_case.execute(CreateTestCaseRequest(summary="Login"))
        suite_id = await services.create_test_suite.execute(CreateTestSuiteRequest(name="Nightly"))
        await services.update_test_suite_composition.execute(
            UpdateTestSuiteCompositionRequest(suite_id, (case_id,))
        )
        await services.update_test_suite_metadata.execute(
            UpdateTestSuiteMetadataRequest(suite_id, default_execution_target=gitlab_target)
        )

        outcome = await services.run_test_cases.execute(
            RunTestCasesRequest((case_id,), suite_id=suite_id)
        )

    run = await repositories.test_runs.find_by_id(outcome.test_run_ids[0])
    assert run.status is TestRunStatus.RUNNING
    assert run.pipeline_id == "981"
    assert run.execution_target == gitlab_target
    assert [request.url.path for request in requests] == ["/api/v4/projects/42/pipeline"]

