"""Composition root: repositories, resolver, adapters and use cases for one host project."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from tms_orchestrator.configuration.runtime_settings import FieldRequirements, Settings
from tms_orchestrator.execution_dispatch import (
    ExecutionAdapterRegistry,
    GitHubExecutionAdapter,
    GitLabExecutionAdapter,
    ManualExecutionAdapter,
)
from tms_orchestrator.execution_targets import (
    ExecutionTargetResolver,
    ExecutionTargetSnapshot,
    ExecutionTargetType,
)
from tms_orchestrator.storage import YamlDirectoryStore
from tms_orchestrator.test_catalog import (
    CreateTestCaseUseCase,
    CreateTestSuiteUseCase,
    TestCaseRepository,
    TestSuiteRepository,
    UpdateTestCaseExecutionTargetUseCase,
    UpdateTestSuiteCompositionUseCase,
    UpdateTestSuiteMetadataUseCase,
)
from tms_orchestrator.test_runs import (
    HandleExecutionResultUseCase,
    RedispatchTestRunUseCase,
    RunTestCasesUseCase,
    TestRunRepository,
)


@dataclass(frozen=True)
class HostContext:
    """Project scope and tracker field requirements the services run under."""

    project_id: str
    field_requirements: FieldRequirements

    @classmethod
    def from_settings(cls, settings: Settings) -> HostContext:
        return cls(
            project_id=settings.project.project_id,
            field_requirements=settings.project.field_requirements,
        )


@dataclass(frozen=True)
class Repositories:
    test_cases: TestCaseRepository
    test_suites: TestSuiteRepository
    test_runs: TestRunRepository


@dataclass(frozen=True)
class OrchestratorServices:  # pylint: disable=too-many-instance-attributes
    """Use cases wired against one set of repositories and adapters."""

    host: HostContext
    repositories: Repositories
    resolver: ExecutionTargetResolver
    adapters: ExecutionAdapterRegistry
    create_test_case: CreateTestCaseUseCase
    update_test_case_target: UpdateTestCaseExecutionTargetUseCase
    create_test_suite: CreateTestSuiteUseCase
    update_test_suite_composition: UpdateTestSuiteCompositionUseCase
    update_test_suite_metadata: UpdateTestSuiteMetadataUseCase
    run_test_cases: RunTestCasesUseCase
    redispatch_test_run: RedispatchTestRunUseCase
    handle_execution_result: HandleExecutionResultUseCase


def build_adapter_registry(
    settings: Settings, *, client: httpx.AsyncClient | None = None
) -> ExecutionAdapterRegistry:
    """Register the manual adapter plus every CI adapter that has settings."""
    registry = ExecutionAdapterRegistry({ExecutionTargetType.MANUAL: ManualExecutionAdapter()})
    if settings.gitlab is not None:
        registry.register(
            ExecutionTargetType.GITLAB, GitLabExecutionAdapter(settings.gitlab, client=client)
        )
    if settings.github is not None:
        registry.register(
            ExecutionTargetType.GITHUB, GitHubExecutionAdapter(settings.github, client=client)
        )
    return registry


def build_repositories(settings: Settings, host: HostContext) -> Repositories:
    store = YamlDirectoryStore(settings.storage.root_dir, host.project_id)
    return Repositories(
        test_cases=store.test_cases,
        test_suites=store.test_suites,
        test_runs=store.test_runs,
    )


def build_services(
    settings: Settings,
    host: HostContext,
    *,
    repositories: Repositories | None = None,
    client: httpx.AsyncClient | None = None,
) -> OrchestratorServices:
    repositories = repositories or build_repositories(settings, host)
    default_target = ExecutionTargetSnapshot(
        id=settings.dispatch.default_target_id,
        name=settings.dispatch.default_target_name,
        type=ExecutionTargetType.MANUAL,
    )
    resolver = ExecutionTargetResolver(
        repositories.test_cases,
        repositories.test_suites,
        default_target=default_target,
    )
    adapters = build_adapter_registry(settings, client=client)
    return OrchestratorServices(
        host=host,
        repositories=repositories,
        resolver=resolver,
        adapters=adapters,
        create_test_case=CreateTestCaseUseCase(repositories.test_cases),
        update_test_case_target=UpdateTestCaseExecutionTargetUseCase(repositories.test_cases),
        create_test_suite=CreateTestSuiteUseCase(repositories.test_suites),
        update_test_suite_composition=UpdateTestSuiteCompositionUseCase(
            repositories.test_suites, repositories.test_cases
        ),
        update_test_suite_metadata=UpdateTestSuiteMetadataUseCase(repositories.test_suites),
        run_test_cases=RunTestCasesUseCase(
            repositories.test_runs,
            resolver,
            adapters,
            parallelism=settings.dispatch.parallelism,
        ),
        redispatch_test_run=RedispatchTestRunUseCase(repositories.test_runs, adapters),
        handle_execution_result=HandleExecutionResultUseCase(repositories.test_runs),
    )


@asynccontextmanager
async def open_services(
    settings: Settings,
    host: HostContext,
    *,
    repositories: Repositories | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[OrchestratorServices]:
    """Build services sharing one HTTP client that is closed on exit."""
    async with httpx.AsyncClient(transport=transport) as client:
        yield build_services(settings, host, repositories=repositories, client=client)
