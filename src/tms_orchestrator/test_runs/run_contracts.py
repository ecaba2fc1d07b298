"""Request and outcome contracts for test run use cases."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot

from .run_entities import TestRunStatus


class ExecutionMode(str, Enum):
    """Whether the orchestrator starts the execution or only waits for its result."""

    MANAGED = "MANAGED"
    OBSERVED = "OBSERVED"


@dataclass(frozen=True)
class RunTestCasesRequest:
    """Input contract for dispatching test cases.

    `test_case_ids` is authoritative for what runs; `suite_id` only groups the
    created runs and enables the suite's default execution target.

    In OBSERVED mode no adapter is invoked; the runs go straight to
    AWAITING_EXTERNAL_RESULTS for a process started elsewhere to report on.
    """

    test_case_ids: tuple[str, ...]
    suite_id: str = ""
    execution_target_override: ExecutionTargetSnapshot | None = None
    execution_mode: ExecutionMode = ExecutionMode.MANAGED


@dataclass(frozen=True)
class CaseDispatchResult:
    """Per-test-case outcome of a RunTestCases call."""

    test_case_id: str
    test_run_id: str | None
    status: TestRunStatus | None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None

    @staticmethod
    def dispatched(
        test_case_id: str, test_run_id: str, status: TestRunStatus
    ) -> CaseDispatchResult:
        return CaseDispatchResult(test_case_id=test_case_id, test_run_id=test_run_id, status=status)

    @staticmethod
    def failed(
        test_case_id: str,
        error: Exception,
        *,
        test_run_id: str | None = None,
        status: TestRunStatus | None = None,
    ) -> CaseDispatchResult:
        return CaseDispatchResult(
            test_case_id=test_case_id,
            test_run_id=test_run_id,
            status=status,
            error_kind=getattr(error, "kind", "internal"),
            error_message=str(error),
        )


@dataclass(frozen=True)
class RunTestCasesOutcome:
    """Ordered per-case results of one RunTestCases call."""

    results: tuple[CaseDispatchResult, ...]

    @property
    def test_run_ids(self) -> tuple[str, ...]:
        """Ids of successfully dispatched runs, in input order."""
        return tuple(
            result.test_run_id
            for result in self.results
            if result.succeeded and result.test_run_id is not None
        )

    @property
    def failures(self) -> tuple[CaseDispatchResult, ...]:
        return tuple(result for result in self.results if not result.succeeded)


@dataclass(frozen=True)
class ExecutionResultSignal:
    """Inbound completion signal for one test run."""

    test_run_id: str
    passed: bool
    idempotency_key: str | None = None


@dataclass(frozen=True)
class ExecutionResultOutcome:
    """Result of reconciling one completion signal."""

    test_run_id: str
    status: TestRunStatus
    applied: bool
