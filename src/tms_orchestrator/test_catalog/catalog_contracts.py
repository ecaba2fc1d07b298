"""Request and result contracts for catalog use cases."""

from __future__ import annotations

from dataclasses import dataclass

from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot

UNSET = object()


@dataclass(frozen=True)
class CreateTestCaseRequest:
    """Input contract for creating one test case."""

    summary: str
    description: str = ""
    execution_target_snapshot: ExecutionTargetSnapshot | None = None


@dataclass(frozen=True)
class UpdateTestCaseExecutionTargetRequest:
    """Input contract for attaching (or clearing) a test case's target."""

    test_case_id: str
    execution_target_snapshot: ExecutionTargetSnapshot | None


@dataclass(frozen=True)
class CreateTestSuiteRequest:
    """Input contract for creating one test suite."""

    name: str
    description: str = ""


@dataclass(frozen=True)
class UpdateTestSuiteCompositionRequest:
    """Full replacement of a suite's test case ids."""

    test_suite_id: str
    test_case_ids: tuple[str, ...]


@dataclass(frozen=True)
class UpdateTestSuiteMetadataRequest:
    """Partial metadata patch; `None` leaves a field untouched.

    `default_execution_target` uses the `UNSET` sentinel so that `None` can
    clear a previously configured default target.
    """

    test_suite_id: str
    name: str | None = None
    description: str | None = None
    default_execution_target: object = UNSET


@dataclass(frozen=True)
class CompositionChange:
    """Outcome of replacing a suite composition."""

    test_suite_id: str
    test_case_ids: tuple[str, ...]
    added: tuple[str, ...]
    removed: tuple[str, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)
