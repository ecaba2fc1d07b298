"""Test run entity and its status state machine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum

from tms_orchestrator.errors import InvalidStateTransition
from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot


class TestRunStatus(str, Enum):
    """Lifecycle status of one test run."""

    __test__ = False

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    AWAITING_EXTERNAL_RESULTS = "AWAITING_EXTERNAL_RESULTS"
    PASSED = "PASSED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @classmethod
    def from_result(cls, passed: bool) -> TestRunStatus:
        return cls.PASSED if passed else cls.FAILED


_TERMINAL_STATUSES = frozenset({TestRunStatus.PASSED, TestRunStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[TestRunStatus, frozenset[TestRunStatus]] = {
    TestRunStatus.PENDING: frozenset(
        {
            TestRunStatus.RUNNING,
            TestRunStatus.AWAITING_EXTERNAL_RESULTS,
            TestRunStatus.PASSED,
            TestRunStatus.FAILED,
        }
    ),
    TestRunStatus.RUNNING: frozenset(
        {
            TestRunStatus.AWAITING_EXTERNAL_RESULTS,
            TestRunStatus.PASSED,
            TestRunStatus.FAILED,
        }
    ),
    TestRunStatus.AWAITING_EXTERNAL_RESULTS: frozenset(
        {TestRunStatus.PASSED, TestRunStatus.FAILED}
    ),
    TestRunStatus.PASSED: frozenset(),
    TestRunStatus.FAILED: frozenset(),
}

_COMPLETABLE_STATUSES = frozenset(
    {TestRunStatus.RUNNING, TestRunStatus.AWAITING_EXTERNAL_RESULTS}
)


@dataclass(frozen=True)
class TestRun:  # pylint: disable=too-many-instance-attributes
    """Immutable record of one dispatched execution.

    Every transition returns a new instance with `version` incremented by one;
    repositories use the version for compare-and-set writes.
    """

    __test__ = False

    id: str
    test_case_ids: tuple[str, ...]
    test_suite_id: str
    execution_target: ExecutionTargetSnapshot
    status: TestRunStatus = TestRunStatus.PENDING
    pipeline_id: str | None = None
    applied_idempotency_keys: frozenset[str] = field(default_factory=frozenset)
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "test_case_ids", tuple(self.test_case_ids))
        keys = frozenset(self.applied_idempotency_keys)
        object.__setattr__(self, "applied_idempotency_keys", keys)

    def transition_to(self, status: TestRunStatus) -> TestRun:
        """Return a copy moved to `status`, or raise InvalidStateTransition."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateTransition(
                f"Cannot move TestRun '{self.id}' from {self.status.value} to {status.value}."
            )
        return self._next(status=status)

    def record_dispatch(self, status: TestRunStatus, *, pipeline_id: str | None = None) -> TestRun:
        """Apply the outcome reported by an execution adapter to a pending run."""
        if self.status is not TestRunStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot dispatch TestRun '{self.id}' in status {self.status.value}; "
                f"expected {TestRunStatus.PENDING.value}."
            )
        moved = self.transition_to(status)
        if pipeline_id is not None:
            moved = replace(moved, pipeline_id=pipeline_id)
        return moved

    def complete(self, passed: bool, *, idempotency_key: str | None = None) -> TestRun:
        """Apply a completion signal; only running or awaiting runs can complete."""
        if self.status not in _COMPLETABLE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot complete TestRun '{self.id}' in status {self.status.value}."
            )
        moved = self.transition_to(TestRunStatus.from_result(passed))
        if idempotency_key:
            moved = replace(
                moved,
                applied_idempotency_keys=moved.applied_idempotency_keys | {idempotency_key},
            )
        return moved

    def has_applied(self, idempotency_key: str | None) -> bool:
        return bool(idempotency_key) and idempotency_key in self.applied_idempotency_keys

    def _next(self, **changes) -> TestRun:
        return replace(self, version=self.version + 1, updated_at=datetime.now(UTC), **changes)
