"""Test run state machine tests."""

from __future__ import annotations

import pytest
from tms_orchestrator.errors import InvalidStateTransition
from tms_orchestrator.execution_targets import DEFAULT_MANUAL_TARGET
from tms_orchestrator.test_runs import TestRun, TestRunStatus


def _pending_run() -> TestRun:
    return TestRun(
        id="run-1",
        test_case_ids=("tc-1",),
        test_suite_id="",
        execution_target=DEFAULT_MANUAL_TARGET,
    )


def test_pending_run_moves_through_running_to_passed() -> None:
    pending = _pending_run()

    running = pending.record_dispatch(TestRunStatus.RUNNING, pipeline_id="42")
    passed = running.complete(True)

    assert pending.status is TestRunStatus.PENDING
    assert running.status is TestRunStatus.RUNNING
    assert running.pipeline_id == "42"
    assert passed.status is TestRunStatus.PASSED
    assert (pending.version, running.version, passed.version) == (1, 2, 3)
    assert passed.updated_at is not None


def test_pending_run_moves_through_awaiting_to_failed() -> None:
    awaiting = _pending_run().record_dispatch(TestRunStatus.AWAITING_EXTERNAL_RESULTS)

    failed = awaiting.complete(False, idempotency_key="manual:1")

    assert failed.status is TestRunStatus.FAILED
    assert failed.has_applied("manual:1")
    assert not failed.has_applied("manual:2")
    assert not failed.has_applied(None)


@pytest.mark.parametrize("terminal", [TestRunStatus.PASSED, TestRunStatus.FAILED])
@pytest.mark.parametrize("target", list(TestRunStatus))
def test_terminal_status_is_never_left(terminal: TestRunStatus, target: TestRunStatus) -> None:
    finished = _pending_run().record_dispatch(terminal)

    with pytest.raises(InvalidStateTransition):
        finished.transition_to(target)
    with pytest.raises(InvalidStateTransition):
        finished.complete(terminal is TestRunStatus.FAILED)

    assert finished.status is terminal


def test_pending_run_cannot_complete() -> None:
    with pytest.raises(InvalidStateTransition, match="PENDING"):
        _pending_run().complete(True)


def test_dispatch_is_only_recorded_once() -> None:
    running = _pending_run().record_dispatch(TestRunStatus.RUNNING)

    with pytest.raises(InvalidStateTransition):
        running.record_dispatch(TestRunStatus.AWAITING_EXTERNAL_RESULTS)


def test_status_never_moves_backwards() -> None:
    awaiting = _pending_run().record_dispatch(TestRunStatus.AWAITING_EXTERNAL_RESULTS)

    for earlier in (TestRunStatus.PENDING, TestRunStatus.RUNNING):
        with pytest.raises(InvalidStateTransition):
            awaiting.transition_to(earlier)


def test_terminal_flags() -> None:
    assert TestRunStatus.PASSED.is_terminal
    assert TestRunStatus.FAILED.is_terminal
    assert not TestRunStatus.AWAITING_EXTERNAL_RESULTS.is_terminal
    assert TestRunStatus.from_result(True) is TestRunStatus.PASSED
    assert TestRunStatus.from_result(False) is TestRunStatus.FAILED
