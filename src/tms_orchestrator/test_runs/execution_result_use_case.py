"""Completion signal reconciliation use-case service."""

from __future__ import annotations

import logging

from tms_orchestrator.errors import (
    ConcurrentUpdateError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)

from .run_contracts import ExecutionResultOutcome, ExecutionResultSignal
from .run_entities import TestRun, TestRunStatus
from .run_repository import TestRunRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class HandleExecutionResultUseCase:  # pylint: disable=too-few-public-methods
    """Apply a possibly duplicated completion signal to a test run.

    Signals can arrive more than once and from several sources. A signal is a
    no-op when its idempotency key was already applied or when the run already
    finished with the same result. A finished run never changes its result, and a
    run that was never dispatched cannot complete.

    Saves are compare-and-set; when another writer wins, the run is reloaded and
    the signal is evaluated again against the fresh state.
    """

    def __init__(
        self,
        test_run_repository: TestRunRepository,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._runs = test_run_repository
        self._max_attempts = max(1, max_attempts)

    async def execute(self, signal: ExecutionResultSignal) -> ExecutionResultOutcome:
        test_run_id = _validate_signal(signal)
        for attempt in range(1, self._max_attempts + 1):
            run = await self._runs.find_by_id(test_run_id)
            if run is None:
                raise NotFoundError("TestRun", test_run_id)
            completed = _decide(run, signal)
            if completed is None:
                return ExecutionResultOutcome(test_run_id, run.status, applied=False)
            try:
                await self._runs.save(completed)
            except ConcurrentUpdateError:
                logger.debug(
                    "test run %s changed concurrently (attempt %d), reloading",
                    test_run_id,
                    attempt,
                )
                continue
            logger.info("test run %s completed as %s", test_run_id, completed.status.value)
            return ExecutionResultOutcome(test_run_id, completed.status, applied=True)
        raise ConcurrentUpdateError(
            f"TestRun '{test_run_id}' kept changing; gave up after {self._max_attempts} attempts."
        )


def _decide(run: TestRun, signal: ExecutionResultSignal) -> TestRun | None:
    """Return the completed run to store, or None when the signal is a no-op."""
    if run.has_applied(signal.idempotency_key):
        logger.debug(
            "idempotency key %s already applied to test run %s", signal.idempotency_key, run.id
        )
        return None
    if run.status.is_terminal:
        if run.status is TestRunStatus.from_result(signal.passed):
            return None
        raise InvalidStateTransition(
            f"TestRun '{run.id}' already finished as {run.status.value}; "
            f"refusing to report it as {TestRunStatus.from_result(signal.passed).value}."
        )
    return run.complete(signal.passed, idempotency_key=signal.idempotency_key)


def _validate_signal(signal: ExecutionResultSignal) -> str:
    test_run_id = signal.test_run_id
    if not isinstance(test_run_id, str) or not test_run_id.strip():
        raise ValidationError("test_run_id must not be empty.")
    if not isinstance(signal.passed, bool):
        raise ValidationError("passed must be a boolean.")
    key = signal.idempotency_key
    if key is not None and not isinstance(key, str):
        raise ValidationError("idempotency_key must be a string.")
    return test_run_id.strip()
