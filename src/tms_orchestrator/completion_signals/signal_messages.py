"""Inbound completion signal entities and payload parsing."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tms_orchestrator.test_runs.run_contracts import (
    ExecutionResultOutcome,
    ExecutionResultSignal,
)


class CompletionSignalError(Exception):
    """Raised when an inbound completion payload is malformed or cannot be read."""


@dataclass(frozen=True)
class ReceivedCompletionSignal:
    """Completion signal decoded from a transport message.

    `signal` is None when the payload could not be decoded; `decode_error` then
    says why.
    """

    key: str | None
    timestamp: datetime | None
    signal: ExecutionResultSignal | None
    decode_error: str | None = None


@dataclass(frozen=True)
class AppliedCompletionSignal:
    """What happened when one received signal was reconciled."""

    signal: ExecutionResultSignal | None
    outcome: ExecutionResultOutcome | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


def parse_completion_signal(document: Any) -> ExecutionResultSignal:
    """Build a signal from `{testRunId, passed, idempotencyKey?}`.

    Snake-case keys (`test_run_id`, `idempotency_key`) are accepted as well.
    """
    if not isinstance(document, Mapping):
        raise CompletionSignalError("Completion signal must be a JSON object.")
    test_run_id = _first_present(document, "testRunId", "test_run_id")
    if not isinstance(test_run_id, str) or not test_run_id.strip():
        raise CompletionSignalError("Completion signal requires a non-empty testRunId.")
    passed = document.get("passed")
    if not isinstance(passed, bool):
        raise CompletionSignalError("Completion signal requires a boolean 'passed' value.")
    idempotency_key = _first_present(document, "idempotencyKey", "idempotency_key")
    if idempotency_key is not None and not isinstance(idempotency_key, str):
        raise CompletionSignalError("Completion signal idempotencyKey must be a string.")
    return ExecutionResultSignal(
        test_run_id=test_run_id.strip(),
        passed=passed,
        idempotency_key=idempotency_key or None,
    )


def _first_present(document: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in document:
            return document[key]
    return None
