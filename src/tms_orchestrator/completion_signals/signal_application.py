"""Feeding received completion signals into the reconciliation use case."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from tms_orchestrator.errors import TmsError, ValidationError
from tms_orchestrator.test_runs.execution_result_use_case import HandleExecutionResultUseCase

from .signal_messages import AppliedCompletionSignal, ReceivedCompletionSignal

logger = logging.getLogger(__name__)

_EXHAUSTED = object()


async def apply_completion_signals(
    signals: Iterable[ReceivedCompletionSignal],
    use_case: HandleExecutionResultUseCase,
) -> list[AppliedCompletionSignal]:
    """Apply signals one by one in arrival order and report each outcome.

    The iterable may block (a Kafka consumer does), so it is advanced in a worker
    thread. A signal rejected by the use case is reported and does not stop the
    remaining signals, and neither does a message that could not be decoded;
    transport errors raised by the iterable propagate.
    """
    iterator = iter(signals)
    applied: list[AppliedCompletionSignal] = []
    while True:
        received = await asyncio.to_thread(next, iterator, _EXHAUSTED)
        if received is _EXHAUSTED:
            break
        signal = received.signal
        if signal is None:
            applied.append(
                AppliedCompletionSignal(
                    signal=None,
                    error_kind=ValidationError.kind,
                    error_message=received.decode_error,
                )
            )
            continue
        try:
            outcome = await use_case.execute(signal)
        except TmsError as exc:
            logger.warning(
                "completion signal for test run %s rejected: %s", signal.test_run_id, exc
            )
            applied.append(
                AppliedCompletionSignal(signal=signal, error_kind=exc.kind, error_message=str(exc))
            )
            continue
        applied.append(AppliedCompletionSignal(signal=signal, outcome=outcome))
    return applied
