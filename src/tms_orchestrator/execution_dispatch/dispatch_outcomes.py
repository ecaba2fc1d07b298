"""Execution dispatch entities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DispatchOutcome(str, Enum):
    """Immediate state reported by an execution adapter after dispatch."""

    RUNNING = "RUNNING"
    AWAITING_EXTERNAL_RESULTS = "AWAITING_EXTERNAL_RESULTS"
    PASSED = "PASSED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DispatchReceipt:
    """Outcome of handing one test run to its execution target."""

    outcome: DispatchOutcome
    pipeline_id: str | None = None
    web_url: str | None = None

    @staticmethod
    def running(pipeline_id: str | None = None, web_url: str | None = None) -> DispatchReceipt:
        return DispatchReceipt(DispatchOutcome.RUNNING, pipeline_id=pipeline_id, web_url=web_url)

    @staticmethod
    def awaiting_external_results() -> DispatchReceipt:
        return DispatchReceipt(DispatchOutcome.AWAITING_EXTERNAL_RESULTS)
