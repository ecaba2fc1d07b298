"""Test runs, their state machine and the dispatch/reconciliation use cases."""

from .execution_result_use_case import HandleExecutionResultUseCase
from .run_contracts import (
    CaseDispatchResult,
    ExecutionMode,
    ExecutionResultOutcome,
    ExecutionResultSignal,
    RunTestCasesOutcome,
    RunTestCasesRequest,
)
from .run_entities import TestRun, TestRunStatus
from .run_repository import TestRunRepository
from .run_test_cases_use_case import RedispatchTestRunUseCase, RunTestCasesUseCase

__all__ = [
    "CaseDispatchResult",
    "ExecutionMode",
    "ExecutionResultOutcome",
    "ExecutionResultSignal",
    "HandleExecutionResultUseCase",
    "RedispatchTestRunUseCase",
    "RunTestCasesOutcome",
    "RunTestCasesRequest",
    "RunTestCasesUseCase",
    "TestRun",
    "TestRunRepository",
    "TestRunStatus",
]
