"""Execution dispatch exports."""

from .adapter_registry import ExecutionAdapter, ExecutionAdapterRegistry
from .dispatch_outcomes import DispatchOutcome, DispatchReceipt
from .github_adapter import GitHubExecutionAdapter, parse_workflow_ref
from .gitlab_adapter import TEST_RUN_ID_VARIABLE, GitLabExecutionAdapter
from .manual_adapter import ManualExecutionAdapter

__all__ = [
    "ExecutionAdapter",
    "ExecutionAdapterRegistry",
    "DispatchOutcome",
    "DispatchReceipt",
    "GitHubExecutionAdapter",
    "GitLabExecutionAdapter",
    "ManualExecutionAdapter",
    "TEST_RUN_ID_VARIABLE",
    "parse_workflow_ref",
]
