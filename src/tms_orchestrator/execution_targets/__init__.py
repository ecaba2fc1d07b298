"""Execution target exports."""

from .target_resolver import ExecutionTargetResolver
from .target_snapshot import DEFAULT_MANUAL_TARGET, ExecutionTargetSnapshot, ExecutionTargetType

__all__ = [
    "DEFAULT_MANUAL_TARGET",
    "ExecutionTargetResolver",
    "ExecutionTargetSnapshot",
    "ExecutionTargetType",
]
