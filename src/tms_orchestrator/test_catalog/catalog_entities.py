"""Test catalog entities."""

from __future__ import annotations

from dataclasses import dataclass, field

from tms_orchestrator.errors import ValidationError
from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot


@dataclass(frozen=True)
class TestCase:
    """A single test case that can be dispatched to an execution target."""

    __test__ = False

    id: str
    summary: str
    description: str = ""
    execution_target_snapshot: ExecutionTargetSnapshot | None = None


@dataclass(frozen=True)
class TestSuite:
    """Named, ordered set of test case ids."""

    __test__ = False

    id: str
    name: str
    description: str = ""
    test_case_ids: tuple[str, ...] = field(default_factory=tuple)
    default_execution_target: ExecutionTargetSnapshot | None = None

    def __post_init__(self) -> None:
        ids = tuple(self.test_case_ids)
        if len(set(ids)) != len(ids):
            raise ValidationError(f"Test suite '{self.id}' contains duplicate test case ids.")
        object.__setattr__(self, "test_case_ids", ids)

    def contains(self, test_case_id: str) -> bool:
        return test_case_id in self.test_case_ids
