"""Execution target value objects."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tms_orchestrator.errors import ValidationError


class ExecutionTargetType(str, Enum):
    """Kinds of destinations able to execute a test case."""

    MANUAL = "MANUAL"
    GITLAB = "GITLAB"
    GITHUB = "GITHUB"

    @classmethod
    def parse(cls, value: str) -> ExecutionTargetType:
        """Parse a target type name case-insensitively."""
        normalized = (value or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unsupported execution target type '{value}'. Supported types: {supported}"
            ) from exc


@dataclass(frozen=True)
class ExecutionTargetSnapshot:
    """Point-in-time copy of the target a test run executes on.

    `ref` is opaque to the core: a branch for GitLab, `workflow.yml[:branch]`
    for GitHub, empty for manual targets. `pipeline_id` optionally names the
    remote pipeline/project to trigger.
    """

    id: str
    name: str
    type: ExecutionTargetType
    ref: str = ""
    pipeline_id: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValidationError("Execution target id must not be empty.")
        if not isinstance(self.type, ExecutionTargetType):
            object.__setattr__(self, "type", ExecutionTargetType.parse(str(self.type)))

    def fingerprint(self) -> str:
        """Deterministic content identity of the snapshot."""
        return f"{self.id}:{self.type.value}:{self.ref}:{self.pipeline_id or ''}"


DEFAULT_MANUAL_TARGET = ExecutionTargetSnapshot(
    id="manual-default",
    name="Manual",
    type=ExecutionTargetType.MANUAL,
)
