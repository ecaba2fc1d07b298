"""Error taxonomy shared by the orchestration core."""

from __future__ import annotations


class TmsError(Exception):
    """Base class for errors raised by use cases and ports."""

    http_status = 500
    kind = "internal"


class ValidationError(TmsError):
    """Raised when required input is missing or malformed."""

    http_status = 400
    kind = "validation"


class NotFoundError(TmsError):
    """Raised when a referenced id does not exist in a repository."""

    http_status = 404
    kind = "not_found"

    def __init__(self, entity_name: str, entity_id: str) -> None:
        super().__init__(f"{entity_name} '{entity_id}' not found.")
        self.entity_name = entity_name
        self.entity_id = entity_id


class InvalidStateTransition(TmsError):
    """Raised when a TestRun transition violates the run state machine."""

    http_status = 409
    kind = "invalid_state_transition"


class ConcurrentUpdateError(TmsError):
    """Raised when a compare-and-set save loses against a concurrent writer."""

    http_status = 409
    kind = "concurrent_update"


class DispatchError(TmsError):
    """Raised when an execution adapter cannot reach or trigger its target."""

    http_status = 502
    kind = "dispatch"
