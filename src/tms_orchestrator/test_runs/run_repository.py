"""Storage port for test runs."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .run_entities import TestRun


class TestRunRepository(Protocol):
    """Upsert/lookup contract for test runs.

    `save` is a compare-and-set on `TestRun.version`: a run that already exists
    is only replaced by its direct successor (stored version + 1). Any other
    version raises `ConcurrentUpdateError`, so concurrent writers of the same run
    cannot both win.
    """

    async def save(self, test_run: TestRun) -> str: ...

    async def find_by_id(self, test_run_id: str) -> TestRun | None: ...

    async def find_by_pipeline_id(self, pipeline_id: str) -> TestRun | None: ...

    async def find_all(self) -> Sequence[TestRun]: ...
