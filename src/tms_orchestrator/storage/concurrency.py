"""Per-entity write serialization and version checks shared by the stores."""

from __future__ import annotations

import asyncio

from tms_orchestrator.errors import ConcurrentUpdateError
from tms_orchestrator.test_runs.run_entities import TestRun


class KeyedLocks:
    """Hand out one asyncio.Lock per entity id; unrelated ids never contend."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, entity_id: str) -> asyncio.Lock:
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        return lock


def ensure_successor(stored: TestRun | None, incoming: TestRun) -> None:
    """Raise ConcurrentUpdateError unless `incoming` directly follows `stored`."""
    if stored is None:
        return
    if incoming.version != stored.version + 1:
        raise ConcurrentUpdateError(
            f"TestRun '{incoming.id}' was modified concurrently: stored version "
            f"{stored.version}, attempted to write version {incoming.version}."
        )
