"""In-memory repository and locking tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from tms_orchestrator.errors import ConcurrentUpdateError
from tms_orchestrator.execution_targets import DEFAULT_MANUAL_TARGET
from tms_orchestrator.storage import InMemoryTestRunRepository, KeyedLocks, ensure_successor
from tms_orchestrator.test_runs import TestRun, TestRunStatus


def _run(run_id: str = "run-1") -> TestRun:
    return TestRun(
        id=run_id,
        test_case_ids=("tc-1",),
        test_suite_id="",
        execution_target=DEFAULT_MANUAL_TARGET,
    )


@pytest.mark.asyncio
async def test_run_saves_accept_only_the_direct_successor() -> None:
    repository = InMemoryTestRunRepository()
    pending = _run()
    running = pending.record_dispatch(TestRunStatus.RUNNING)

    await repository.save(pending)
    await repository.save(running)

    with pytest.raises(ConcurrentUpdateError, match="stored version 2"):
        await repository.save(running)
    with pytest.raises(ConcurrentUpdateError):
        await repository.save(replace(running, version=7))
    assert (await repository.find_by_id("run-1")).version == 2
    assert repository.save_count == 2


@pytest.mark.asyncio
async def test_runs_are_found_by_pipeline_id() -> None:
    dispatched = _run("run-2").record_dispatch(TestRunStatus.RUNNING, pipeline_id="77")
    repository = InMemoryTestRunRepository([_run("run-1"), dispatched])

    assert await repository.find_by_pipeline_id("77") == dispatched
    assert await repository.find_by_pipeline_id("78") is None
    assert [run.id for run in await repository.find_all()] == ["run-1", "run-2"]


def test_ensure_successor_accepts_first_write() -> None:
    ensure_successor(None, replace(_run(), version=4))


@pytest.mark.asyncio
async def test_keyed_locks_share_a_lock_per_id_only() -> None:
    locks = KeyedLocks()

    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")

    async with locks.lock_for("a"):
        async with asyncio.timeout(1):
            async with locks.lock_for("b"):
                pass
        assert locks.lock_for("a").locked()
