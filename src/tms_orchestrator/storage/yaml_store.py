"""YAML directory store: one document per entity under a project directory.

Layout::

    <root_dir>/<project_id>/test_cases/<id>.yaml
    <root_dir>/<project_id>/test_suites/<id>.yaml
    <root_dir>/<project_id>/test_runs/<id>.yaml

Writes go to a uniquely named temporary file that replaces the document, so
readers never see a half-written file. Writers of the same id hold an exclusive
`fcntl.flock` on a hidden `.<id>.lock` file next to the document, which
serializes them across processes as well as within one. Test run writes check
the stored version inside that lock (compare-and-set).
"""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generic, TypeVar
from urllib.parse import quote

import yaml

from tms_orchestrator.test_catalog.catalog_entities import TestCase, TestSuite
from tms_orchestrator.test_runs.run_entities import TestRun

from .concurrency import KeyedLocks, ensure_successor
from .entity_documents import (
    StoredDocumentError,
    case_from_document,
    case_to_document,
    run_from_document,
    run_to_document,
    suite_from_document,
    suite_to_document,
)

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")

_SUFFIX = ".yaml"


class _DocumentDirectory(Generic[EntityT]):
    """Read and write one entity kind as YAML files in a directory."""

    def __init__(
        self,
        directory: Path,
        to_document: Callable[[EntityT], dict[str, Any]],
        from_document: Callable[[Any], EntityT],
    ) -> None:
        self._directory = directory
        self._to_document = to_document
        self._from_document = from_document
        self.locks = KeyedLocks()

    async def read(self, entity_id: str) -> EntityT | None:
        return await asyncio.to_thread(self._read_sync, self._path_for(entity_id))

    async def write(
        self,
        entity_id: str,
        entity: EntityT,
        *,
        check: Callable[[EntityT | None, EntityT], None] | None = None,
    ) -> None:
        """Replace the document of `entity_id`; `check` sees the stored entity under the lock."""
        await asyncio.to_thread(self._write_sync, self._path_for(entity_id), entity, check)

    async def read_all(self) -> list[EntityT]:
        return await asyncio.to_thread(self._read_all_sync)

    def _path_for(self, entity_id: str) -> Path:
        return self._directory / f"{quote(entity_id, safe='')}{_SUFFIX}"

    def _read_sync(self, path: Path) -> EntityT | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise StoredDocumentError(f"Failed to parse stored document {path}: {exc}") from exc
        return self._from_document(document)

    def _write_sync(
        self,
        path: Path,
        entity: EntityT,
        check: Callable[[EntityT | None, EntityT], None] | None,
    ) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with _exclusive_lock(path):
            if check is not None:
                check(self._read_sync(path), entity)
            temporary = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
            try:
                temporary.write_text(
                    yaml.safe_dump(self._to_document(entity), sort_keys=False, allow_unicode=True),
                    encoding="utf-8",
                )
                os.replace(temporary, path)
            finally:
                temporary.unlink(missing_ok=True)

    def _read_all_sync(self) -> list[EntityT]:
        if not self._directory.is_dir():
            return []
        entities = []
        for path in sorted(self._directory.glob(f"*{_SUFFIX}")):
            entity = self._read_sync(path)
            if entity is not None:
                entities.append(entity)
        return entities


@contextmanager
def _exclusive_lock(path: Path) -> Iterator[None]:
    with open(path.with_name(f".{path.stem}.lock"), "a", encoding="utf-8") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class YamlTestCaseRepository:
    def __init__(self, directory: Path) -> None:
        self._documents = _DocumentDirectory(directory, case_to_document, case_from_document)

    async def save(self, test_case: TestCase) -> str:
        async with self._documents.locks.lock_for(test_case.id):
            await self._documents.write(test_case.id, test_case)
        return test_case.id

    async def find_by_id(self, test_case_id: str) -> TestCase | None:
        return await self._documents.read(test_case_id)

    async def find_all(self) -> Sequence[TestCase]:
        return await self._documents.read_all()


class YamlTestSuiteRepository:
    def __init__(self, directory: Path) -> None:
        self._documents = _DocumentDirectory(directory, suite_to_document, suite_from_document)

    async def save(self, test_suite: TestSuite) -> str:
        async with self._documents.locks.lock_for(test_suite.id):
            await self._documents.write(test_suite.id, test_suite)
        return test_suite.id

    async def find_by_id(self, test_suite_id: str) -> TestSuite | None:
        return await self._documents.read(test_suite_id)

    async def find_all(self) -> Sequence[TestSuite]:
        return await self._documents.read_all()


class YamlTestRunRepository:
    """Test run documents with compare-and-set saves on the stored version."""

    def __init__(self, directory: Path) -> None:
        self._documents = _DocumentDirectory(directory, run_to_document, run_from_document)

    async def save(self, test_run: TestRun) -> str:
        async with self._documents.locks.lock_for(test_run.id):
            await self._documents.write(test_run.id, test_run, check=ensure_successor)
        logger.debug("stored test run %s at version %d", test_run.id, test_run.version)
        return test_run.id

    async def find_by_id(self, test_run_id: str) -> TestRun | None:
        return await self._documents.read(test_run_id)

    async def find_by_pipeline_id(self, pipeline_id: str) -> TestRun | None:
        for test_run in await self._documents.read_all():
            if test_run.pipeline_id == pipeline_id:
                return test_run
        return None

    async def find_all(self) -> Sequence[TestRun]:
        return await self._documents.read_all()


class YamlDirectoryStore:  # pylint: disable=too-few-public-methods
    """The three repositories of one host project, rooted at `root_dir/project_id`."""

    def __init__(self, root_dir: Path | str, project_id: str) -> None:
        self.project_dir = Path(root_dir) / quote(project_id, safe="")
        self.test_cases = YamlTestCaseRepository(self.project_dir / "test_cases")
        self.test_suites = YamlTestSuiteRepository(self.project_dir / "test_suites")
        self.test_runs = YamlTestRunRepository(self.project_dir / "test_runs")
