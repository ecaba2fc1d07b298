"""Repository implementations for the catalog and test run ports."""

from .concurrency import KeyedLocks, ensure_successor
from .entity_documents import StoredDocumentError
from .in_memory import (
    InMemoryTestCaseRepository,
    InMemoryTestRunRepository,
    InMemoryTestSuiteRepository,
)
from .yaml_store import (
    YamlDirectoryStore,
    YamlTestCaseRepository,
    YamlTestRunRepository,
    YamlTestSuiteRepository,
)

__all__ = [
    "InMemoryTestCaseRepository",
    "InMemoryTestRunRepository",
    "InMemoryTestSuiteRepository",
    "KeyedLocks",
    "StoredDocumentError",
    "YamlDirectoryStore",
    "YamlTestCaseRepository",
    "YamlTestRunRepository",
    "YamlTestSuiteRepository",
    "ensure_successor",
]
