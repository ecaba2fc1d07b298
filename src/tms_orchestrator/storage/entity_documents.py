"""Plain-mapping documents for stored entities."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from tms_orchestrator.errors import TmsError
from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetSnapshot
from tms_orchestrator.test_catalog.catalog_entities import TestCase, TestSuite
from tms_orchestrator.test_runs.run_entities import TestRun, TestRunStatus


class StoredDocumentError(TmsError):
    """Raised when a stored document cannot be turned back into an entity."""

    kind = "storage"


def target_to_document(target: ExecutionTargetSnapshot | None) -> dict[str, Any] | None:
    if target is None:
        return None
    return {
        "id": target.id,
        "name": target.name,
        "type": target.type.value,
        "ref": target.ref,
        "pipeline_id": target.pipeline_id,
    }


def target_from_document(document: Any) -> ExecutionTargetSnapshot | None:
    if document is None:
        return None
    data = _require_mapping(document, "execution target")
    return ExecutionTargetSnapshot(
        id=_require_str(data, "id"),
        name=str(data.get("name") or ""),
        type=_require_str(data, "type"),
        ref=str(data.get("ref") or ""),
        pipeline_id=_optional_str(data.get("pipeline_id")),
    )


def case_to_document(test_case: TestCase) -> dict[str, Any]:
    return {
        "id": test_case.id,
        "summary": test_case.summary,
        "description": test_case.description,
        "execution_target": target_to_document(test_case.execution_target_snapshot),
    }


def case_from_document(document: Any) -> TestCase:
    data = _require_mapping(document, "test case")
    return TestCase(
        id=_require_str(data, "id"),
        summary=_require_str(data, "summary"),
        description=str(data.get("description") or ""),
        execution_target_snapshot=target_from_document(data.get("execution_target")),
    )


def suite_to_document(test_suite: TestSuite) -> dict[str, Any]:
    return {
        "id": test_suite.id,
        "name": test_suite.name,
        "description": test_suite.description,
        "test_case_ids": list(test_suite.test_case_ids),
        "default_execution_target": target_to_document(test_suite.default_execution_target),
    }


def suite_from_document(document: Any) -> TestSuite:
    data = _require_mapping(document, "test suite")
    return TestSuite(
        id=_require_str(data, "id"),
        name=_require_str(data, "name"),
        description=str(data.get("description") or ""),
        test_case_ids=tuple(_string_list(data.get("test_case_ids"), "test_case_ids")),
        default_execution_target=target_from_document(data.get("default_execution_target")),
    )


def run_to_document(test_run: TestRun) -> dict[str, Any]:
    return {
        "id": test_run.id,
        "test_case_ids": list(test_run.test_case_ids),
        "test_suite_id": test_run.test_suite_id,
        "status": test_run.status.value,
        "execution_target": target_to_document(test_run.execution_target),
        "pipeline_id": test_run.pipeline_id,
        "applied_idempotency_keys": sorted(test_run.applied_idempotency_keys),
        "version": test_run.version,
        "created_at": test_run.created_at.isoformat(),
        "updated_at": test_run.updated_at.isoformat() if test_run.updated_at else None,
    }


def run_from_document(document: Any) -> TestRun:
    data = _require_mapping(document, "test run")
    target = target_from_document(data.get("execution_target"))
    if target is None:
        raise StoredDocumentError("Stored test run has no execution target.")
    try:
        status = TestRunStatus(_require_str(data, "status"))
    except ValueError as exc:
        raise StoredDocumentError(f"Unknown stored test run status: {data.get('status')}") from exc
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise StoredDocumentError("Stored test run version must be a positive integer.")
    return TestRun(
        id=_require_str(data, "id"),
        test_case_ids=tuple(_string_list(data.get("test_case_ids"), "test_case_ids")),
        test_suite_id=str(data.get("test_suite_id") or ""),
        execution_target=target,
        status=status,
        pipeline_id=_optional_str(data.get("pipeline_id")),
        applied_idempotency_keys=frozenset(
            _string_list(data.get("applied_idempotency_keys"), "applied_idempotency_keys")
        ),
        version=version,
        created_at=_parse_timestamp(data.get("created_at"), "created_at"),
        updated_at=(
            _parse_timestamp(data["updated_at"], "updated_at") if data.get("updated_at") else None
        ),
    )


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise StoredDocumentError(f"Stored field '{field_name}' must be an ISO timestamp.")
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise StoredDocumentError(f"Stored field '{field_name}' is not a timestamp.") from exc


def _require_mapping(document: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(document, Mapping):
        raise StoredDocumentError(f"Stored {label} must be a mapping.")
    return document


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise StoredDocumentError(f"Stored field '{key}' must be a non-empty string.")
    return value


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _string_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise StoredDocumentError(f"Stored field '{field_name}' must be a list of strings.")
    return value
