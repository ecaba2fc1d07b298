"""GitLab pipeline webhook translation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from tms_orchestrator.execution_dispatch.gitlab_adapter import TEST_RUN_ID_VARIABLE
from tms_orchestrator.test_runs.run_contracts import ExecutionResultSignal
from tms_orchestrator.test_runs.run_repository import TestRunRepository

from .signal_messages import CompletionSignalError

logger = logging.getLogger(__name__)

PIPELINE_RESULTS = {
    "success": True,
    "skipped": True,
    "failed": False,
    "canceled": False,
}


class GitLabPipelineWebhookTranslator:  # pylint: disable=too-few-public-methods
    """Turn GitLab "Pipeline Hook" payloads into completion signals.

    Pipelines that have not finished are ignored, as are pipelines that no test
    run knows about. The run is found through the `TEST_RUN_ID` pipeline variable
    and, failing that, through the pipeline id stored at dispatch time.
    """

    def __init__(self, test_run_repository: TestRunRepository) -> None:
        self._runs = test_run_repository

    async def translate(self, payload: Any) -> ExecutionResultSignal | None:
        pipeline_id, status, variables = _validate_payload(payload)
        if status not in PIPELINE_RESULTS:
            logger.info("ignoring GitLab pipeline %s with status %s", pipeline_id, status)
            return None

        test_run_id = await self._find_test_run_id(pipeline_id, variables)
        if test_run_id is None:
            logger.warning("no test run found for GitLab pipeline %s", pipeline_id)
            return None

        return ExecutionResultSignal(
            test_run_id=test_run_id,
            passed=PIPELINE_RESULTS[status],
            idempotency_key=f"gitlab-pipeline:{pipeline_id}:{status}",
        )

    async def _find_test_run_id(
        self, pipeline_id: str, variables: Sequence[Mapping[str, Any]]
    ) -> str | None:
        for variable in variables:
            if variable.get("key") == TEST_RUN_ID_VARIABLE:
                value = variable.get("value")
                if isinstance(value, str) and value.strip():
                    run = await self._runs.find_by_id(value.strip())
                    if run is not None:
                        return run.id
        run = await self._runs.find_by_pipeline_id(pipeline_id)
        return run.id if run is not None else None


def _validate_payload(payload: Any) -> tuple[str, str, list[Mapping[str, Any]]]:
    if not isinstance(payload, Mapping):
        raise CompletionSignalError("GitLab webhook payload must be a JSON object.")
    if payload.get("object_kind") != "pipeline":
        raise CompletionSignalError(
            f"Expected a pipeline webhook, got object_kind={payload.get('object_kind')!r}."
        )
    attributes = payload.get("object_attributes")
    if not isinstance(attributes, Mapping):
        raise CompletionSignalError("GitLab webhook payload is missing object_attributes.")
    pipeline_id = attributes.get("id")
    if isinstance(pipeline_id, bool) or not isinstance(pipeline_id, int):
        raise CompletionSignalError("object_attributes.id must be a number.")
    status = attributes.get("status")
    if not isinstance(status, str):
        raise CompletionSignalError("object_attributes.status must be a string.")
    variables = attributes.get("variables", [])
    if variables is None:
        variables = []
    if not isinstance(variables, list):
        raise CompletionSignalError("object_attributes.variables must be a list.")
    return (
        str(pipeline_id),
        status,
        [variable for variable in variables if isinstance(variable, Mapping)],
    )
