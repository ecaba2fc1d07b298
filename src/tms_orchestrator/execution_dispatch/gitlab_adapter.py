"""GitLab CI execution adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from tms_orchestrator.errors import DispatchError
from tms_orchestrator.execution_targets.target_snapshot import (
    ExecutionTargetSnapshot,
    ExecutionTargetType,
)

from .ci_http import post_json
from .dispatch_outcomes import DispatchReceipt

if TYPE_CHECKING:
    from tms_orchestrator.configuration.runtime_settings import GitLabSettings
    from tms_orchestrator.test_runs.run_entities import TestRun

logger = logging.getLogger(__name__)

TEST_RUN_ID_VARIABLE = "TEST_RUN_ID"


class GitLabExecutionAdapter:  # pylint: disable=too-few-public-methods
    """Trigger a GitLab pipeline on `target.ref` for each dispatched run.

    The pipeline receives the run id in the `TEST_RUN_ID` variable so that the
    pipeline webhook can be correlated back to the run. `target.pipeline_id`,
    when set, selects the GitLab project instead of the configured default.

    Once GitLab has accepted the trigger the run is RUNNING, even when the
    response carries no readable pipeline id.
    """

    def __init__(self, settings: GitLabSettings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client

    async def dispatch(self, run: TestRun, target: ExecutionTargetSnapshot) -> DispatchReceipt:
        if target.type is not ExecutionTargetType.GITLAB:
            raise DispatchError(
                f"GitLab adapter cannot dispatch target '{target.id}' of type {target.type.value}."
            )
        ref = target.ref.strip()
        if not ref:
            raise DispatchError(
                f"Target '{target.id}' requires a ref to trigger a GitLab pipeline."
            )
        project = (target.pipeline_id or self._settings.project_id).strip()

        response = await post_json(
            f"{self._settings.base_url}/api/v4/projects/{quote(project, safe='')}/pipeline",
            {"ref": ref, "variables": [{"key": TEST_RUN_ID_VARIABLE, "value": run.id}]},
            headers={"PRIVATE-TOKEN": self._settings.api_token},
            timeout_seconds=self._settings.timeout_seconds,
            provider="GitLab",
            client=self._client,
        )
        pipeline = _parse_pipeline(response, run.id)
        logger.info(
            "triggered GitLab pipeline %s for test run %s on ref %s",
            pipeline.pipeline_id,
            run.id,
            ref,
        )
        return pipeline


def _parse_pipeline(response: httpx.Response, test_run_id: str) -> DispatchReceipt:
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or body.get("id") is None:
        logger.warning(
            "GitLab accepted the pipeline for test run %s but returned no pipeline id "
            "(HTTP %d); correlate it through %s",
            test_run_id,
            response.status_code,
            TEST_RUN_ID_VARIABLE,
        )
        return DispatchReceipt.running()
    web_url = body.get("web_url")
    return DispatchReceipt.running(
        pipeline_id=str(body["id"]),
        web_url=str(web_url) if web_url else None,
    )
