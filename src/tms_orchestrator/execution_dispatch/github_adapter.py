"""GitHub Actions execution adapter."""

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
    from tms_orchestrator.configuration.runtime_settings import GitHubSettings
    from tms_orchestrator.test_runs.run_entities import TestRun

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


class GitHubExecutionAdapter:  # pylint: disable=too-few-public-methods
    """Dispatch a GitHub Actions workflow for each run.

    `target.ref` holds the workflow file, optionally followed by `:branch`
    (`ci.yml`, `ci.yml:develop`, `.github/workflows/test.yml:feature/x`).
    """

    def __init__(self, settings: GitHubSettings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client

    async def dispatch(self, run: TestRun, target: ExecutionTargetSnapshot) -> DispatchReceipt:
        if target.type is not ExecutionTargetType.GITHUB:
            raise DispatchError(
                f"GitHub adapter cannot dispatch target '{target.id}' of type {target.type.value}."
            )
        workflow_file, branch = parse_workflow_ref(target.ref)
        if not workflow_file:
            raise DispatchError(f"Target '{target.id}' requires a workflow ref to dispatch.")

        settings = self._settings
        await post_json(
            f"{settings.base_url}/repos/{settings.owner}/{settings.repo}"
            f"/actions/workflows/{quote(workflow_file, safe='')}/dispatches",
            {"ref": branch or DEFAULT_BRANCH, "inputs": {"test_run_id": run.id}},
            headers={
                "Authorization": f"Bearer {settings.api_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout_seconds=settings.timeout_seconds,
            provider="GitHub",
            client=self._client,
        )
        logger.info(
            "dispatched GitHub workflow %s for test run %s on branch %s",
            workflow_file,
            run.id,
            branch or DEFAULT_BRANCH,
        )
        return DispatchReceipt.running()


def parse_workflow_ref(ref: str) -> tuple[str, str | None]:
    """Split `workflow.yml[:branch]`; branch names may themselves contain ':'."""
    workflow_file, separator, branch = (ref or "").strip().partition(":")
    if not separator:
        return workflow_file, None
    return workflow_file, branch or None
