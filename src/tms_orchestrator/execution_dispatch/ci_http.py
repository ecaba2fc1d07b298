"""HTTP helpers shared by CI execution adapters."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from tms_orchestrator.errors import DispatchError

logger = logging.getLogger(__name__)


async def post_json(
    url: str,
    payload: Mapping[str, Any],
    *,
    headers: Mapping[str, str],
    timeout_seconds: float,
    provider: str,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """POST `payload` and return the response, raising DispatchError on any failure."""
    try:
        if client is not None:
            response = await client.post(
                url, json=payload, headers=headers, timeout=timeout_seconds
            )
        else:
            async with httpx.AsyncClient(timeout=timeout_seconds) as owned_client:
                response = await owned_client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise DispatchError(f"{provider} API request failed: {exc}") from exc

    if response.is_error:
        message = _error_message(response)
        logger.warning("%s API rejected dispatch (%s): %s", provider, response.status_code, message)
        raise DispatchError(f"{provider} API returned {response.status_code}: {message}")
    return response


def _error_message(response: httpx.Response) -> str:
    text = response.text
    try:
        body = json.loads(text) if text else None
    except json.JSONDecodeError:
        return text or response.reason_phrase
    if isinstance(body, Mapping):
        if body.get("message"):
            return str(body["message"])
        if body.get("error"):
            return str(body["error"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return ", ".join(
                str(item.get("message", item)) if isinstance(item, Mapping) else str(item)
                for item in errors
            )
    return text or response.reason_phrase
