"""
Report run results back to GitHub as commit statuses.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from runner.src.config import get_settings
from runner.src.models.step import RunResult, RunStatus, TriggerInfo

logger = logging.getLogger(__name__)
settings = get_settings()

STATUS_CONTEXT = "ferroci"

# GitHub caps status descriptions at 140 characters
MAX_DESCRIPTION = 140

def commit_state(status: RunStatus) -> str:
    return {
        RunStatus.PENDING: "pending",
        RunStatus.RUNNING: "pending",
        RunStatus.SUCCEEDED: "success",
        RunStatus.FAILED: "failure",
    }[status]

def build_status_payload(result: RunResult) -> Dict[str, Any]:
    return {
        "state": commit_state(result.status),
        "description": result.describe()[:MAX_DESCRIPTION],
        "context": STATUS_CONTEXT,
    }

async def post_commit_status(
    trigger: TriggerInfo,
    result: RunResult,
    token: str,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """
    POST /repos/{owner}/{repo}/statuses/{sha}.
    Returns True if GitHub accepted the status.
    """
    if not trigger.repo_full_name or not trigger.commit_sha:
        logger.warning(f"Cannot report status for run {result.run_id}: no repository or commit")
        return False

    url = f"{settings.github_api_url}/repos/{trigger.repo_full_name}/statuses/{trigger.commit_sha}"
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
    }

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=10.0)
    try:
        response = await client.post(url, json=build_status_payload(result), headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Failed to report status for run {result.run_id}: {e}")
        return False
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"Reported {result.status.value} for {trigger.repo_full_name}@{trigger.commit_sha[:7]}")
    return True
