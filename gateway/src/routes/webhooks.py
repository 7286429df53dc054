"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, Dict, Any
import logging
import uuid

from gateway.src.config import get_settings
from gateway.src.db.database import get_db
from gateway.src.models.pipeline import Repository, PipelineRun, PipelineStep
from gateway.src.models.run import WebhookResult
from gateway.src.models.trigger import BranchFilter, Trigger
from gateway.src.services.github import (
    PULL_REQUEST_ACTIONS,
    RepositoryError,
    verify_signature,
    parse_push_payload,
    parse_pull_request_payload,
    clone_repository,
    read_workflow_file,
    cleanup_repo,
)
from gateway.src.services.workflow_parser import (
    DEFAULT_WORKFLOW,
    parse_workflow_config,
    WorkflowConfigError,
)
from gateway.src.services.triggers import matches
from gateway.src.services.queue import enqueue_pipeline_run
from runner.src.models.step import RunStatus, StepStatus

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

async def fetch_workflow(trigger: Trigger) -> Optional[str]:
    """
    Clone the triggering commit and read its workflow file.
    Falls back to the built-in workflow when the repository has none.
    """
    repo_path = await clone_repository(trigger.clone_url, trigger.commit_sha)
    try:
        content = read_workflow_file(repo_path)
    finally:
        cleanup_repo(repo_path)

    if content is None and settings.use_default_workflow:
        logger.info(f"No workflow file in {trigger.repo_full_name}, using the default workflow")
        return DEFAULT_WORKFLOW

    return content

def plan_run(trigger: Trigger, workflow: str) -> Optional[Dict[str, Any]]:
    """
    Validate the workflow and check the trigger against its branch filter.

    Returns the validated config, or None when the trigger does not match.
    Raises WorkflowConfigError for malformed workflows.
    """
    config = parse_workflow_config(workflow)

    if not matches(trigger, BranchFilter.from_triggers(config["triggers"])):
        return None

    return config

async def get_or_create_repository(trigger: Trigger, db: AsyncSession) -> Repository:
    result = await db.execute(
        select(Repository).where(Repository.full_name == trigger.repo_full_name)
    )
    repository = result.scalar_one_or_none()

    if not repository:
        repository = Repository(
            name=trigger.repo_name,
            full_name=trigger.repo_full_name,
            clone_url=trigger.clone_url,
        )
        db.add(repository)
        await db.flush()

    return repository

async def process_trigger(trigger: Trigger, db: AsyncSession) -> WebhookResult:
    """Create and queue a pipeline run for a trigger, if its workflow wants one."""

    if not trigger.commit_sha:
        logger.warning("No commit SHA in webhook payload")
        return WebhookResult(status="skipped", reason="No commit SHA")

    try:
        workflow = await fetch_workflow(trigger)
    except RepositoryError as e:
        logger.error(f"Failed to fetch workflow for {trigger.repo_full_name}: {e}")
        return WebhookResult(status="error", reason=str(e))

    if workflow is None:
        logger.info(f"No workflow found in {trigger.repo_full_name}")
        return WebhookResult(status="skipped", reason="No workflow configuration found")

    try:
        config = plan_run(trigger, workflow)
    except WorkflowConfigError as e:
        logger.error(f"Invalid workflow config: {e}")
        return WebhookResult(status="error", reason=str(e))

    if config is None:
        logger.info(f"{trigger.kind.value} to '{trigger.ref_name}' does not match the branch filter")
        return WebhookResult(
            status="skipped",
            reason=f"Ref '{trigger.ref_name}' does not match the {trigger.kind.value} filter",
        )

    repository = await get_or_create_repository(trigger, db)

    pipeline_run = PipelineRun(
        id=uuid.uuid4(),
        repository_id=repository.id,
        event=trigger.kind.value,
        commit_sha=trigger.commit_sha,
        branch=trigger.ref_name,
        status=RunStatus.PENDING.value,
        triggered_by=trigger.actor,
        config=config,
    )
    db.add(pipeline_run)
    await db.flush()

    for i, step_config in enumerate(config["steps"]):
        db.add(PipelineStep(
            run_id=pipeline_run.id,
            name=step_config["name"],
            run=step_config["run"],
            uses=step_config["uses"],
            with_options=step_config["with"],
            status=StepStatus.PENDING.value,
            step_order=i,
        ))

    await db.commit()

    await enqueue_pipeline_run(
        run_id=str(pipeline_run.id),
        config=config,
        trigger=trigger,
    )

    logger.info(f"Pipeline run {pipeline_run.id} created and queued")

    return WebhookResult(
        status="queued",
        run_id=str(pipeline_run.id),
        steps=len(config["steps"]),
    )

@router.post("/github", response_model=WebhookResult, response_model_exclude_none=True)
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub webhook events.
    """
    body = await request.body()

    if settings.github_webhook_secret:
        if not x_hub_signature_256 or not verify_signature(body, x_hub_signature_256):
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return WebhookResult(status="pong", reason="Webhook configured successfully")

    if x_github_event == "push":
        if payload.get("deleted"):
            return WebhookResult(status="skipped", event=x_github_event, reason="Ref was deleted")
        return await process_trigger(parse_push_payload(payload), db)

    if x_github_event == "pull_request":
        action = payload.get("action")
        if action not in PULL_REQUEST_ACTIONS:
            return WebhookResult(
                status="ignored",
                event=x_github_event,
                reason=f"Pull request action '{action}' not handled",
            )
        return await process_trigger(parse_pull_request_payload(payload), db)

    return WebhookResult(
        status="ignored",
        event=x_github_event,
        reason=f"Event type '{x_github_event}' not handled",
    )
