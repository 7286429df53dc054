"""
Report pipeline and step status to the database, Redis and GitHub.
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

import redis
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from runner.src.config import get_settings
from runner.src.models.db import PipelineRun, PipelineStep
from runner.src.models.step import PipelineJob, RunResult, StepResult
from runner.src.services.github_status import post_commit_status

logger = logging.getLogger(__name__)
settings = get_settings()

PIPELINE_STATUS = "ferroci:status"

@lru_cache()
def get_session_factory() -> sessionmaker:
    # Sync database connection for the runner
    engine = create_engine(settings.database_url)
    return sessionmaker(bind=engine)

def update_run_status(
    run_id: str,
    status: str,
    failed_step: Optional[int] = None,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
):
    """Update pipeline run status in database."""
    with get_session_factory()() as session:
        values = {"status": status, "updated_at": datetime.utcnow()}

        if failed_step is not None:
            values["failed_step"] = failed_step
        if started_at:
            values["started_at"] = started_at
        if finished_at:
            values["finished_at"] = finished_at

        session.execute(
            update(PipelineRun)
            .where(PipelineRun.id == run_id)
            .values(**values)
        )
        session.commit()
        logger.info(f"Updated run {run_id} status to {status}")

def update_step_status(
    run_id: str,
    step_order: int,
    status: str,
    logs: Optional[str] = None,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
):
    """Update pipeline step status in database."""
    with get_session_factory()() as session:
        values = {"status": status, "updated_at": datetime.utcnow()}

        if logs is not None:
            values["logs"] = logs
        if started_at:
            values["started_at"] = started_at
        if finished_at:
            values["finished_at"] = finished_at

        session.execute(
            update(PipelineStep)
            .where(PipelineStep.run_id == run_id)
            .where(PipelineStep.step_order == step_order)
            .values(**values)
        )
        session.commit()
        logger.debug(f"Updated step {step_order} of run {run_id} to {status}")

def set_live_status(run_id: str, status: str):
    """Mirror the run status into the Redis hash the gateway reads."""
    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        client.hset(PIPELINE_STATUS, run_id, status)
    finally:
        client.close()

class RunReporter:
    """
    Observer of a run's state transitions. The base class ignores them.
    """

    async def run_started(self, job: PipelineJob, result: RunResult):
        pass

    async def step_started(self, job: PipelineJob, step: StepResult):
        pass

    async def step_finished(self, job: PipelineJob, step: StepResult):
        pass

    async def run_finished(self, job: PipelineJob, result: RunResult, token: Optional[str] = None):
        pass

class StatusReporter(RunReporter):
    """Writes every transition to the database and Redis."""

    async def run_started(self, job, result):
        await asyncio.to_thread(
            update_run_status, job.run_id, result.status.value, started_at=result.started_at
        )
        await asyncio.to_thread(set_live_status, job.run_id, result.status.value)

    async def step_started(self, job, step):
        await asyncio.to_thread(
            update_step_status, job.run_id, step.step_order, step.status.value,
            started_at=step.started_at,
        )
        await asyncio.to_thread(set_live_status, job.run_id, f"running:{step.step_order}")

    async def step_finished(self, job, step):
        await asyncio.to_thread(
            update_step_status, job.run_id, step.step_order, step.status.value,
            logs=step.logs, finished_at=step.finished_at,
        )

    async def run_finished(self, job, result, token=None):
        await asyncio.to_thread(
            update_run_status, job.run_id, result.status.value,
            failed_step=result.failed_step, finished_at=result.finished_at,
        )
        await asyncio.to_thread(set_live_status, job.run_id, result.status.value)

        token = token or settings.github_token
        if settings.report_commit_status and token:
            await post_commit_status(job.trigger, result, token)
