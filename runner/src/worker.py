"""
Queue worker - pulls runs from Redis and executes them.
"""

import asyncio
import logging
import json
from typing import Optional, Set

import redis.asyncio as redis
from pydantic import ValidationError

from runner.src.config import get_settings
from runner.src.models.step import PipelineJob
from runner.src.services.executor import execute_pipeline

logger = logging.getLogger(__name__)
settings = get_settings()

PIPELINE_QUEUE = "ferroci:jobs"

def parse_job(raw: str) -> Optional[PipelineJob]:
    """Decode a queued job, or None if it is unusable."""
    try:
        return PipelineJob.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.error(f"Dropping malformed job: {e}")
        return None

async def get_next_job(client: redis.Redis, timeout: int = 5) -> Optional[PipelineJob]:
    """Pull next job from Redis queue, blocking up to `timeout` seconds."""
    result = await client.brpop(PIPELINE_QUEUE, timeout=timeout)
    if not result:
        return None
    _, job_data = result
    return parse_job(job_data)

async def run_job(job: PipelineJob, slots: asyncio.Semaphore):
    try:
        await execute_pipeline(job)
    except Exception as e:
        logger.exception(f"Failed to execute pipeline {job.run_id}: {e}")
    finally:
        slots.release()

async def worker_loop(max_concurrent_runs: Optional[int] = None):
    """
    Main worker loop.

    Up to `max_concurrent_runs` runs execute at once, each in its own task.
    A job is only taken off the queue when a slot is free.
    """
    max_concurrent_runs = max_concurrent_runs or settings.max_concurrent_runs
    slots = asyncio.Semaphore(max_concurrent_runs)
    tasks: Set[asyncio.Task] = set()
    client = redis.from_url(settings.redis_url, decode_responses=True)

    logger.info(f"Worker started ({max_concurrent_runs} slots), waiting for jobs...")

    try:
        while True:
            await slots.acquire()
            try:
                job = await get_next_job(client)
            except Exception as e:
                slots.release()
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(5)
                continue

            if job is None:
                slots.release()
                continue

            logger.info(f"Received job for run {job.run_id}")
            task = asyncio.create_task(run_job(job, slots))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    finally:
        if tasks:
            logger.info(f"Waiting for {len(tasks)} running pipeline(s)")
            await asyncio.gather(*tasks, return_exceptions=True)
        await client.aclose()

def run_worker():
    """Entry point for worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
