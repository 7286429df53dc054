"""
Redis queue service for pipeline runs.
"""

import redis.asyncio as redis
import json
from typing import Dict, Any, Optional
from datetime import datetime

from gateway.src.config import get_settings
from gateway.src.models.trigger import Trigger
from runner.src.models.step import RunStatus

settings = get_settings()

PIPELINE_QUEUE = "ferroci:jobs"
PIPELINE_STATUS = "ferroci:status"

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

def build_job(run_id: str, config: Dict[str, Any], trigger: Trigger) -> Dict[str, Any]:
    """Queue payload consumed by the runner."""
    return {
        "run_id": run_id,
        "config": config,
        "trigger": trigger.model_dump(mode="json"),
        "queued_at": datetime.utcnow().isoformat(),
    }

async def enqueue_pipeline_run(run_id: str, config: Dict[str, Any], trigger: Trigger):
    """Add pipeline run to processing queue."""
    client = await get_redis_client()

    try:
        await client.lpush(PIPELINE_QUEUE, json.dumps(build_job(run_id, config, trigger)))
        await client.hset(PIPELINE_STATUS, run_id, RunStatus.PENDING.value)
    finally:
        await client.aclose()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(PIPELINE_STATUS, run_id)
    finally:
        await client.aclose()

async def get_queue_length() -> int:
    """Get number of jobs in queue."""
    client = await get_redis_client()

    try:
        return await client.llen(PIPELINE_QUEUE)
    finally:
        await client.aclose()
