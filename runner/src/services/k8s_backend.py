"""
Kubernetes backend - runs each pipeline step as a Job.

The kubernetes client is synchronous, so every API call is pushed onto a
worker thread; several runs share the worker's event loop.
"""

import asyncio
import logging
import time
from kubernetes.client.rest import ApiException

from runner.src.config import get_settings
from runner.src.errors import StepExecutionError
from runner.src.k8s import (
    get_batch_api,
    ensure_namespace,
    delete_job,
    build_job,
    get_job_status,
)
from runner.src.services.backends import StepBackend, StepOutcome
from runner.src.services.log_collector import collect_step_logs

logger = logging.getLogger(__name__)
settings = get_settings()

POLL_INTERVAL = 2

class KubernetesBackend(StepBackend):

    async def prepare(self, job):
        await asyncio.to_thread(ensure_namespace)

    async def run_step(self, job, step_order, step, command) -> StepOutcome:
        batch_v1 = get_batch_api()

        k8s_job = build_job(
            run_id=job.run_id,
            step_order=step_order,
            step_name=step.name,
            command=command,
            clone_url=job.trigger.clone_url,
            commit_sha=job.trigger.commit_sha,
            timeout=step.timeout,
        )

        job_name = k8s_job.metadata.name
        logger.info(f"Creating job {job_name}")

        try:
            await asyncio.to_thread(
                batch_v1.create_namespaced_job, namespace=settings.k8s_namespace, body=k8s_job
            )
        except ApiException as e:
            if e.status != 409:
                raise StepExecutionError(step_order, step.name, f"Failed to create job: {e.reason}")
            # Left over from a previous delivery of the same run
            logger.warning(f"Job {job_name} already exists, recreating")
            await asyncio.to_thread(delete_job, job_name)
            await asyncio.sleep(POLL_INTERVAL)
            await asyncio.to_thread(
                batch_v1.create_namespaced_job, namespace=settings.k8s_namespace, body=k8s_job
            )

        success = await wait_for_job(job_name, step.timeout)
        logs = await collect_step_logs(job_name)

        return StepOutcome(success=success, logs=logs)

async def wait_for_job(job_name: str, timeout: int) -> bool:
    """
    Wait for a job to complete.
    Returns True if succeeded, False if failed or timed out.
    """
    batch_v1 = get_batch_api()
    start_time = time.monotonic()

    while True:
        if time.monotonic() - start_time > timeout:
            logger.error(f"Job {job_name} timed out after {timeout}s")
            return False

        try:
            k8s_job = await asyncio.to_thread(
                batch_v1.read_namespaced_job,
                name=job_name,
                namespace=settings.k8s_namespace,
            )
        except ApiException as e:
            logger.error(f"Error checking job status: {e}")
            await asyncio.sleep(POLL_INTERVAL * 2)
            continue

        status = get_job_status(k8s_job)
        if status == "succeeded":
            return True
        if status == "failed":
            return False

        await asyncio.sleep(POLL_INTERVAL)
