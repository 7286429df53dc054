"""
Collect step output from Kubernetes pods.
"""

import asyncio
import logging
from typing import Optional
from kubernetes.client.rest import ApiException

from runner.src.k8s.client import get_core_api
from runner.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

async def get_job_pod_name(job_name: str) -> Optional[str]:
    """Get the pod name for a job."""
    core_v1 = get_core_api()

    try:
        pods = await asyncio.to_thread(
            core_v1.list_namespaced_pod,
            namespace=settings.k8s_namespace,
            label_selector=f"job-name={job_name}",
        )
    except ApiException as e:
        logger.error(f"Failed to get pod for job {job_name}: {e}")
        return None

    if pods.items:
        return pods.items[0].metadata.name
    return None

async def collect_logs(job_name: str, container: str = "step") -> str:
    """Collect logs from one container of a job's pod."""
    core_v1 = get_core_api()

    pod_name = await get_job_pod_name(job_name)
    if not pod_name:
        return "No pod found for job"

    try:
        return await asyncio.to_thread(
            core_v1.read_namespaced_pod_log,
            name=pod_name,
            namespace=settings.k8s_namespace,
            container=container,
            tail_lines=1000,
        )
    except ApiException as e:
        if e.status == 400:
            # Container never started, e.g. the checkout failed
            return f"Container '{container}' did not start"
        logger.error(f"Failed to collect logs for {pod_name}: {e}")
        return f"Error collecting logs: {e.reason}"

async def collect_step_logs(job_name: str) -> str:
    """Step output, prefixed by the checkout output when the step never ran."""
    logs = await collect_logs(job_name, "step")
    if logs.startswith("Container 'step' did not start"):
        checkout_logs = await collect_logs(job_name, "checkout")
        return f"{checkout_logs}\n{logs}"
    return logs
