"""
Kubernetes API handles for the step backend.

All calls here are blocking; async callers go through asyncio.to_thread.
"""

import logging
from functools import lru_cache

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from runner.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

@lru_cache()
def get_api_client() -> client.ApiClient:
    if settings.k8s_in_cluster:
        config.load_incluster_config()
    else:
        # kubeconfig of the current context: minikube, kind, Docker Desktop
        config.load_kube_config()
    return client.ApiClient()

def get_batch_api() -> client.BatchV1Api:
    return client.BatchV1Api(get_api_client())

def get_core_api() -> client.CoreV1Api:
    return client.CoreV1Api(get_api_client())

def init_k8s_client() -> bool:
    """Load the cluster config and check the API server answers."""
    try:
        get_core_api().list_namespace(limit=1)
    except Exception as e:
        logger.error(f"Cannot reach the Kubernetes API: {e}")
        get_api_client.cache_clear()
        return False

    logger.info(f"Kubernetes API reachable ({'in-cluster' if settings.k8s_in_cluster else 'kubeconfig'})")
    return True

def ensure_namespace():
    """Create the step namespace unless it exists."""
    core_v1 = get_core_api()

    try:
        core_v1.read_namespace(name=settings.k8s_namespace)
    except ApiException as e:
        if e.status != 404:
            raise
        core_v1.create_namespace(
            body=client.V1Namespace(metadata=client.V1ObjectMeta(name=settings.k8s_namespace))
        )
        logger.info(f"Created namespace '{settings.k8s_namespace}'")

def delete_job(job_name: str):
    """Delete a step Job together with its pod. Missing Jobs are ignored."""
    try:
        get_batch_api().delete_namespaced_job(
            name=job_name,
            namespace=settings.k8s_namespace,
            body=client.V1DeleteOptions(propagation_policy="Foreground"),
        )
    except ApiException as e:
        if e.status != 404:
            raise
