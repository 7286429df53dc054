"""Tests for the Kubernetes step backend with a mocked API."""

import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes import client

from runner.src.actions import StepCommand
from runner.src.models.step import StepConfig
from runner.src.services.k8s_backend import KubernetesBackend, wait_for_job

def finished_job(succeeded: bool) -> client.V1Job:
    status = client.V1JobStatus(succeeded=1) if succeeded else client.V1JobStatus(failed=1)
    return client.V1Job(status=status)

@pytest.fixture
def batch_api():
    api = MagicMock()
    api.threads = []
    api.create_namespaced_job.side_effect = lambda **kwargs: api.threads.append(
        threading.current_thread()
    )
    api.read_namespaced_job.return_value = finished_job(succeeded=True)
    with patch("runner.src.services.k8s_backend.get_batch_api", return_value=api):
        yield api

@pytest.mark.asyncio
async def test_run_step_calls_api_off_the_event_loop(batch_api, job):
    step = StepConfig(name="Build", run="cargo build", timeout=60)
    command = StepCommand(argv=["/bin/sh", "-e", "-c", "cargo build"])

    with patch(
        "runner.src.services.k8s_backend.collect_step_logs",
        new=AsyncMock(return_value="Finished dev profile"),
    ):
        outcome = await KubernetesBackend().run_step(job, 0, step, command)

    assert outcome.success
    assert outcome.logs == "Finished dev profile"
    assert batch_api.threads and batch_api.threads[0] is not threading.main_thread()
    body = batch_api.create_namespaced_job.call_args.kwargs["body"]
    assert body.spec.active_deadline_seconds == 60

@pytest.mark.asyncio
async def test_wait_for_failed_job(batch_api):
    batch_api.read_namespaced_job.return_value = finished_job(succeeded=False)

    assert await wait_for_job("fc-run-0-build", timeout=60) is False
