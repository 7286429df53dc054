"""
Kubernetes Job builder for pipeline steps.

Each step runs in its own Job: an init container clones the repository at
the triggering commit into a shared emptyDir, then the step container runs
the step's command inside the checkout.
"""

from kubernetes import client
from typing import Dict, Optional
import hashlib
import posixpath
import shlex

from runner.src.actions import StepCommand
from runner.src.config import get_settings

settings = get_settings()

WORKSPACE_MOUNT = "/workspace"
CHECKOUT_PATH = posixpath.join(WORKSPACE_MOUNT, "repo")

def build_job_name(run_id: str, step_order: int, step_name: str) -> str:
    """Generate a unique job name."""
    # K8s names must be lowercase, alphanumeric, max 63 chars
    safe_name = step_name.lower().replace(" ", "-").replace("_", "-")
    safe_name = "".join(c for c in safe_name if c.isalnum() or c == "-")
    safe_name = safe_name[:20].strip("-") or "step"

    run_hash = hashlib.md5(run_id.encode()).hexdigest()[:8]

    return f"fc-{run_hash}-{step_order}-{safe_name}"

def clone_script(clone_url: str, commit_sha: str) -> str:
    script = f"git clone --depth 1 {shlex.quote(clone_url)} {CHECKOUT_PATH}"
    if commit_sha:
        sha = shlex.quote(commit_sha)
        script += (
            f" && cd {CHECKOUT_PATH}"
            f" && (git fetch --depth 1 origin {sha} || true)"
            f" && git checkout --detach {sha}"
        )
    return script

def step_workdir(command: StepCommand) -> str:
    if not command.working_directory:
        return CHECKOUT_PATH
    return posixpath.join(CHECKOUT_PATH, command.working_directory)

def build_labels(run_id: str, step_order: int) -> Dict[str, str]:
    return {
        "app": "ferroci",
        "run-id": run_id,
        "step-order": str(step_order),
    }

def build_job(
    run_id: str,
    step_order: int,
    step_name: str,
    command: StepCommand,
    clone_url: str,
    commit_sha: str,
    timeout: int = 600,
    image: Optional[str] = None,
) -> client.V1Job:
    """
    Build a Kubernetes Job for a pipeline step.
    """
    job_name = build_job_name(run_id, step_order, step_name)
    labels = build_labels(run_id, step_order)

    env = [
        client.V1EnvVar(name="FERROCI_RUN_ID", value=run_id),
        client.V1EnvVar(name="FERROCI_STEP_ORDER", value=str(step_order)),
        client.V1EnvVar(name="FERROCI_STEP_NAME", value=step_name),
    ]
    for key, value in command.env.items():
        env.append(client.V1EnvVar(name=key, value=value))

    volume_mount = client.V1VolumeMount(name="workspace", mount_path=WORKSPACE_MOUNT)

    checkout = client.V1Container(
        name="checkout",
        image=settings.git_image,
        command=["/bin/sh", "-c"],
        args=[clone_script(clone_url, commit_sha)],
        volume_mounts=[volume_mount],
    )

    container = client.V1Container(
        name="step",
        image=image or settings.step_image,
        command=command.argv,
        working_dir=step_workdir(command),
        env=env,
        volume_mounts=[volume_mount],
        resources=client.V1ResourceRequirements(
            requests={"cpu": "500m", "memory": "512Mi"},
            limits={"cpu": "2", "memory": "4Gi"},
        ),
    )

    pod_spec = client.V1PodSpec(
        init_containers=[checkout],
        containers=[container],
        restart_policy="Never",
        volumes=[
            client.V1Volume(name="workspace", empty_dir=client.V1EmptyDirVolumeSource()),
        ],
    )

    job_spec = client.V1JobSpec(
        template=client.V1PodTemplateSpec(
            metadata=client.V1ObjectMeta(labels=labels),
            spec=pod_spec,
        ),
        backoff_limit=0,  # Steps are never retried
        active_deadline_seconds=timeout,
        ttl_seconds_after_finished=settings.job_ttl_after_finished,
    )

    return client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=client.V1ObjectMeta(
            name=job_name,
            namespace=settings.k8s_namespace,
            labels=labels,
        ),
        spec=job_spec,
    )

def get_job_status(job: client.V1Job) -> str:
    """
    Determine job status from Kubernetes Job object.
    Returns: 'pending', 'running', 'succeeded', 'failed'
    """
    if job.status is None:
        return "pending"

    if job.status.succeeded and job.status.succeeded > 0:
        return "succeeded"

    if job.status.failed and job.status.failed > 0:
        return "failed"

    if job.status.active and job.status.active > 0:
        return "running"

    return "pending"
