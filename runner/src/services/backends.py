"""
Step backends: where a step's command actually runs.
"""

import asyncio
import logging
import os
import signal
from typing import Dict, Optional

from pydantic import BaseModel

from runner.src.actions import StepCommand
from runner.src.config import get_settings
from runner.src.errors import StepExecutionError
from runner.src.models.step import PipelineJob, StepConfig
from runner.src.services import workspace

logger = logging.getLogger(__name__)
settings = get_settings()

class StepOutcome(BaseModel):
    success: bool
    logs: str = ""
    exit_code: Optional[int] = None

class StepBackend:
    """
    Executes one step at a time for a run.

    prepare() is awaited once before the first step, cleanup() once after
    the last step that ran, whatever the outcome.
    """

    async def prepare(self, job: PipelineJob):
        pass

    async def run_step(
        self,
        job: PipelineJob,
        step_order: int,
        step: StepConfig,
        command: StepCommand,
    ) -> StepOutcome:
        raise NotImplementedError

    async def cleanup(self, job: PipelineJob):
        pass

async def read_output(stream: asyncio.StreamReader, buffer: bytearray):
    """Append everything from `stream` to `buffer` until EOF."""
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            break
        buffer.extend(chunk)

class LocalBackend(StepBackend):
    """Runs steps as subprocesses in a per-run checkout."""

    def __init__(self, workspace_root: Optional[str] = None):
        self.workspace_root = workspace_root or settings.workspace_root

    def workspace_for(self, job: PipelineJob) -> str:
        return os.path.join(self.workspace_root, job.run_id, "repo")

    async def prepare(self, job: PipelineJob):
        await workspace.checkout(
            job.trigger.clone_url,
            job.trigger.commit_sha,
            self.workspace_for(job),
        )

    def step_cwd(self, job: PipelineJob, command: StepCommand) -> str:
        repo = self.workspace_for(job)
        if not command.working_directory:
            return repo
        return os.path.join(repo, command.working_directory)

    def step_env(self, command: StepCommand) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(command.env)
        return env

    async def run_step(self, job, step_order, step, command) -> StepOutcome:
        cwd = self.step_cwd(job, command)
        logger.info(f"Running step {step_order} ({step.name}): {' '.join(command.argv)} in {cwd}")

        proc = await asyncio.create_subprocess_exec(
            *command.argv,
            cwd=cwd,
            env=self.step_env(command),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            # Own process group, so a timeout also kills what the step spawned
            start_new_session=True,
        )

        output = bytearray()
        reader = asyncio.create_task(read_output(proc.stdout, output))

        try:
            await asyncio.wait_for(proc.wait(), step.timeout)
        except asyncio.TimeoutError:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            await proc.wait()
            # Whatever the step printed before it was killed is its diagnostic
            await reader
            raise StepExecutionError(
                step_order,
                step.name,
                f"Step timed out after {step.timeout}s",
                logs=output.decode("utf-8", errors="replace"),
            )

        await reader
        return StepOutcome(
            success=proc.returncode == 0,
            logs=output.decode("utf-8", errors="replace"),
            exit_code=proc.returncode,
        )

    async def cleanup(self, job: PipelineJob):
        workspace.remove(os.path.dirname(self.workspace_for(job)))

def get_backend(name: Optional[str] = None) -> StepBackend:
    """Backend selected by settings.backend."""
    name = name or settings.backend

    if name == "local":
        return LocalBackend()

    if name == "kubernetes":
        from runner.src.services.k8s_backend import KubernetesBackend
        return KubernetesBackend()

    raise ValueError(f"Unknown backend '{name}'")
