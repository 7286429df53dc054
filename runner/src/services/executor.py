"""
Pipeline executor - runs a run's steps in order and stops at the first failure.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from runner.src.actions import (
    StepCommand,
    UnsupportedActionError,
    report_token,
    resolve_command,
)
from runner.src.config import get_settings
from runner.src.errors import StepExecutionError, WorkspaceError
from runner.src.models.step import (
    PipelineJob,
    RunResult,
    RunStatus,
    StepConfig,
    StepResult,
    StepStatus,
)
from runner.src.services.backends import StepBackend, get_backend
from runner.src.services.status_reporter import RunReporter, StatusReporter

logger = logging.getLogger(__name__)
settings = get_settings()

def base_env(job: PipelineJob) -> Dict[str, str]:
    """Process-wide environment, overridden by the workflow's `env`."""
    env = {"CARGO_TERM_COLOR": settings.cargo_term_color}
    env.update(job.env)
    return env

def with_timeout(step: StepConfig) -> StepConfig:
    if step.timeout is not None:
        return step
    return step.model_copy(update={"timeout": settings.step_timeout})

async def execute_pipeline(
    job: PipelineJob,
    backend: Optional[StepBackend] = None,
    reporter: Optional[RunReporter] = None,
) -> RunResult:
    """
    Execute a pipeline run.

    Steps run strictly in order; step i+1 starts only if step i succeeded.
    The first failure ends the run and every later step is marked skipped.
    """
    backend = backend or get_backend()
    reporter = reporter or StatusReporter()
    steps = [with_timeout(step) for step in job.steps]

    logger.info(f"Starting pipeline run {job.run_id} with {len(steps)} steps")

    result = RunResult(
        run_id=job.run_id,
        status=RunStatus.RUNNING,
        started_at=datetime.utcnow(),
        steps=[
            StepResult(step_order=i, name=step.name, status=StepStatus.PENDING)
            for i, step in enumerate(steps)
        ],
    )
    await reporter.run_started(job, result)

    env = base_env(job)
    token = report_token(steps)

    try:
        await backend.prepare(job)

        for i, step in enumerate(steps):
            try:
                command = resolve_command(step, env)
            except UnsupportedActionError as e:
                command = None
                error = str(e)
            except Exception as e:
                logger.exception(f"Step {i} ({step.name}) could not be resolved")
                command = None
                error = f"Invalid step '{step.name}': {e}"
            else:
                error = None

            step_result = await execute_step(job, i, step, command, backend, reporter, error)
            result.steps[i] = step_result

            if step_result.status == StepStatus.FAILED:
                result.failed_step = i
                break
    except WorkspaceError as e:
        logger.error(f"Pipeline run {job.run_id} could not prepare its workspace: {e}")
        result.error = str(e)
    except Exception as e:
        logger.exception(f"Pipeline run {job.run_id} aborted")
        result.error = str(e)
    finally:
        await backend.cleanup(job)

    for step_result in result.steps:
        if step_result.status == StepStatus.PENDING:
            step_result.status = StepStatus.SKIPPED
            await reporter.step_finished(job, step_result)

    if result.error is None and result.failed_step is None:
        result.status = RunStatus.SUCCEEDED
    else:
        result.status = RunStatus.FAILED
    result.finished_at = datetime.utcnow()

    await reporter.run_finished(job, result, token)

    logger.info(f"Pipeline run {job.run_id} finished: {result.describe()}")
    return result

async def execute_step(
    job: PipelineJob,
    step_order: int,
    step: StepConfig,
    command: Optional[StepCommand],
    backend: StepBackend,
    reporter: RunReporter,
    error: Optional[str] = None,
) -> StepResult:
    """
    Execute a single pipeline step.

    A step without a command fails with `error` as its diagnostic.
    """
    step_result = StepResult(
        step_order=step_order,
        name=step.name,
        status=StepStatus.RUNNING,
        started_at=datetime.utcnow(),
    )
    logger.info(f"Executing step {step_order}: {step.name}")
    await reporter.step_started(job, step_result)

    if command is None:
        step_result.status = StepStatus.FAILED
        step_result.error = error
        step_result.logs = error
    else:
        try:
            outcome = await backend.run_step(job, step_order, step, command)
        except StepExecutionError as e:
            step_result.status = StepStatus.FAILED
            step_result.error = str(e)
            step_result.logs = e.diagnostic
        except Exception as e:
            logger.exception(f"Step {step_order} ({step.name}) failed with exception")
            step_result.status = StepStatus.FAILED
            step_result.error = str(e)
            step_result.logs = str(e)
        else:
            step_result.status = StepStatus.SUCCEEDED if outcome.success else StepStatus.FAILED
            step_result.logs = outcome.logs
            step_result.exit_code = outcome.exit_code

    step_result.finished_at = datetime.utcnow()

    if step_result.status == StepStatus.SUCCEEDED:
        logger.info(f"Step {step_order} ({step.name}) succeeded")
    else:
        logger.error(f"Step {step_order} ({step.name}) failed")

    await reporter.step_finished(job, step_result)
    return step_result
