from runner.src.services.executor import execute_pipeline, execute_step
from runner.src.services.backends import StepBackend, StepOutcome, LocalBackend, get_backend
from runner.src.services.status_reporter import (
    RunReporter,
    StatusReporter,
    update_run_status,
    update_step_status,
)

__all__ = [
    "execute_pipeline",
    "execute_step",
    "StepBackend",
    "StepOutcome",
    "LocalBackend",
    "get_backend",
    "RunReporter",
    "StatusReporter",
    "update_run_status",
    "update_step_status",
]
