from runner.src.models.step import (
    StepStatus,
    RunStatus,
    StepConfig,
    StepResult,
    TriggerInfo,
    PipelineJob,
    RunResult,
)

__all__ = [
    "StepStatus",
    "RunStatus",
    "StepConfig",
    "StepResult",
    "TriggerInfo",
    "PipelineJob",
    "RunResult",
]
