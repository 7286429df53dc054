from gateway.src.models.pipeline import Repository, PipelineRun, PipelineStep
from gateway.src.models.run import (
    PipelineRunResponse,
    StepResponse,
    RepositoryResponse,
    WebhookResult,
)
from gateway.src.models.trigger import EventKind, Trigger, BranchFilter

__all__ = [
    "Repository",
    "PipelineRun",
    "PipelineStep",
    "PipelineRunResponse",
    "StepResponse",
    "RepositoryResponse",
    "WebhookResult",
    "EventKind",
    "Trigger",
    "BranchFilter",
]
