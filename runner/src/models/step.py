"""
Step and run execution models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class StepConfig(BaseModel):
    name: str
    run: Optional[str] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    env: Dict[str, str] = {}
    # Seconds; None until the runner applies its default
    timeout: Optional[int] = None

    model_config = {"populate_by_name": True}

class StepResult(BaseModel):
    step_order: int
    name: str
    status: StepStatus
    logs: Optional[str] = None
    exit_code: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

class TriggerInfo(BaseModel):
    kind: str
    branch: str
    tag: str = ""
    repo_name: str = ""
    repo_full_name: str = ""
    clone_url: str = ""
    commit_sha: str = ""
    commit_message: str = ""
    actor: str = ""
    pull_request_number: int = 0

class PipelineJob(BaseModel):
    run_id: str
    config: Dict[str, Any]
    trigger: TriggerInfo
    queued_at: str

    @property
    def steps(self) -> List[StepConfig]:
        return [StepConfig.model_validate(s) for s in self.config.get("steps", [])]

    @property
    def env(self) -> Dict[str, str]:
        return dict(self.config.get("env", {}))

class RunResult(BaseModel):
    run_id: str
    status: RunStatus
    steps: List[StepResult] = []
    # 0-based index of the step that failed
    failed_step: Optional[int] = None
    # Set when the run failed before its first step, e.g. a clone error
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def failed_result(self) -> Optional[StepResult]:
        if self.failed_step is None:
            return None
        return self.steps[self.failed_step]

    def describe(self) -> str:
        """'succeeded' or 'failed at step N: <name>'."""
        failed = self.failed_result
        if failed is None:
            if self.error:
                return f"{self.status.value}: {self.error}"
            return self.status.value
        return f"failed at step {failed.step_order + 1}: {failed.name}"
