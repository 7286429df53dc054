from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID

class StepBase(BaseModel):
    name: str
    run: Optional[str] = None
    uses: Optional[str] = None

class StepResponse(StepBase):
    id: UUID
    status: str
    step_order: int
    logs: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PipelineRunBase(BaseModel):
    event: str
    commit_sha: str
    branch: str

class PipelineRunResponse(PipelineRunBase):
    id: UUID
    status: str
    failed_step: Optional[int] = None
    triggered_by: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime
    steps: List[StepResponse] = []

    class Config:
        from_attributes = True

class RepositoryResponse(BaseModel):
    id: UUID
    name: str
    full_name: str
    clone_url: str
    created_at: datetime

    class Config:
        from_attributes = True

class WebhookResult(BaseModel):
    """Outcome of a webhook delivery, returned to the hosting service."""
    status: str
    reason: Optional[str] = None
    run_id: Optional[str] = None
    steps: Optional[int] = None
    event: Optional[str] = None
