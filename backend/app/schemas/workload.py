from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from app.models.workload_assignment import WorkloadStatus


class WorkloadAssignmentCreate(BaseModel):
    leave_request_id: str = Field(min_length=1, max_length=36)
    assignee_id: str = Field(min_length=1, max_length=36)
    subjects: list[str] = Field(min_length=1, max_length=50)
    classes: list[str] = Field(min_length=1, max_length=50)
    total_hours: float = Field(gt=0)


class WorkloadAssignmentRespond(BaseModel):
    decision: Literal["accept", "reject"]
    rejection_reason: str | None = Field(default=None, max_length=1000)

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class WorkloadAssignmentOut(BaseModel):
    id: str
    leave_request_id: str
    assignee_id: str
    assigned_by_id: str
    department: str
    subjects: list[str]
    classes: list[str]
    total_hours: float
    status: WorkloadStatus
    rejection_reason: str | None = None
    responded_by_id: str | None = None
    assigned_at: datetime
    responded_at: datetime | None = None

    model_config = {"from_attributes": True}
