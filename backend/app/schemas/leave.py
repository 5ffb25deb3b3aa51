from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.leave_request import LeaveStatus, LeaveType


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=1)

    @field_validator("leave_type", mode="before")
    @classmethod
    def normalize_leave_type(cls, value):
        # Legacy forms submit "Sick", "Casual", ...
        return value.strip().lower() if isinstance(value, str) else value


class LeaveRequestUpdate(BaseModel):
    leave_type: LeaveType | None = None
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None

    @field_validator("leave_type", mode="before")
    @classmethod
    def normalize_leave_type(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class LeaveApprove(BaseModel):
    comments: str | None = None


class LeaveReject(BaseModel):
    rejection_reason: str = Field(min_length=1)


class LeaveRequestOut(BaseModel):
    id: str
    user_id: str
    department: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatus
    reviewed_by_id: str | None = None
    review_comment: str | None = None
    rejection_reason: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
