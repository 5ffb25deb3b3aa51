from pydantic import BaseModel

from app.schemas.leave import LeaveRequestOut


class DashboardStatsOut(BaseModel):
    scope: str
    total_leaves: int
    leaves_by_status: dict[str, int]
    approved_days: int
    approved_days_this_year: int
    leave_balance: int | None = None
    faculty_count: int
    pending_approvals: int
    workload_by_status: dict[str, int]
    total_workload_hours: float
    recent_leaves: list[LeaveRequestOut] = []

    model_config = {"from_attributes": True}
