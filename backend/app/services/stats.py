from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.store import fetch_all
from app.models.leave_request import LeaveStatus, leave_days_in_year
from app.models.user import UserRole
from app.models.workload_assignment import WorkloadAssignment, WorkloadStatus
from app.services.directory import count_department_faculty
from app.services.leaves import institution_today, visible_leaves_statement
from app.services.policy import ActorContext
from app.services.workload import visible_assignments_statement


@dataclass
class DashboardStats:
    scope: str
    total_leaves: int = 0
    leaves_by_status: dict[str, int] = field(default_factory=dict)
    approved_days: int = 0
    approved_days_this_year: int = 0
    leave_balance: int | None = None
    faculty_count: int = 0
    pending_approvals: int = 0
    workload_by_status: dict[str, int] = field(default_factory=dict)
    total_workload_hours: float = 0.0


def _scope_for(actor: ActorContext) -> str:
    if actor.role == UserRole.admin:
        return "all"
    if actor.role == UserRole.hod:
        return "department"
    return "own"


def compute_dashboard_stats(db: Session, actor: ActorContext, *, today: date | None = None) -> DashboardStats:
    """Recompute dashboard counters from the records visible to ``actor``."""
    settings = get_settings()
    today = today or institution_today()
    leaves = fetch_all(db, visible_leaves_statement(actor))

    assignment_statement = visible_assignments_statement(actor)
    if actor.role == UserRole.faculty:
        # A faculty dashboard counts the workload addressed to them, not what they handed off.
        assignment_statement = assignment_statement.where(WorkloadAssignment.assignee_id == actor.id)
    assignments = fetch_all(db, assignment_statement)

    leave_counts = Counter(item.status.value for item in leaves)
    approved = [item for item in leaves if item.status == LeaveStatus.approved]
    approved_this_year = sum(leave_days_in_year(item.start_date, item.end_date, today.year) for item in approved)

    workload_counts = Counter(item.status.value for item in assignments)

    stats = DashboardStats(
        scope=_scope_for(actor),
        total_leaves=len(leaves),
        leaves_by_status={status.value: leave_counts.get(status.value, 0) for status in LeaveStatus},
        approved_days=sum(item.total_days for item in approved),
        approved_days_this_year=approved_this_year,
        faculty_count=count_department_faculty(db, None if actor.role == UserRole.admin else actor.department),
        workload_by_status={status.value: workload_counts.get(status.value, 0) for status in WorkloadStatus},
        total_workload_hours=sum(item.total_hours for item in assignments if item.status == WorkloadStatus.accepted),
    )
    if actor.role == UserRole.faculty:
        stats.leave_balance = max(0, settings.annual_leave_quota_days - approved_this_year)
    else:
        stats.pending_approvals = leave_counts.get(LeaveStatus.pending.value, 0)
    return stats
