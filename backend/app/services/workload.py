"""Workload handoff from a faculty member on leave to a department peer.

    pending -> accepted   (terminal)
    pending -> rejected   (terminal)

Unlike leave review, a response is never re-applied: any second response
raises :class:`InvalidStateError`. Assignments are independent of their
parent leave once created; rejecting the leave does not cancel them.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Literal

from sqlalchemy import false, or_, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.db.base import utcnow
from app.db.store import commit, compare_and_set_status, fetch_all, get_record, insert_record
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.notification import NotificationType
from app.models.user import User, UserRole
from app.models.workload_assignment import WorkloadAssignment, WorkloadStatus
from app.services.audit import log_activity
from app.services.leaves import get_leave_record
from app.services.notifications import NotificationSink, WorkflowEvent, dispatch
from app.services.policy import (
    Action,
    ActorContext,
    ResourceKind,
    ResourceRef,
    ensure_allowed,
    is_allowed,
    leave_ref,
    workload_ref,
)

logger = logging.getLogger(__name__)

ASSIGNABLE_LEAVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)
DECISION_STATUS = {"accept": WorkloadStatus.accepted, "reject": WorkloadStatus.rejected}


@dataclass
class WorkloadFilter:
    leave_id: str | None = None
    assignee_id: str | None = None
    assigned_by_id: str | None = None
    status: WorkloadStatus | None = None
    limit: int | None = None


def _clean_items(values: list[str] | None, *, field: str) -> list[str]:
    cleaned = [str(item).strip() for item in (values or []) if str(item).strip()]
    if not cleaned:
        raise ValidationError(f"At least one entry is required in {field}", details={"field": field})
    return cleaned


def get_assignment_record(db: Session, assignment_id: str) -> WorkloadAssignment:
    assignment = get_record(db, WorkloadAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError("WorkloadAssignment", assignment_id)
    return assignment


def create_assignment(
    db: Session,
    actor: ActorContext,
    *,
    leave_id: str,
    assignee_id: str,
    subjects: list[str],
    classes: list[str],
    total_hours: float,
    notifier: NotificationSink | None = None,
) -> WorkloadAssignment:
    if actor.role not in (UserRole.faculty, UserRole.hod):
        raise ForbiddenError("Only faculty members and HODs can assign workload")

    leave = get_leave_record(db, leave_id)
    assignee = get_record(db, User, assignee_id)
    if assignee is None:
        raise NotFoundError("User", assignee_id)

    if leave.department != actor.department:
        raise ForbiddenError("Leave belongs to another department")
    ensure_allowed(actor, Action.create, ResourceKind.workload, ResourceRef(department=assignee.department))

    if assignee.id == leave.user_id:
        raise ValidationError("Workload cannot be assigned to the faculty member on leave")
    if assignee.role != UserRole.faculty or not assignee.is_active:
        raise ValidationError("Workload can only be assigned to active faculty members")
    subjects = _clean_items(subjects, field="subjects")
    classes = _clean_items(classes, field="classes")
    if total_hours is None or total_hours <= 0:
        raise ValidationError("Total hours must be greater than zero", details={"field": "total_hours"})
    if leave.status not in ASSIGNABLE_LEAVE_STATUSES:
        raise InvalidStateError(
            "Workload can only be assigned for pending or approved leave",
            details={"status": leave.status.value},
        )

    assignment = insert_record(
        db,
        WorkloadAssignment(
            leave_request_id=leave.id,
            assignee_id=assignee.id,
            assigned_by_id=actor.id,
            department=actor.department,
            subjects=subjects,
            classes=classes,
            total_hours=float(total_hours),
            status=WorkloadStatus.pending,
            assigned_at=utcnow(),
        ),
    )
    log_activity(
        db,
        actor=actor,
        action="workload.assigned",
        entity_type=ResourceKind.workload.value,
        entity_id=assignment.id,
        details={"leave_request_id": leave.id, "assignee_id": assignee.id, "total_hours": assignment.total_hours},
    )
    commit(db)
    logger.info("Workload %s assigned to %s by %s", assignment.id, assignee.id, actor.id)

    dispatch(
        notifier,
        db,
        WorkflowEvent(
            kind="workload.assigned",
            title="New workload assignment",
            message=f"You have been asked to cover {assignment.total_hours:g} hour(s): {', '.join(subjects)}.",
            entity_id=assignment.id,
            recipient_ids=(assignment.assignee_id,),
            notification_type=NotificationType.workload,
        ),
    )
    return assignment


def respond_to_assignment(
    db: Session,
    actor: ActorContext,
    assignment_id: str,
    *,
    decision: Literal["accept", "reject"],
    rejection_reason: str | None = None,
    notifier: NotificationSink | None = None,
) -> WorkloadAssignment:
    assignment = get_assignment_record(db, assignment_id)
    ensure_allowed(actor, Action.respond, ResourceKind.workload, workload_ref(assignment))
    if assignment.status != WorkloadStatus.pending:
        raise InvalidStateError(
            f"Workload assignment has already been {assignment.status.value}",
            details={"status": assignment.status.value},
        )

    target = DECISION_STATUS.get(decision)
    if target is None:
        raise ValidationError(f"Unknown decision: {decision}", details={"field": "decision"})
    reason = (rejection_reason or "").strip() or None
    if target == WorkloadStatus.rejected:
        if reason is None:
            raise ValidationError("Rejection reason is required", details={"field": "rejection_reason"})
        if len(reason) > get_settings().leave_reason_max_length:
            raise ValidationError("Rejection reason is too long", details={"field": "rejection_reason"})
    else:
        reason = None

    now = utcnow()
    won = compare_and_set_status(
        db,
        WorkloadAssignment,
        assignment.id,
        expected=WorkloadStatus.pending,
        values={
            "status": target,
            "rejection_reason": reason,
            "responded_by_id": actor.id,
            "responded_at": now,
        },
    )
    current = get_record(db, WorkloadAssignment, assignment.id, fresh=True)
    if not won:
        logger.warning("Response to workload %s lost to a concurrent response", assignment.id)
        raise InvalidStateError(
            f"Workload assignment has already been {current.status.value}",
            details={"status": current.status.value},
        )

    log_activity(
        db,
        actor=actor,
        action=f"workload.{target.value}",
        entity_type=ResourceKind.workload.value,
        entity_id=assignment.id,
        department=current.department,
        details={"on_behalf": actor.id != current.assignee_id},
    )
    commit(db)
    logger.info("Workload %s %s by %s", assignment.id, target.value, actor.id)

    dispatch(
        notifier,
        db,
        WorkflowEvent(
            kind=f"workload.{target.value}",
            title=f"Workload {target.value}",
            message=f"Your workload handoff of {current.total_hours:g} hour(s) was {target.value}.",
            entity_id=current.id,
            recipient_ids=(current.assigned_by_id,),
            notification_type=NotificationType.workload,
        ),
    )
    return current


def visible_assignments_statement(actor: ActorContext):
    statement = select(WorkloadAssignment)
    if actor.role == UserRole.faculty:
        return statement.where(
            or_(WorkloadAssignment.assignee_id == actor.id, WorkloadAssignment.assigned_by_id == actor.id)
        )
    if actor.role == UserRole.hod:
        return statement.where(WorkloadAssignment.department == actor.department)
    if actor.role == UserRole.admin:
        return statement
    return statement.where(false())


def list_assignments(
    db: Session,
    actor: ActorContext,
    filters: WorkloadFilter | None = None,
) -> list[WorkloadAssignment]:
    filters = filters or WorkloadFilter()
    statement = visible_assignments_statement(actor)
    if filters.leave_id:
        statement = statement.where(WorkloadAssignment.leave_request_id == filters.leave_id)
    if filters.assignee_id:
        statement = statement.where(WorkloadAssignment.assignee_id == filters.assignee_id)
    if filters.assigned_by_id:
        statement = statement.where(WorkloadAssignment.assigned_by_id == filters.assigned_by_id)
    if filters.status is not None:
        statement = statement.where(WorkloadAssignment.status == filters.status)
    statement = statement.order_by(WorkloadAssignment.assigned_at.desc(), WorkloadAssignment.id.desc())
    if filters.limit:
        statement = statement.limit(filters.limit)
    return fetch_all(db, statement)


def list_for_assignee(db: Session, actor: ActorContext) -> list[WorkloadAssignment]:
    return list_assignments(db, actor, WorkloadFilter(assignee_id=actor.id))


def list_for_leave(db: Session, actor: ActorContext, leave_id: str) -> list[WorkloadAssignment]:
    leave: LeaveRequest = get_leave_record(db, leave_id)
    assignments = list_assignments(db, actor, WorkloadFilter(leave_id=leave.id))
    if not assignments and not is_allowed(actor, Action.view, ResourceKind.leave, leave_ref(leave)):
        raise ForbiddenError("Not permitted to view workload for this leave")
    return assignments
