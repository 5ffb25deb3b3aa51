"""Leave request lifecycle.

    pending -> approved   (terminal)
    pending -> rejected   (terminal)

Transitions are conditional updates on the status column. Re-applying the
decision a leave already carries is a no-op that keeps the first resolver;
applying the opposite decision raises :class:`InvalidStateError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Literal
from zoneinfo import ZoneInfo

from sqlalchemy import false, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.db.base import utcnow
from app.db.store import commit, compare_and_set_status, fetch_all, get_record, insert_record
from app.models.leave_request import LeaveRequest, LeaveStatus, LeaveType, count_leave_days
from app.models.notification import NotificationType
from app.models.user import UserRole
from app.services.audit import log_activity
from app.services.notifications import NotificationSink, WorkflowEvent, dispatch
from app.services.policy import Action, ActorContext, ResourceKind, ensure_allowed, leave_ref

logger = logging.getLogger(__name__)


@dataclass
class LeaveFilter:
    owner_id: str | None = None
    status: LeaveStatus | None = None
    department: str | None = None
    sort: Literal["created_at", "updated_at"] = "created_at"
    limit: int | None = None


def institution_today() -> date:
    return datetime.now(ZoneInfo(get_settings().institution_timezone)).date()


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _require_text(value: str | None, *, field: str, max_length: int) -> str:
    cleaned = _clean_text(value)
    if cleaned is None:
        raise ValidationError(f"{field} is required", details={"field": field})
    if len(cleaned) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            details={"field": field, "max_length": max_length},
        )
    return cleaned


def _optional_text(value: str | None, *, field: str, max_length: int) -> str | None:
    if _clean_text(value) is None:
        return None
    return _require_text(value, field=field, max_length=max_length)


def _coerce_leave_type(value: LeaveType | str) -> LeaveType:
    try:
        return LeaveType(value.lower() if isinstance(value, str) else value)
    except ValueError as exc:
        raise ValidationError(f"Unknown leave type: {value}", details={"field": "leave_type"}) from exc


def _validate_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError(
            "End date must be on or after start date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


def _validate_start(start_date: date, today: date) -> None:
    if start_date < today:
        raise ValidationError("Start date cannot be in the past", details={"start_date": start_date.isoformat()})


def get_leave_record(db: Session, leave_id: str) -> LeaveRequest:
    leave = get_record(db, LeaveRequest, leave_id)
    if leave is None:
        raise NotFoundError("LeaveRequest", leave_id)
    return leave


def get_leave(db: Session, actor: ActorContext, leave_id: str) -> LeaveRequest:
    leave = get_leave_record(db, leave_id)
    ensure_allowed(actor, Action.view, ResourceKind.leave, leave_ref(leave))
    return leave


def create_leave(
    db: Session,
    actor: ActorContext,
    *,
    leave_type: LeaveType | str,
    start_date: date,
    end_date: date,
    reason: str,
    today: date | None = None,
) -> LeaveRequest:
    if actor.role != UserRole.faculty:
        raise ForbiddenError("Only faculty members can request leave")
    settings = get_settings()
    leave_type = _coerce_leave_type(leave_type)
    _validate_start(start_date, today or institution_today())
    _validate_range(start_date, end_date)
    reason = _require_text(reason, field="reason", max_length=settings.leave_reason_max_length)

    now = utcnow()
    leave = insert_record(
        db,
        LeaveRequest(
            user_id=actor.id,
            department=actor.department,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            status=LeaveStatus.pending,
            created_at=now,
            updated_at=now,
        ),
    )
    log_activity(
        db,
        actor=actor,
        action="leave.created",
        entity_type=ResourceKind.leave.value,
        entity_id=leave.id,
        details={"total_days": leave.total_days, "leave_type": leave_type.value},
    )
    commit(db)
    logger.info("Leave %s created by %s for %s day(s)", leave.id, actor.id, leave.total_days)
    return leave


def update_leave(
    db: Session,
    actor: ActorContext,
    leave_id: str,
    *,
    leave_type: LeaveType | str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    reason: str | None = None,
    today: date | None = None,
) -> LeaveRequest:
    leave = get_leave(db, actor, leave_id)
    if leave.status != LeaveStatus.pending:
        raise InvalidStateError(
            "Only pending leave requests can be edited",
            details={"status": leave.status.value},
        )
    ensure_allowed(actor, Action.edit, ResourceKind.leave, leave_ref(leave))

    settings = get_settings()
    new_start = start_date or leave.start_date
    new_end = end_date or leave.end_date
    if start_date is not None:
        _validate_start(start_date, today or institution_today())
    _validate_range(new_start, new_end)

    values: dict = {
        "start_date": new_start,
        "end_date": new_end,
        "total_days": count_leave_days(new_start, new_end),
        "updated_at": utcnow(),
    }
    if leave_type is not None:
        values["leave_type"] = _coerce_leave_type(leave_type)
    if reason is not None:
        values["reason"] = _require_text(reason, field="reason", max_length=settings.leave_reason_max_length)

    if not compare_and_set_status(db, LeaveRequest, leave.id, expected=LeaveStatus.pending, values=values):
        current = get_record(db, LeaveRequest, leave.id, fresh=True)
        logger.warning("Edit of leave %s lost to a concurrent review", leave.id)
        raise InvalidStateError(
            "Leave request was reviewed before the edit was applied",
            details={"status": current.status.value},
        )
    log_activity(
        db,
        actor=actor,
        action="leave.updated",
        entity_type=ResourceKind.leave.value,
        entity_id=leave.id,
        details={"total_days": values["total_days"]},
    )
    commit(db)
    return get_record(db, LeaveRequest, leave.id, fresh=True)


def _ensure_can_resolve(actor: ActorContext, leave: LeaveRequest, action: Action) -> None:
    ensure_allowed(actor, action, ResourceKind.leave, leave_ref(leave))
    # The resolver recorded on a leave must be an HOD of the owner's department.
    if actor.role != UserRole.hod:
        raise ForbiddenError("Only the department HOD can review leave requests")


def _resolve(
    db: Session,
    actor: ActorContext,
    leave: LeaveRequest,
    *,
    target: LeaveStatus,
    values: dict,
    notifier: NotificationSink | None,
) -> LeaveRequest:
    now = utcnow()
    won = compare_and_set_status(
        db,
        LeaveRequest,
        leave.id,
        expected=LeaveStatus.pending,
        values={"status": target, "reviewed_by_id": actor.id, "reviewed_at": now, "updated_at": now, **values},
    )
    current = get_record(db, LeaveRequest, leave.id, fresh=True)
    if not won:
        if current.status == target:
            logger.warning("Leave %s already %s by %s; keeping first decision", leave.id, target.value, current.reviewed_by_id)
            return current
        raise InvalidStateError(
            f"Leave request has already been {current.status.value}",
            details={"status": current.status.value},
        )

    log_activity(
        db,
        actor=actor,
        action=f"leave.{target.value}",
        entity_type=ResourceKind.leave.value,
        entity_id=leave.id,
        details={key: value for key, value in values.items() if value is not None},
    )
    commit(db)
    logger.info("Leave %s %s by %s", leave.id, target.value, actor.id)

    if target == LeaveStatus.approved:
        message = f"Your leave from {current.start_date.isoformat()} to {current.end_date.isoformat()} was approved."
    else:
        message = f"Your leave from {current.start_date.isoformat()} was rejected: {current.rejection_reason}"
    dispatch(
        notifier,
        db,
        WorkflowEvent(
            kind=f"leave.{target.value}",
            title=f"Leave {target.value}",
            message=message,
            entity_id=current.id,
            recipient_ids=(current.user_id,),
            notification_type=NotificationType.leave,
        ),
    )
    return current


def approve_leave(
    db: Session,
    actor: ActorContext,
    leave_id: str,
    *,
    comments: str | None = None,
    notifier: NotificationSink | None = None,
) -> LeaveRequest:
    leave = get_leave_record(db, leave_id)
    _ensure_can_resolve(actor, leave, Action.approve)
    comments = _optional_text(comments, field="comments", max_length=get_settings().leave_comment_max_length)

    if leave.status == LeaveStatus.approved:
        logger.debug("Leave %s already approved; approval by %s is a no-op", leave.id, actor.id)
        return leave
    if leave.status == LeaveStatus.rejected:
        raise InvalidStateError("Leave request has already been rejected", details={"status": leave.status.value})

    return _resolve(
        db,
        actor,
        leave,
        target=LeaveStatus.approved,
        values={"review_comment": comments},
        notifier=notifier,
    )


def reject_leave(
    db: Session,
    actor: ActorContext,
    leave_id: str,
    *,
    rejection_reason: str,
    notifier: NotificationSink | None = None,
) -> LeaveRequest:
    leave = get_leave_record(db, leave_id)
    _ensure_can_resolve(actor, leave, Action.reject)
    rejection_reason = _require_text(
        rejection_reason,
        field="rejection_reason",
        max_length=get_settings().leave_reason_max_length,
    )

    if leave.status == LeaveStatus.rejected:
        logger.debug("Leave %s already rejected; rejection by %s is a no-op", leave.id, actor.id)
        return leave
    if leave.status == LeaveStatus.approved:
        raise InvalidStateError("Leave request has already been approved", details={"status": leave.status.value})

    return _resolve(
        db,
        actor,
        leave,
        target=LeaveStatus.rejected,
        values={"rejection_reason": rejection_reason},
        notifier=notifier,
    )


def visible_leaves_statement(actor: ActorContext):
    statement = select(LeaveRequest)
    if actor.role == UserRole.faculty:
        return statement.where(LeaveRequest.user_id == actor.id)
    if actor.role == UserRole.hod:
        return statement.where(LeaveRequest.department == actor.department)
    if actor.role == UserRole.admin:
        return statement
    return statement.where(false())


def list_leaves(db: Session, actor: ActorContext, filters: LeaveFilter | None = None) -> list[LeaveRequest]:
    filters = filters or LeaveFilter()
    statement = visible_leaves_statement(actor)
    if filters.owner_id:
        statement = statement.where(LeaveRequest.user_id == filters.owner_id)
    if filters.status is not None:
        statement = statement.where(LeaveRequest.status == filters.status)
    if filters.department:
        statement = statement.where(LeaveRequest.department == filters.department)

    sort_column = LeaveRequest.updated_at if filters.sort == "updated_at" else LeaveRequest.created_at
    statement = statement.order_by(sort_column.desc(), LeaveRequest.id.desc())
    if filters.limit:
        statement = statement.limit(filters.limit)
    return fetch_all(db, statement)
