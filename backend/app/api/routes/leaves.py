from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_db, get_notifier
from app.core.exceptions import ValidationError
from app.models.leave_request import LeaveStatus
from app.schemas.leave import LeaveApprove, LeaveReject, LeaveRequestCreate, LeaveRequestOut, LeaveRequestUpdate
from app.schemas.workload import WorkloadAssignmentOut
from app.services import leaves as leave_service
from app.services.notifications import NotificationSink
from app.services.policy import ActorContext
from app.services.workload import list_for_leave

router = APIRouter()


def parse_leave_status(value: str | None) -> LeaveStatus | None:
    if value is None or not value.strip():
        return None
    try:
        return LeaveStatus(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown leave status: {value}", details={"field": "status"}) from exc


@router.post("/leaves", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
def create_leave(
    payload: LeaveRequestCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> LeaveRequestOut:
    leave = leave_service.create_leave(
        db,
        actor,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    return LeaveRequestOut.model_validate(leave)


@router.get("/leaves", response_model=list[LeaveRequestOut])
def list_leaves(
    owner_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    department: str | None = Query(default=None),
    sort: Literal["created_at", "updated_at"] = Query(default="created_at"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> list[LeaveRequestOut]:
    filters = leave_service.LeaveFilter(
        owner_id=owner_id,
        status=parse_leave_status(status_filter),
        department=department,
        sort=sort,
        limit=limit,
    )
    return [LeaveRequestOut.model_validate(item) for item in leave_service.list_leaves(db, actor, filters)]


@router.get("/leaves/{leave_id}", response_model=LeaveRequestOut)
def get_leave(
    leave_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> LeaveRequestOut:
    return LeaveRequestOut.model_validate(leave_service.get_leave(db, actor, leave_id))


@router.patch("/leaves/{leave_id}", response_model=LeaveRequestOut)
def update_leave(
    leave_id: str,
    payload: LeaveRequestUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> LeaveRequestOut:
    leave = leave_service.update_leave(
        db,
        actor,
        leave_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    return LeaveRequestOut.model_validate(leave)


@router.post("/leaves/{leave_id}/approve", response_model=LeaveRequestOut)
def approve_leave(
    leave_id: str,
    payload: LeaveApprove | None = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    notifier: NotificationSink = Depends(get_notifier),
) -> LeaveRequestOut:
    leave = leave_service.approve_leave(
        db,
        actor,
        leave_id,
        comments=payload.comments if payload else None,
        notifier=notifier,
    )
    return LeaveRequestOut.model_validate(leave)


@router.post("/leaves/{leave_id}/reject", response_model=LeaveRequestOut)
def reject_leave(
    leave_id: str,
    payload: LeaveReject,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    notifier: NotificationSink = Depends(get_notifier),
) -> LeaveRequestOut:
    leave = leave_service.reject_leave(
        db,
        actor,
        leave_id,
        rejection_reason=payload.rejection_reason,
        notifier=notifier,
    )
    return LeaveRequestOut.model_validate(leave)


@router.get("/leaves/{leave_id}/workload-assignments", response_model=list[WorkloadAssignmentOut])
def list_leave_workload(
    leave_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> list[WorkloadAssignmentOut]:
    return [WorkloadAssignmentOut.model_validate(item) for item in list_for_leave(db, actor, leave_id)]
