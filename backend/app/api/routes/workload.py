from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_db, get_notifier
from app.core.exceptions import ValidationError
from app.models.workload_assignment import WorkloadStatus
from app.schemas.workload import WorkloadAssignmentCreate, WorkloadAssignmentOut, WorkloadAssignmentRespond
from app.services import workload as workload_service
from app.services.notifications import NotificationSink
from app.services.policy import ActorContext

router = APIRouter()


def parse_workload_status(value: str | None) -> WorkloadStatus | None:
    if value is None or not value.strip():
        return None
    try:
        return WorkloadStatus(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown workload status: {value}", details={"field": "status"}) from exc


@router.post("/workload-assignments", response_model=WorkloadAssignmentOut, status_code=status.HTTP_201_CREATED)
def create_workload_assignment(
    payload: WorkloadAssignmentCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    notifier: NotificationSink = Depends(get_notifier),
) -> WorkloadAssignmentOut:
    assignment = workload_service.create_assignment(
        db,
        actor,
        leave_id=payload.leave_request_id,
        assignee_id=payload.assignee_id,
        subjects=payload.subjects,
        classes=payload.classes,
        total_hours=payload.total_hours,
        notifier=notifier,
    )
    return WorkloadAssignmentOut.model_validate(assignment)


@router.get("/workload-assignments", response_model=list[WorkloadAssignmentOut])
def list_workload_assignments(
    leave_id: str | None = Query(default=None),
    assignee_id: str | None = Query(default=None),
    assigned_by_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> list[WorkloadAssignmentOut]:
    filters = workload_service.WorkloadFilter(
        leave_id=leave_id,
        assignee_id=assignee_id,
        assigned_by_id=assigned_by_id,
        status=parse_workload_status(status_filter),
        limit=limit,
    )
    return [
        WorkloadAssignmentOut.model_validate(item)
        for item in workload_service.list_assignments(db, actor, filters)
    ]


@router.get("/workload-assignments/mine", response_model=list[WorkloadAssignmentOut])
def list_my_workload_assignments(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> list[WorkloadAssignmentOut]:
    return [WorkloadAssignmentOut.model_validate(item) for item in workload_service.list_for_assignee(db, actor)]


@router.post("/workload-assignments/{assignment_id}/respond", response_model=WorkloadAssignmentOut)
def respond_to_workload_assignment(
    assignment_id: str,
    payload: WorkloadAssignmentRespond,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
    notifier: NotificationSink = Depends(get_notifier),
) -> WorkloadAssignmentOut:
    assignment = workload_service.respond_to_assignment(
        db,
        actor,
        assignment_id,
        decision=payload.decision,
        rejection_reason=payload.rejection_reason,
        notifier=notifier,
    )
    return WorkloadAssignmentOut.model_validate(assignment)
