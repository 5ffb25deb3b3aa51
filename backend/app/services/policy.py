"""Role and department scoped authorization decisions.

The policy is a pure function of the actor and a :class:`ResourceRef`
snapshot, so it never touches the database and can be tested in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import ForbiddenError
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.user import UserRole
from app.models.workload_assignment import WorkloadAssignment


class ResourceKind(str, Enum):
    leave = "leave"
    workload = "workload"


class Action(str, Enum):
    view = "view"
    edit = "edit"
    cancel = "cancel"
    approve = "approve"
    reject = "reject"
    create = "create"
    respond = "respond"


@dataclass(frozen=True)
class ActorContext:
    id: str
    role: UserRole
    department: str


@dataclass(frozen=True)
class ResourceRef:
    department: str
    owner_id: str | None = None
    status: str | None = None
    assignee_id: str | None = None
    assigner_id: str | None = None


def leave_ref(leave: LeaveRequest) -> ResourceRef:
    return ResourceRef(department=leave.department, owner_id=leave.user_id, status=leave.status)


def workload_ref(assignment: WorkloadAssignment) -> ResourceRef:
    return ResourceRef(
        department=assignment.department,
        status=assignment.status,
        assignee_id=assignment.assignee_id,
        assigner_id=assignment.assigned_by_id,
    )


def _faculty_allows(actor: ActorContext, action: Action, kind: ResourceKind, resource: ResourceRef) -> bool:
    if kind == ResourceKind.leave:
        is_owner = resource.owner_id == actor.id
        if action == Action.view:
            return is_owner
        if action in (Action.edit, Action.cancel):
            return is_owner and resource.status == LeaveStatus.pending
        return False

    if kind == ResourceKind.workload:
        if action == Action.create:
            # For creation the resource is the target faculty member.
            return resource.department == actor.department
        if action == Action.respond:
            return resource.assignee_id == actor.id
        if action == Action.view:
            return actor.id in (resource.assignee_id, resource.assigner_id)
        return False

    return False


def _hod_allows(actor: ActorContext, action: Action, kind: ResourceKind, resource: ResourceRef) -> bool:
    same_department = resource.department == actor.department
    if kind == ResourceKind.leave:
        return action in (Action.view, Action.approve, Action.reject) and same_department
    if kind == ResourceKind.workload:
        return action in (Action.create, Action.view, Action.respond) and same_department
    return False


def is_allowed(actor: ActorContext, action: Action, resource_kind: ResourceKind, resource: ResourceRef) -> bool:
    if actor.role == UserRole.admin:
        return True
    if actor.role == UserRole.hod:
        return _hod_allows(actor, action, resource_kind, resource)
    if actor.role == UserRole.faculty:
        return _faculty_allows(actor, action, resource_kind, resource)
    return False


def ensure_allowed(actor: ActorContext, action: Action, resource_kind: ResourceKind, resource: ResourceRef) -> None:
    if not is_allowed(actor, action, resource_kind, resource):
        raise ForbiddenError(
            f"Not permitted to {action.value} this {resource_kind.value}",
            details={"action": action.value, "resource": resource_kind.value},
        )
