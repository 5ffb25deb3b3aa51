from datetime import date

import pytest
from sqlalchemy import select, update

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.models.leave_request import LeaveStatus
from app.models.notification import Notification
from app.models.user import User
from app.models.workload_assignment import WorkloadAssignment, WorkloadStatus
from app.services.leaves import approve_leave, create_leave, reject_leave
from app.services.notifications import InAppNotificationSink
from app.services.workload import (
    WorkloadFilter,
    create_assignment,
    list_assignments,
    list_for_assignee,
    list_for_leave,
    respond_to_assignment,
)


def request_leave(db, actor, start=date(2024, 1, 10), end=date(2024, 1, 12)):
    return create_leave(
        db,
        actor,
        leave_type="casual",
        start_date=start,
        end_date=end,
        reason="Family event",
        today=date(2024, 1, 1),
    )


def assign(db, actor, leave, assignee, **overrides):
    payload = {
        "leave_id": leave.id,
        "assignee_id": assignee.id,
        "subjects": ["Data Structures"],
        "classes": ["CS-2A"],
        "total_hours": 3,
    }
    payload.update(overrides)
    return create_assignment(db, actor, **payload)


def test_cs_department_handoff_scenario(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    f2 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")

    leave = request_leave(db_session, f1)
    assert leave.total_days == 3
    assert approve_leave(db_session, h1, leave.id).status == LeaveStatus.approved

    assignment = assign(db_session, f1, leave, f2)
    assert assignment.status == WorkloadStatus.pending
    assert assignment.assigned_by_id == f1.id
    assert assignment.department == "CS"
    assert assignment.subjects == ["Data Structures"]

    accepted = respond_to_assignment(db_session, f2, assignment.id, decision="accept")
    assert accepted.status == WorkloadStatus.accepted
    assert accepted.responded_by_id == f2.id
    assert accepted.rejection_reason is None
    first_response_at = accepted.responded_at
    assert first_response_at is not None

    with pytest.raises(InvalidStateError):
        respond_to_assignment(db_session, f2, assignment.id, decision="accept")
    with pytest.raises(InvalidStateError):
        respond_to_assignment(db_session, f2, assignment.id, decision="reject", rejection_reason="Busy")

    stored = db_session.get(WorkloadAssignment, assignment.id, populate_existing=True)
    assert stored.status == WorkloadStatus.accepted
    assert stored.responded_at == first_response_at


@pytest.mark.parametrize(
    ("responder_role", "decision", "reason"),
    [
        ("assignee", "reject", None),
        ("hod", "accept", None),
        ("hod", "reject", "Covering exams"),
        ("admin", "accept", None),
        ("admin", "reject", None),
    ],
)
def test_second_response_from_any_actor_is_invalid_state(db_session, make_actor, responder_role, decision, reason):
    owner = make_actor("faculty", "CS")
    assignee = make_actor("faculty", "CS")
    responders = {
        "assignee": assignee,
        "hod": make_actor("hod", "CS"),
        "admin": make_actor("admin", "Administration"),
    }
    leave = request_leave(db_session, owner)
    assignment = assign(db_session, owner, leave, assignee)
    accepted = respond_to_assignment(db_session, assignee, assignment.id, decision="accept")
    first_response_at = accepted.responded_at

    with pytest.raises(InvalidStateError):
        respond_to_assignment(
            db_session,
            responders[responder_role],
            assignment.id,
            decision=decision,
            rejection_reason=reason,
        )

    stored = db_session.get(WorkloadAssignment, assignment.id, populate_existing=True)
    assert stored.status == WorkloadStatus.accepted
    assert stored.responded_at == first_response_at
    assert stored.responded_by_id == assignee.id
    assert stored.rejection_reason is None


def test_hod_can_assign_for_department_leave(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    f2 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    leave = request_leave(db_session, f1)

    assignment = assign(db_session, h1, leave, f2)
    assert assignment.assigned_by_id == h1.id


@pytest.mark.parametrize("actor_role", ["faculty", "hod"])
def test_cross_department_assignment_is_forbidden(db_session, make_actor, actor_role):
    owner = make_actor("faculty", "CS")
    outsider = make_actor("faculty", "Math")
    leave = request_leave(db_session, owner)
    actor = owner if actor_role == "faculty" else make_actor("hod", "CS")

    with pytest.raises(ForbiddenError):
        assign(db_session, actor, leave, outsider)
    assert db_session.execute(select(WorkloadAssignment)).first() is None


def test_other_department_hod_cannot_assign(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    math_hod = make_actor("hod", "Math")
    leave = request_leave(db_session, owner)

    with pytest.raises(ForbiddenError):
        assign(db_session, math_hod, leave, peer)


def test_department_peer_can_hand_off_a_colleagues_leave(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    third = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)

    assignment = assign(db_session, third, leave, peer)
    assert assignment.assigned_by_id == third.id
    assert assignment.assignee_id == peer.id
    assert assignment.status == WorkloadStatus.pending


def test_peer_from_another_department_cannot_hand_off(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    math_peer = make_actor("faculty", "Math")
    leave = request_leave(db_session, owner)

    with pytest.raises(ForbiddenError):
        assign(db_session, math_peer, leave, peer)


def test_admin_does_not_assign_workload(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    admin = make_actor("admin", "Administration")
    leave = request_leave(db_session, owner)

    with pytest.raises(ForbiddenError):
        assign(db_session, admin, leave, peer)


@pytest.mark.parametrize(
    "overrides",
    [
        {"subjects": []},
        {"classes": ["  "]},
        {"total_hours": 0},
        {"total_hours": -2},
    ],
)
def test_assignment_payload_validation(db_session, make_actor, overrides):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)

    with pytest.raises(ValidationError):
        assign(db_session, owner, leave, peer, **overrides)


def test_cannot_assign_to_self_or_inactive_or_non_faculty(db_session, make_actor, make_user):
    owner = make_actor("faculty", "CS")
    hod = make_actor("hod", "CS")
    retired = make_user("faculty", "CS")
    db_session.execute(update(User).where(User.id == retired.id).values(is_active=False))
    db_session.commit()
    leave = request_leave(db_session, owner)

    with pytest.raises(ValidationError):
        assign(db_session, owner, leave, owner)
    with pytest.raises(ValidationError):
        assign(db_session, owner, leave, hod)
    with pytest.raises(ValidationError):
        assign(db_session, owner, leave, retired)


def test_missing_leave_or_assignee(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)

    with pytest.raises(NotFoundError):
        create_assignment(
            db_session,
            owner,
            leave_id="no-such-leave",
            assignee_id=peer.id,
            subjects=["Algorithms"],
            classes=["CS-3B"],
            total_hours=2,
        )
    with pytest.raises(NotFoundError):
        assign(db_session, owner, leave, peer, assignee_id="no-such-user")


def test_rejected_leave_cannot_receive_assignments(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    leave = request_leave(db_session, owner)
    reject_leave(db_session, h1, leave.id, rejection_reason="Exam week")

    with pytest.raises(InvalidStateError):
        assign(db_session, owner, leave, peer)


def test_leave_rejection_does_not_cascade_to_assignments(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    leave = request_leave(db_session, owner)
    assignment = assign(db_session, owner, leave, peer)

    reject_leave(db_session, h1, leave.id, rejection_reason="Exam week")

    stored = db_session.get(WorkloadAssignment, assignment.id, populate_existing=True)
    assert stored.status == WorkloadStatus.pending
    accepted = respond_to_assignment(db_session, peer, assignment.id, decision="accept")
    assert accepted.status == WorkloadStatus.accepted


def test_reject_requires_reason(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)
    assignment = assign(db_session, owner, leave, peer)

    with pytest.raises(ValidationError):
        respond_to_assignment(db_session, peer, assignment.id, decision="reject")
    with pytest.raises(ValidationError):
        respond_to_assignment(db_session, peer, assignment.id, decision="maybe")

    rejected = respond_to_assignment(
        db_session, peer, assignment.id, decision="reject", rejection_reason="Teaching a lab that day"
    )
    assert rejected.status == WorkloadStatus.rejected
    assert rejected.rejection_reason == "Teaching a lab that day"


def test_response_permissions(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    math_hod = make_actor("hod", "Math")
    leave = request_leave(db_session, owner)
    assignment = assign(db_session, owner, leave, peer)

    with pytest.raises(ForbiddenError):
        respond_to_assignment(db_session, owner, assignment.id, decision="accept")
    with pytest.raises(ForbiddenError):
        respond_to_assignment(db_session, math_hod, assignment.id, decision="accept")

    on_behalf = respond_to_assignment(db_session, h1, assignment.id, decision="accept")
    assert on_behalf.status == WorkloadStatus.accepted
    assert on_behalf.responded_by_id == h1.id
    assert on_behalf.assignee_id == peer.id


def test_lost_response_race_keeps_first_response(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)
    assignment = assign(db_session, owner, leave, peer)
    assert assignment.status == WorkloadStatus.pending

    db_session.execute(
        update(WorkloadAssignment)
        .where(WorkloadAssignment.id == assignment.id)
        .values(status=WorkloadStatus.rejected, rejection_reason="Conflict")
        .execution_options(synchronize_session=False)
    )
    with pytest.raises(InvalidStateError):
        respond_to_assignment(db_session, peer, assignment.id, decision="accept")

    stored = db_session.get(WorkloadAssignment, assignment.id, populate_existing=True)
    assert stored.status == WorkloadStatus.rejected
    assert stored.rejection_reason == "Conflict"


def test_notifications_follow_the_handoff(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    leave = request_leave(db_session, owner)
    sink = InAppNotificationSink(db_session)

    assignment = assign(db_session, owner, leave, peer, notifier=sink)
    respond_to_assignment(db_session, peer, assignment.id, decision="accept", notifier=sink)

    recipients = db_session.execute(
        select(Notification.user_id).where(Notification.entity_id == assignment.id).order_by(Notification.created_at)
    ).scalars().all()
    assert sorted(recipients) == sorted([peer.id, owner.id])


def test_listing_is_scoped(db_session, make_actor):
    owner = make_actor("faculty", "CS")
    peer = make_actor("faculty", "CS")
    bystander = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    math_owner = make_actor("faculty", "Math")
    math_peer = make_actor("faculty", "Math")
    math_hod = make_actor("hod", "Math")
    admin = make_actor("admin", "Administration")

    cs_leave = request_leave(db_session, owner)
    math_leave = request_leave(db_session, math_owner)
    cs_assignment = assign(db_session, owner, cs_leave, peer)
    math_assignment = assign(db_session, math_owner, math_leave, math_peer)

    assert [item.id for item in list_for_assignee(db_session, peer)] == [cs_assignment.id]
    assert list_for_assignee(db_session, owner) == []
    assert [item.id for item in list_assignments(db_session, owner)] == [cs_assignment.id]
    assert list_assignments(db_session, bystander) == []
    assert [item.id for item in list_assignments(db_session, h1)] == [cs_assignment.id]
    assert [item.id for item in list_assignments(db_session, math_hod)] == [math_assignment.id]
    assert {item.id for item in list_assignments(db_session, admin)} == {cs_assignment.id, math_assignment.id}

    assert list_assignments(db_session, h1, WorkloadFilter(status=WorkloadStatus.accepted)) == []
    assert [item.id for item in list_for_leave(db_session, h1, cs_leave.id)] == [cs_assignment.id]
    with pytest.raises(ForbiddenError):
        list_for_leave(db_session, math_hod, cs_leave.id)
