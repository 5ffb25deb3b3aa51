from datetime import date

from app.services.leaves import approve_leave, create_leave, reject_leave
from app.services.stats import compute_dashboard_stats
from app.services.workload import create_assignment, respond_to_assignment

TODAY = date(2024, 1, 1)


def request_leave(db, actor, start, end):
    return create_leave(
        db,
        actor,
        leave_type="vacation",
        start_date=start,
        end_date=end,
        reason="Planned break",
        today=TODAY,
    )


def test_hod_stats_exclude_other_departments(db_session, make_actor):
    cs_faculty = make_actor("faculty", "CS")
    cs_peer = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    math_faculty = make_actor("faculty", "Math")

    approved = request_leave(db_session, cs_faculty, date(2024, 2, 5), date(2024, 2, 9))
    request_leave(db_session, cs_peer, date(2024, 3, 1), date(2024, 3, 1))
    request_leave(db_session, math_faculty, date(2024, 2, 1), date(2024, 2, 20))
    approve_leave(db_session, h1, approved.id)

    stats = compute_dashboard_stats(db_session, h1, today=TODAY)

    assert stats.scope == "department"
    assert stats.total_leaves == 2
    assert stats.leaves_by_status == {"pending": 1, "approved": 1, "rejected": 0}
    assert stats.approved_days == 5
    assert stats.pending_approvals == 1
    assert stats.faculty_count == 2
    assert stats.leave_balance is None


def test_faculty_sees_own_leaves_and_balance(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    f2 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")

    this_year = request_leave(db_session, f1, date(2024, 1, 10), date(2024, 1, 12))
    next_year = request_leave(db_session, f1, date(2025, 1, 6), date(2025, 1, 7))
    refused = request_leave(db_session, f1, date(2024, 5, 1), date(2024, 5, 10))
    request_leave(db_session, f2, date(2024, 6, 1), date(2024, 6, 30))
    approve_leave(db_session, h1, this_year.id)
    approve_leave(db_session, h1, next_year.id)
    reject_leave(db_session, h1, refused.id, rejection_reason="Accreditation visit")

    stats = compute_dashboard_stats(db_session, f1, today=TODAY)

    assert stats.scope == "own"
    assert stats.total_leaves == 3
    assert stats.approved_days == 5
    assert stats.approved_days_this_year == 3
    assert stats.leave_balance == 12
    assert stats.pending_approvals == 0


def test_leave_balance_never_negative(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    long_leave = request_leave(db_session, f1, date(2024, 3, 1), date(2024, 3, 31))
    approve_leave(db_session, h1, long_leave.id)

    assert compute_dashboard_stats(db_session, f1, today=TODAY).leave_balance == 0


def test_workload_counts_by_scope(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    f2 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    admin = make_actor("admin", "Administration")
    make_actor("faculty", "Math")

    leave = request_leave(db_session, f1, date(2024, 1, 10), date(2024, 1, 12))
    assignment = create_assignment(
        db_session,
        f1,
        leave_id=leave.id,
        assignee_id=f2.id,
        subjects=["Operating Systems"],
        classes=["CS-3A"],
        total_hours=4.5,
    )
    respond_to_assignment(db_session, f2, assignment.id, decision="accept")

    assignee_stats = compute_dashboard_stats(db_session, f2, today=TODAY)
    assert assignee_stats.workload_by_status["accepted"] == 1
    assert assignee_stats.total_workload_hours == 4.5

    # Handing work off does not count toward the assigner's own load.
    assigner_stats = compute_dashboard_stats(db_session, f1, today=TODAY)
    assert assigner_stats.workload_by_status == {"pending": 0, "accepted": 0, "rejected": 0}

    hod_stats = compute_dashboard_stats(db_session, h1, today=TODAY)
    assert hod_stats.workload_by_status["accepted"] == 1

    admin_stats = compute_dashboard_stats(db_session, admin, today=TODAY)
    assert admin_stats.scope == "all"
    assert admin_stats.faculty_count == 3
    assert admin_stats.pending_approvals == 1


def test_year_spanning_leave_is_split_between_quotas(db_session, make_actor):
    f1 = make_actor("faculty", "CS")
    h1 = make_actor("hod", "CS")
    leave = create_leave(
        db_session,
        f1,
        leave_type="vacation",
        start_date=date(2024, 12, 30),
        end_date=date(2025, 1, 2),
        reason="Year-end travel",
        today=TODAY,
    )
    approve_leave(db_session, h1, leave.id)

    old_year = compute_dashboard_stats(db_session, f1, today=date(2024, 12, 1))
    assert old_year.approved_days_this_year == 2
    assert old_year.leave_balance == 13

    new_year = compute_dashboard_stats(db_session, f1, today=date(2025, 1, 5))
    assert new_year.approved_days_this_year == 2
    assert new_year.approved_days == 4
