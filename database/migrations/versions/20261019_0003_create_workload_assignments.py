"""create workload assignments

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


workload_status_enum = sa.Enum("pending", "accepted", "rejected", name="workload_status")
INDEXED_COLUMNS = ("leave_request_id", "assignee_id", "assigned_by_id", "department", "status")


def upgrade() -> None:
    op.create_table(
        "workload_assignments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("leave_request_id", sa.String(length=36), nullable=False),
        sa.Column("assignee_id", sa.String(length=36), nullable=False),
        sa.Column("assigned_by_id", sa.String(length=36), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("classes", sa.JSON(), nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False),
        sa.Column("status", workload_status_enum, nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("responded_by_id", sa.String(length=36), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_workload_assignments"),
        sa.CheckConstraint("total_hours > 0", name="ck_workload_assignments_total_hours_positive"),
    )
    for column in INDEXED_COLUMNS:
        op.create_index(f"ix_workload_assignments_{column}", "workload_assignments", [column], unique=False)


def downgrade() -> None:
    for column in reversed(INDEXED_COLUMNS):
        op.drop_index(f"ix_workload_assignments_{column}", table_name="workload_assignments")
    op.drop_table("workload_assignments")
    workload_status_enum.drop(op.get_bind(), checkfirst=True)
