"""create leave requests

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


leave_type_enum = sa.Enum("sick", "casual", "vacation", "emergency", "personal", "other", name="leave_type")
leave_status_enum = sa.Enum("pending", "approved", "rejected", name="leave_status")


def upgrade() -> None:
    op.create_table(
        "leave_requests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("leave_type", leave_type_enum, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", leave_status_enum, nullable=False, server_default="pending"),
        sa.Column("reviewed_by_id", sa.String(length=36), nullable=True),
        sa.Column("review_comment", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_leave_requests"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_range"),
        sa.CheckConstraint("total_days >= 1", name="ck_leave_requests_total_days_positive"),
    )
    for column in ("user_id", "department", "status"):
        op.create_index(f"ix_leave_requests_{column}", "leave_requests", [column], unique=False)


def downgrade() -> None:
    for column in ("status", "department", "user_id"):
        op.drop_index(f"ix_leave_requests_{column}", table_name="leave_requests")
    op.drop_table("leave_requests")
    bind = op.get_bind()
    leave_status_enum.drop(bind, checkfirst=True)
    leave_type_enum.drop(bind, checkfirst=True)
