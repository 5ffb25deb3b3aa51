import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, Float, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base, utcnow


class WorkloadStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class WorkloadAssignment(Base):
    __tablename__ = "workload_assignments"
    __table_args__ = (CheckConstraint("total_hours > 0", name="total_hours_positive"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    leave_request_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assignee_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assigned_by_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    classes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[WorkloadStatus] = mapped_column(
        SAEnum(WorkloadStatus, name="workload_status"),
        nullable=False,
        default=WorkloadStatus.pending,
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
