import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Date, DateTime, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.sql import func

from app.db.base import Base, utcnow


class LeaveType(str, Enum):
    sick = "sick"
    casual = "casual"
    vacation = "vacation"
    emergency = "emergency"
    personal = "personal"
    other = "other"


class LeaveStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


def count_leave_days(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days + 1


def leave_days_in_year(start_date: date, end_date: date, year: int) -> int:
    """Inclusive days of ``start_date..end_date`` that fall in calendar ``year``."""
    first = max(start_date, date(year, 1, 1))
    last = min(end_date, date(year, 12, 31))
    return max(0, (last - first).days + 1)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="date_range"),
        CheckConstraint("total_days >= 1", name="total_days_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    leave_type: Mapped[LeaveType] = mapped_column(SAEnum(LeaveType, name="leave_type"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        SAEnum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
        index=True,
    )
    reviewed_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    review_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    @validates("start_date", "end_date")
    def _recompute_total_days(self, key: str, value: date) -> date:
        start_date = value if key == "start_date" else self.start_date
        end_date = value if key == "end_date" else self.end_date
        if start_date is not None and end_date is not None:
            self.total_days = count_leave_days(start_date, end_date)
        return value
