from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.leave_request import LeaveRequest, LeaveStatus, LeaveType  # noqa: F401
from app.models.notification import Notification, NotificationType  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
from app.models.workload_assignment import WorkloadAssignment, WorkloadStatus  # noqa: F401
