from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_db
from app.core.config import get_settings
from app.schemas.dashboard import DashboardStatsOut
from app.schemas.leave import LeaveRequestOut
from app.services.leaves import LeaveFilter, list_leaves
from app.services.policy import ActorContext
from app.services.stats import compute_dashboard_stats

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStatsOut)
def dashboard_stats(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor),
) -> DashboardStatsOut:
    stats = compute_dashboard_stats(db, actor)
    recent = list_leaves(db, actor, LeaveFilter(sort="updated_at", limit=get_settings().dashboard_recent_limit))
    output = DashboardStatsOut.model_validate(stats)
    output.recent_leaves = [LeaveRequestOut.model_validate(item) for item in recent]
    return output
