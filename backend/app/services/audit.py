from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.services.policy import ActorContext


def log_activity(
    db: Session,
    *,
    actor: ActorContext | None,
    action: str,
    entity_type: str,
    entity_id: str,
    department: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    record = ActivityLog(
        actor_id=actor.id if actor is not None else None,
        actor_role=actor.role.value if actor is not None else None,
        department=department if department is not None else (actor.department if actor is not None else None),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    return record
