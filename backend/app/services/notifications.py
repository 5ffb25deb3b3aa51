from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationType
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowEvent:
    kind: str
    title: str
    message: str
    entity_id: str
    recipient_ids: tuple[str, ...] = field(default_factory=tuple)
    notification_type: NotificationType = NotificationType.system


class NotificationSink(Protocol):
    def notify(self, event: WorkflowEvent) -> None: ...


class InAppNotificationSink:
    """Stores one notification row per active recipient in its own commit."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def notify(self, event: WorkflowEvent) -> None:
        requested_ids = [item for item in dict.fromkeys(event.recipient_ids) if item]
        if not requested_ids:
            return
        recipients = self._db.execute(
            select(User.id).where(User.id.in_(requested_ids), User.is_active.is_(True))
        ).scalars()
        for user_id in recipients:
            self._db.add(
                Notification(
                    user_id=user_id,
                    title=event.title,
                    message=event.message,
                    notification_type=event.notification_type,
                    entity_id=event.entity_id,
                )
            )
        self._db.commit()


def dispatch(sink: NotificationSink | None, db: Session, event: WorkflowEvent) -> None:
    """Fire-and-forget delivery. Runs after the transition has committed."""
    if sink is None:
        return
    try:
        sink.notify(event)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Notification sink failed for %s %s", event.kind, event.entity_id, exc_info=True)
    except Exception:
        logger.warning("Notification sink failed for %s %s", event.kind, event.entity_id, exc_info=True)
