from datetime import datetime

from pydantic import BaseModel

from app.models.notification import NotificationType


class NotificationOut(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    notification_type: NotificationType
    entity_id: str | None = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
