# app/notifications/schemas.py
from datetime import datetime
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, ConfigDict

from app.notifications.models import NotificationKind


class NotificationRead(BaseModel):
    """Read model shared by the REST endpoints and the `notification` push event"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: UUID
    kind: NotificationKind
    course_id: Optional[int] = None
    message: str
    read: bool
    created_at: datetime


class UnreadCount(BaseModel):
    count: int
