# app/notifications/models.py
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID
from typing import Optional

from sqlmodel import SQLModel, Field
import sqlalchemy as sa
from sqlalchemy import func


class NotificationKind(str, Enum):
    new_message = "new_message"
    enrollment = "enrollment"
    other = "other"


class Notification(SQLModel, table=True):
    """
    Per-user notification.

    Only `read` ever changes after insert, and only from False to True.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_recipient_read", "recipient_id", "read"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    recipient_id: UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False
        )
    )
    kind: str = Field(
        default=NotificationKind.other.value,
        sa_column=sa.Column(sa.String(20), nullable=False),
    )
    course_id: Optional[int] = Field(
        default=None,
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("courses.id", ondelete="SET NULL"),
            nullable=True
        )
    )
    message: str = Field(sa_column=sa.Column(sa.Text, nullable=False))
    read: bool = Field(
        default=False,
        sa_column=sa.Column(sa.Boolean, nullable=False, server_default=sa.false()),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=func.now(),
            nullable=False
        )
    )
