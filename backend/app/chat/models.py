# app/chat/models.py
from datetime import datetime, timezone
from uuid import UUID
from typing import Optional

from sqlmodel import SQLModel, Field
import sqlalchemy as sa
from sqlalchemy import func


class Message(SQLModel, table=True):
    """
    One chat message in a course room.

    Rows are append-only: they are inserted when sent and never updated.
    """
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    author_id: UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False
        )
    )
    content: str = Field(sa_column=sa.Column(sa.Text, nullable=False))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=func.now(),
            nullable=False
        )
    )
