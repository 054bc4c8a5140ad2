# app/chat/schemas.py
from datetime import datetime
from uuid import UUID
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from app.users.schemas import UserPublic


# ───────────────────────────  READ SCHEMAS  ───────────────────────────
class MessageRead(BaseModel):
    """Persisted chat message as sent to clients over REST and WebSocket"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    author_id: UUID
    author: UserPublic
    content: str
    created_at: datetime


# ─────────────────────────  WEBSOCKET ENVELOPES  ──────────────────────────
class WsInbound(BaseModel):
    """Client -> server: joinRoom | leaveRoom | sendMessage"""
    type: str
    data: Dict[str, Any] = {}


class JoinRoomPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: int = Field(..., alias="courseId", ge=1)


class SendMessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: int = Field(..., alias="courseId", ge=1)
    user_id: Optional[UUID] = Field(default=None, alias="userId")
    message: str = Field(..., description="Message text; surrounding whitespace is trimmed")
