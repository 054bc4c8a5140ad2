import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from sqlalchemy.orm import Session
import jwt
from starlette.concurrency import run_in_threadpool

from app.auth.deps import get_current_user
from app.auth.models import User
from app.auth.security import decode_access_token
from app.chat.gateway import gateway
from app.chat.rooms import Connection, registry
from app.chat.schemas import MessageRead
from app.core import database
from app.core.database import get_session
from app.core.limiter import check_websocket_rate_limit
from app.courses.service import get_course_participants

router = APIRouter(tags=["chat"])

# Configure logging
logger = logging.getLogger(__name__)


def authenticate_websocket_token(token: str) -> User:
    """
    Authenticate WebSocket token and return the user

    Raises:
        HTTPException: If token is invalid or the user does not exist
    """
    try:
        user_id = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token")

    with database.SessionLocal() as db:
        user = db.get(User, user_id)

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


@router.get(
    "/courses/{course_id}/messages",
    response_model=List[MessageRead],
    summary="Course chat history",
    description=(
        "Returns the course's chat messages, oldest first. Without `limit` the "
        "whole history is returned; page backwards with `limit` and `before_id`."
    ),
)
def list_course_messages(
    course_id: int = Path(..., ge=1, description="ID of the course"),
    limit: int | None = Query(None, ge=1, le=1000, description="Return only the newest N messages"),
    before_id: int | None = Query(None, ge=1, description="Only messages older than this message id"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    participants = get_course_participants(db, course_id)
    if participants is None:
        raise HTTPException(status_code=404, detail="Course not found")
    if not participants.includes(user.id):
        raise HTTPException(status_code=403, detail="You are not a participant of this course")

    return gateway.store.list_for_course(course_id, limit, before_id)


@router.websocket("/chat/ws")
async def ws_chat(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token for authentication")
):
    """
    WebSocket endpoint for course chat and notifications

    **Client -> server events** (`{"type": ..., "data": {...}}`):
    - `joinRoom` `{"courseId": 1}`
    - `leaveRoom` `{}`
    - `sendMessage` `{"courseId": 1, "message": "hello"}`

    **Server -> client events:**
    - `connected`, `joined`, `left`
    - `message`: persisted message (same shape as GET /courses/{id}/messages items)
    - `notification`: same shape as GET /notifications items
    - `error`: `{"code": ..., "detail": ..., "event": ...}`

    **Close codes:**
    - 1008: Authentication failed
    - 1013: Rate limit exceeded
    - 1011: Internal server error
    """
    connection = None

    try:
        try:
            user = await run_in_threadpool(authenticate_websocket_token, token)
        except HTTPException as e:
            await websocket.close(code=1008, reason=f"Authentication failed: {e.detail}")
            return

        if not check_websocket_rate_limit(user.id):
            await websocket.close(code=1013, reason="Rate limit exceeded")
            return

        await websocket.accept()
        connection = Connection(websocket, user.id)
        await gateway.connect(connection)

        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                await connection.send_event("error", {"code": "validation_error", "detail": "Invalid JSON"})
                continue
            await gateway.dispatch(connection, raw)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {connection}")
    except Exception as e:
        logger.error(f"WebSocket error for {connection}: {e}")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close(code=1011, reason="Internal server error")
    finally:
        if connection is not None:
            await gateway.disconnect(connection)


# Health check endpoint for the realtime service
@router.get("/chat/health")
async def chat_health():
    return {"status": "healthy", **registry.stats()}
