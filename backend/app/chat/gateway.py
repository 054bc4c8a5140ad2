"""
Realtime course chat.

Every inbound WebSocket event is routed through `ChatGateway.handlers`,
an explicit table of event type -> coroutine. Events of one connection
are handled one at a time, in the order they arrive, so a sender's
messages reach every room member in send order. Messages from different
senders are not totally ordered; the persisted history is authoritative.

A message is persisted before it is broadcast. The broadcast goes to
every connection in the room, the sender's own included, so clients
render the stored message instead of an optimistic local copy.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from app.chat.rooms import Connection, RoomRegistry, broadcast, registry
from app.chat.schemas import JoinRoomPayload, MessageRead, SendMessagePayload, WsInbound
from app.chat.store import MessageStore
from app.core import database
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    CoursePortalError,
    NotFoundError,
    ValidationError,
)
from app.courses.service import CourseParticipants, get_course_participants
from app.notifications.dispatcher import NotificationDispatcher, dispatcher
from app.notifications.models import NotificationKind

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80

Handler = Callable[[Connection, Dict[str, Any]], Awaitable[None]]


def load_course_participants(course_id: int) -> Optional[CourseParticipants]:
    with database.SessionLocal() as db:
        return get_course_participants(db, course_id)


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH - 3].rstrip() + "..."


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err.get('msg')}" if location else err.get("msg", "Invalid payload")


class ChatGateway:

    def __init__(
        self,
        rooms: RoomRegistry,
        store: MessageStore,
        notifier: NotificationDispatcher,
        participants_lookup: Callable[[int], Optional[CourseParticipants]] = load_course_participants,
    ):
        self.rooms = rooms
        self.store = store
        self.notifier = notifier
        self.participants_lookup = participants_lookup
        self._sends: Set[asyncio.Future] = set()
        self.handlers: Dict[str, Handler] = {
            "joinRoom": self.on_join_room,
            "leaveRoom": self.on_leave_room,
            "sendMessage": self.on_send_message,
        }

    # ───────────────────────────  CONNECTION LIFECYCLE  ───────────────────────────
    async def connect(self, connection: Connection):
        self.rooms.register(connection)
        logger.info(f"Chat connection {connection.connection_id} opened for user {connection.user_id}")
        await connection.send_event("connected", {
            "connection_id": connection.connection_id,
            "user_id": str(connection.user_id),
        })

    async def disconnect(self, connection: Connection):
        """Drop a connection from its room and the user index; safe to call twice"""
        course_id = self.rooms.room_of(connection)
        self.rooms.unregister(connection)
        logger.info(
            f"Chat connection {connection.connection_id} closed for user {connection.user_id}"
            + (f" (left course {course_id})" if course_id is not None else "")
        )

    # ───────────────────────────  OPERATIONS  ───────────────────────────
    async def _participants(self, course_id: int) -> CourseParticipants:
        participants = await run_in_threadpool(self.participants_lookup, course_id)
        if participants is None:
            raise NotFoundError(f"Course {course_id} not found")
        return participants

    async def join(self, course_id: int, connection: Connection):
        """
        Move a connection into the room of `course_id`.

        On error the connection's membership is left as it was.

        Raises:
            NotFoundError: unknown course
            AuthorizationError: user is neither the tutor nor enrolled
        """
        participants = await self._participants(course_id)
        if not participants.includes(connection.user_id):
            raise AuthorizationError("You are not a participant of this course")

        previous = self.rooms.add(course_id, connection)
        if previous is not None and previous != course_id:
            logger.info(f"{connection} left course {previous}")
        logger.info(f"{connection} joined course {course_id}")

    async def leave(self, connection: Connection) -> Optional[int]:
        return self.rooms.remove(connection)

    async def send(self, course_id: int, user_id: UUID, content: str) -> MessageRead:
        """
        Persist a message, broadcast it to the course room and notify the
        other course participants.

        Raises:
            ValidationError: empty or over-long content
            NotFoundError: unknown course
            AuthorizationError: sender takes no part in the course
            PersistenceError: store failed; nothing was broadcast
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message cannot be empty")
        if len(content) > settings.CHAT_MESSAGE_MAX_LENGTH:
            raise ValidationError(
                f"Message too long (max {settings.CHAT_MESSAGE_MAX_LENGTH} characters)"
            )

        participants = await self._participants(course_id)
        if not participants.includes(user_id):
            raise AuthorizationError("You are not a participant of this course")

        message = await run_in_threadpool(self.store.create, course_id, user_id, content)

        delivered = await broadcast(
            self.rooms.members_of(course_id), "message", message.model_dump(mode="json")
        )
        logger.debug(f"Message {message.id} delivered to {delivered} connections in course {course_id}")

        recipients = participants.all_except(user_id)
        if recipients:
            text = f"{message.author.name} in {participants.title}: {_preview(content)}"
            try:
                await self.notifier.notify_many(recipients, NotificationKind.new_message, course_id, text)
            except CoursePortalError as e:
                # The message itself is stored and delivered
                logger.error(f"Notifications for message {message.id} failed: {e.detail}")

        return message

    # ───────────────────────────  EVENT HANDLERS  ───────────────────────────
    async def on_join_room(self, connection: Connection, data: Dict[str, Any]):
        payload = JoinRoomPayload.model_validate(data)
        await self.join(payload.course_id, connection)
        await connection.send_event("joined", {"courseId": payload.course_id})

    async def on_leave_room(self, connection: Connection, data: Dict[str, Any]):
        course_id = await self.leave(connection)
        await connection.send_event("left", {"courseId": course_id})

    async def on_send_message(self, connection: Connection, data: Dict[str, Any]):
        payload = SendMessagePayload.model_validate(data)
        if payload.user_id is not None and payload.user_id != connection.user_id:
            raise AuthorizationError("Cannot send messages as another user")

        # A disconnect while this runs must not abort the store-and-broadcast
        task = asyncio.ensure_future(self.send(payload.course_id, connection.user_id, payload.message))
        self._sends.add(task)
        task.add_done_callback(self._send_finished)
        await asyncio.shield(task)

    def _send_finished(self, task: asyncio.Future):
        self._sends.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Send finished with {task.exception()!r}")

    async def dispatch(self, connection: Connection, raw: Any):
        """
        Handle one inbound event. Domain errors are reported to this
        connection only and never close it.
        """
        event_type = raw.get("type") if isinstance(raw, dict) else None
        try:
            try:
                event = WsInbound.model_validate(raw)
            except PydanticValidationError:
                raise ValidationError("Malformed event")

            handler = self.handlers.get(event.type)
            if handler is None:
                raise ValidationError(f"Unknown event type: {event.type}")

            try:
                await handler(connection, event.data)
            except PydanticValidationError as e:
                raise ValidationError(_first_error(e))

        except CoursePortalError as e:
            logger.info(f"{event_type or 'event'} from {connection} rejected: {e.detail}")
            error = e.to_event()
            if event_type:
                error["event"] = event_type
            await connection.send_event("error", error)


gateway = ChatGateway(registry, MessageStore(), dispatcher)
