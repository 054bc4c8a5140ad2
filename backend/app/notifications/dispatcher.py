import logging
from typing import Iterable, List, Optional
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from app.chat.rooms import RoomRegistry, broadcast, registry
from app.notifications.models import NotificationKind
from app.notifications.schemas import NotificationRead
from app.notifications.store import NotificationStore

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Creates notifications and pushes them to recipients who are online.

    A recipient is online when they have any live realtime connection,
    whichever course room (if any) that connection has joined.
    """

    def __init__(self, store: NotificationStore, rooms: RoomRegistry):
        self.store = store
        self.rooms = rooms

    async def notify(
        self,
        recipient_id: UUID,
        kind: NotificationKind,
        course_id: Optional[int],
        message: str,
    ) -> NotificationRead:
        created = await self.notify_many([recipient_id], kind, course_id, message)
        return created[0]

    async def notify_many(
        self,
        recipient_ids: Iterable[UUID],
        kind: NotificationKind,
        course_id: Optional[int],
        message: str,
    ) -> List[NotificationRead]:
        """
        Persist one notification per recipient, then push each to its
        recipient's live connections.

        Raises:
            PersistenceError: If storing fails; nothing is pushed
        """
        recipient_ids = list(dict.fromkeys(recipient_ids))
        if not recipient_ids:
            return []

        created = await run_in_threadpool(
            self.store.create_many, recipient_ids, kind, course_id, message
        )

        for notification in created:
            await self.push(notification)

        logger.info(f"Dispatched {len(created)} {NotificationKind(kind).value} notifications")
        return created

    async def push(self, notification: NotificationRead) -> int:
        connections = self.rooms.connections_of(notification.recipient_id)
        if not connections:
            return 0
        return await broadcast(connections, "notification", notification.model_dump(mode="json"))

    async def list_for_user(self, user_id: UUID) -> List[NotificationRead]:
        return await run_in_threadpool(self.store.list_for_user, user_id)

    async def unread_count(self, user_id: UUID) -> int:
        return await run_in_threadpool(self.store.count_unread, user_id)

    async def mark_read(self, notification_id: int, requesting_user_id: UUID) -> NotificationRead:
        """
        Raises:
            AuthorizationError: requesting user is not the recipient
            NotFoundError: no such notification
        """
        return await run_in_threadpool(self.store.mark_read, notification_id, requesting_user_id)

    async def mark_all_read(self, requesting_user_id: UUID) -> List[NotificationRead]:
        return await run_in_threadpool(self.store.mark_all_read, requesting_user_id)


dispatcher = NotificationDispatcher(NotificationStore(), registry)
