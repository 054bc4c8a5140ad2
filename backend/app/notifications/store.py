import logging
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, update, func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import database
from app.core.exceptions import AuthorizationError, NotFoundError, PersistenceError
from app.notifications.models import Notification, NotificationKind
from app.notifications.schemas import NotificationRead

logger = logging.getLogger(__name__)


class NotificationStore:
    """
    Persistence for per-user notifications.

    Methods are blocking; callers on the event loop run them in the
    threadpool.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or database.SessionLocal
        return factory()

    def create_many(
        self,
        recipient_ids: Iterable[UUID],
        kind: NotificationKind,
        course_id: Optional[int],
        message: str,
    ) -> List[NotificationRead]:
        """
        Insert one notification per recipient in a single transaction.

        Raises:
            PersistenceError: If the insert fails (nothing is stored)
        """
        with self._session() as db:
            try:
                rows = [
                    Notification(
                        recipient_id=recipient_id,
                        kind=NotificationKind(kind).value,
                        course_id=course_id,
                        message=message,
                    )
                    for recipient_id in recipient_ids
                ]
                db.add_all(rows)
                db.commit()
                for row in rows:
                    db.refresh(row)
                return [NotificationRead.model_validate(row) for row in rows]
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store {kind} notifications: {e}")
                raise PersistenceError("Could not save notification") from e

    def list_for_user(self, user_id: UUID) -> List[NotificationRead]:
        """All notifications of a user, newest first"""
        with self._session() as db:
            stmt = (
                select(Notification)
                .where(Notification.recipient_id == user_id)
                .order_by(desc(Notification.created_at), desc(Notification.id))
            )
            return [NotificationRead.model_validate(n) for n in db.scalars(stmt).all()]

    def count_unread(self, user_id: UUID) -> int:
        with self._session() as db:
            stmt = select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.read.is_(False),
            )
            return db.scalar(stmt) or 0

    def mark_read(self, notification_id: int, requesting_user_id: UUID) -> NotificationRead:
        """
        Raises:
            NotFoundError: No such notification
            AuthorizationError: The notification belongs to someone else
            PersistenceError: The update failed
        """
        with self._session() as db:
            notification = db.get(Notification, notification_id)
            if notification is None:
                raise NotFoundError("Notification not found")
            if notification.recipient_id != requesting_user_id:
                raise AuthorizationError("Not your notification")

            if not notification.read:
                try:
                    notification.read = True
                    db.add(notification)
                    db.commit()
                    db.refresh(notification)
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(f"Failed to mark notification {notification_id} read: {e}")
                    raise PersistenceError("Could not update notification") from e

            return NotificationRead.model_validate(notification)

    def mark_all_read(self, user_id: UUID) -> List[NotificationRead]:
        """Mark every unread notification of a user as read and return all of them"""
        with self._session() as db:
            try:
                result = db.execute(
                    update(Notification)
                    .where(
                        Notification.recipient_id == user_id,
                        Notification.read.is_(False),
                    )
                    .values(read=True)
                )
                db.commit()
                logger.info(f"Marked {result.rowcount} notifications read for user {user_id}")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to mark notifications read for user {user_id}: {e}")
                raise PersistenceError("Could not update notifications") from e

        return self.list_for_user(user_id)
