import logging
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select, asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.auth.models import User
from app.chat.models import Message
from app.chat.schemas import MessageRead
from app.core import database
from app.core.exceptions import PersistenceError
from app.users.schemas import UserPublic

logger = logging.getLogger(__name__)


def _to_read(message: Message, author: User) -> MessageRead:
    return MessageRead(
        id=message.id,
        course_id=message.course_id,
        author_id=message.author_id,
        author=UserPublic.model_validate(author),
        content=message.content,
        created_at=message.created_at,
    )


class MessageStore:
    """
    Append-only chat log keyed by course.

    Methods are blocking; callers on the event loop run them in the
    threadpool.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or database.SessionLocal
        return factory()

    def create(self, course_id: int, author_id: UUID, content: str) -> MessageRead:
        """
        Persist a new message and return it with its author resolved.

        Raises:
            PersistenceError: If the author is unknown or the insert fails;
                nothing is stored in either case
        """
        with self._session() as db:
            try:
                author = db.get(User, author_id)
                if author is None:
                    raise PersistenceError(f"Author {author_id} not found")

                message = Message(course_id=course_id, author_id=author_id, content=content)
                db.add(message)
                db.commit()
                db.refresh(message)
                logger.info(f"Stored message {message.id} in course {course_id}")
                return _to_read(message, author)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store message in course {course_id}: {e}")
                raise PersistenceError("Could not save message") from e

    def list_for_course(
        self,
        course_id: int,
        limit: Optional[int] = None,
        before_id: Optional[int] = None,
    ) -> List[MessageRead]:
        """
        Chat history of a course, oldest first.

        Without `limit` the whole log is returned. With `limit`, only the
        newest `limit` messages older than `before_id` (if given); pass the
        id of the first message of a page as `before_id` to fetch the page
        before it.
        """
        with self._session() as db:
            stmt = (
                select(Message, User)
                .join(User, User.id == Message.author_id)
                .where(Message.course_id == course_id)
            )
            if before_id is not None:
                stmt = stmt.where(Message.id < before_id)

            if limit is not None:
                stmt = stmt.order_by(desc(Message.created_at), desc(Message.id)).limit(limit)
                rows = list(reversed(db.execute(stmt).all()))
            else:
                stmt = stmt.order_by(asc(Message.created_at), asc(Message.id))
                rows = db.execute(stmt).all()

            return [_to_read(message, author) for message, author in rows]
