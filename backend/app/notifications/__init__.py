"""
Notifications for Course Portal

Notifications are stored per user and pushed in real time over the chat
WebSocket (`/api/v1/chat/ws`) to every live connection of the recipient,
whichever course room that connection has joined.

Kinds:
- new_message: someone posted in the chat of a course you take part in
- enrollment: a student enrolled in one of your courses
- other: e.g. a video transcript finished generating

Usage:
    from app.notifications import dispatcher
    from app.notifications.models import NotificationKind

    await dispatcher.notify(
        recipient_id=course.tutor_id,
        kind=NotificationKind.enrollment,
        course_id=course.id,
        message="Jane enrolled in Intro to Python",
    )

Push event format (same shape as GET /api/v1/notifications items):
    {"type": "notification", "data": {"id": 1, "kind": "enrollment", ...}}
"""

from .dispatcher import dispatcher, NotificationDispatcher
from .router import router

__all__ = [
    "router",
    "dispatcher",
    "NotificationDispatcher",
]
