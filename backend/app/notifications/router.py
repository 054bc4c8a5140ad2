import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from app.auth.deps import get_current_user
from app.auth.models import User
from app.core.exceptions import CoursePortalError
from app.notifications.dispatcher import dispatcher
from app.notifications.schemas import NotificationRead, UnreadCount

router = APIRouter(tags=["notifications"])

# Configure logging
logger = logging.getLogger(__name__)


@router.get(
    "",
    response_model=List[NotificationRead],
    summary="List notifications",
    description="Returns all notifications of the current user, newest first.",
)
async def list_notifications(user: User = Depends(get_current_user)):
    return await dispatcher.list_for_user(user.id)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(user: User = Depends(get_current_user)):
    return UnreadCount(count=await dispatcher.unread_count(user.id))


@router.put(
    "/read-all",
    response_model=List[NotificationRead],
    summary="Mark all notifications as read",
)
async def mark_all_read(user: User = Depends(get_current_user)):
    try:
        return await dispatcher.mark_all_read(user.id)
    except CoursePortalError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationRead,
    status_code=status.HTTP_200_OK,
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: int = Path(..., ge=1),
    user: User = Depends(get_current_user),
):
    try:
        return await dispatcher.mark_read(notification_id, user.id)
    except CoursePortalError as e:
        logger.info(f"User {user.id} could not mark notification {notification_id} read: {e.detail}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)
