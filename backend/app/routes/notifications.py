"""Notification route handlers.

Endpoints:
    GET /api/games/{game_id}/notifications                        -- Get notifications.
    PUT /api/games/{game_id}/notifications/{notification_id}/read -- Mark one read.
    PUT /api/games/{game_id}/notifications/read-all               -- Mark all read.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel

from app.auth.dependencies import get_current_user_token
from app.dal.database import get_database
from app.dal.notifications_dal import NotificationDAL
from app.models.common import NotificationType
from app.models.notification import Notification
from app.services.notification_service import NotificationService

logger = logging.getLogger("headcount.routes.notifications")

router = APIRouter(prefix="/games/{game_id}/notifications", tags=["Notifications"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_service() -> NotificationService:
    """Build a NotificationService wired to the current database."""
    db = get_database()
    return NotificationService(notification_dal=NotificationDAL(db))


# ---------------------------------------------------------------------------
# Pydantic response schemas
# ---------------------------------------------------------------------------

class NotificationOut(BaseModel):
    """Response model for a single notification."""
    id: str
    game_id: str
    notification_type: NotificationType
    message: str
    is_read: bool
    created_at: datetime


class NotificationsListResponse(BaseModel):
    """Response for GET /api/games/{game_id}/notifications."""
    notifications: list[NotificationOut]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    """Response for PUT /api/games/{game_id}/notifications/read-all."""
    marked_count: int


def _to_notification_out(notification: Notification) -> NotificationOut:
    return NotificationOut(
        id=str(notification.id),
        game_id=notification.game_id,
        notification_type=notification.notification_type,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


# ---------------------------------------------------------------------------
# GET /api/games/{game_id}/notifications
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=NotificationsListResponse,
    summary="Get the caller's notifications for a game",
)
async def get_notifications(
    game_id: str = Path(...),
    unread_only: bool = Query(True, description="If true, return only unread notifications."),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of notifications."),
    user_token: str = Depends(get_current_user_token),
) -> NotificationsListResponse:
    service = _get_service()
    notifications = await service.get_notifications(
        user_token, game_id, unread_only=unread_only, limit=limit
    )
    unread_count = await service.get_unread_count(user_token, game_id)
    return NotificationsListResponse(
        notifications=[_to_notification_out(n) for n in notifications],
        unread_count=unread_count,
    )


# ---------------------------------------------------------------------------
# PUT /api/games/{game_id}/notifications/read-all
# ---------------------------------------------------------------------------

@router.put(
    "/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> MarkAllReadResponse:
    service = _get_service()
    count = await service.mark_all_read(user_token, game_id)
    return MarkAllReadResponse(marked_count=count)


# ---------------------------------------------------------------------------
# PUT /api/games/{game_id}/notifications/{notification_id}/read
# ---------------------------------------------------------------------------

@router.put(
    "/{notification_id}/read",
    status_code=status.HTTP_200_OK,
    summary="Mark a single notification as read",
)
async def mark_notification_read(
    game_id: str = Path(...),
    notification_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> dict:
    """Mark one of the caller's notifications as read (ownership validated)."""
    service = _get_service()
    await service.mark_read(notification_id, user_token)
    return {"success": True}
