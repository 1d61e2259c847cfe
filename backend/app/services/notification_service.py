"""Notification business logic service.

Turns engine side effects (promotions, displacements) and publishing into
poll-based notifications, and serves them back to their recipients.
"""

import logging
from typing import Iterable

from fastapi import HTTPException, status

from app.dal.notifications_dal import NotificationDAL
from app.models.common import NotificationType, ParticipationStatus
from app.models.game import Game
from app.models.notification import Notification
from app.models.participation import Participation

logger = logging.getLogger("headcount.services.notification")


# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------

MESSAGE_TEMPLATES = {
    NotificationType.PROMOTED_FROM_WAITLIST: (
        "A spot opened up in {game_name}: you're going"
    ),
    NotificationType.DISPLACED_TO_WAITLIST: (
        "The organizer of {game_name} claimed your spot. "
        "You're now first on the waitlist"
    ),
    NotificationType.DISPLACED_TO_NOT_GOING: (
        "The organizer of {game_name} claimed your spot and the waitlist "
        "is full, so you're no longer going"
    ),
    NotificationType.GAME_PUBLISHED: (
        "{game_name} has been published"
    ),
}


def format_notification_message(
    notification_type: NotificationType, **kwargs: object
) -> str:
    """Render a notification message from its template.

    Raises:
        KeyError: If the type has no template or required kwargs are missing.
    """
    return MESSAGE_TEMPLATES[notification_type].format(**kwargs)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class NotificationService:
    """Service layer for notification operations."""

    def __init__(self, notification_dal: NotificationDAL) -> None:
        self._dal = notification_dal

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def notify_moves(
        self,
        game: Game,
        promoted: Iterable[Participation],
        displaced: Iterable[Participation],
    ) -> list[Notification]:
        """Tell every user the engine moved without them asking.

        Args:
            game: The game the moves happened in.
            promoted: Participations moved from the waitlist to going.
            displaced: Participations pushed out by the organizer.

        Returns:
            The created notifications.
        """
        notifications: list[Notification] = []
        for p in promoted:
            notifications.append(
                self._build(game, p.user_token, NotificationType.PROMOTED_FROM_WAITLIST)
            )
        for p in displaced:
            notification_type = (
                NotificationType.DISPLACED_TO_WAITLIST
                if p.status == ParticipationStatus.WAITLISTED
                else NotificationType.DISPLACED_TO_NOT_GOING
            )
            notifications.append(self._build(game, p.user_token, notification_type))
        return await self._dal.create_many(notifications)

    async def notify_published(
        self, game: Game, participations: Iterable[Participation]
    ) -> list[Notification]:
        """Tell everyone already signed up (except the organizer) the game is out."""
        notifications = [
            self._build(game, p.user_token, NotificationType.GAME_PUBLISHED)
            for p in participations
            if p.is_live and p.user_token != game.organizer_token
        ]
        return await self._dal.create_many(notifications)

    @staticmethod
    def _build(
        game: Game, user_token: str, notification_type: NotificationType
    ) -> Notification:
        return Notification(
            game_id=str(game.id),
            user_token=user_token,
            notification_type=notification_type,
            message=format_notification_message(notification_type, game_name=game.name),
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_notifications(
        self,
        user_token: str,
        game_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        """Get a user's notifications for a game, newest first."""
        return await self._dal.get_for_user(
            user_token, game_id, unread_only=unread_only, limit=limit
        )

    async def get_unread_count(self, user_token: str, game_id: str) -> int:
        return await self._dal.count_unread(user_token, game_id)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def mark_read(self, notification_id: str, user_token: str) -> None:
        """Mark one of the caller's notifications as read.

        Raises:
            HTTPException 404: Notification not found for this user, or
                already read.
        """
        updated = await self._dal.mark_read(notification_id, user_token)
        if not updated:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found or already read",
            )

    async def mark_all_read(self, user_token: str, game_id: str) -> int:
        """Mark all of the caller's notifications in a game as read."""
        return await self._dal.mark_all_read(user_token, game_id)
