"""Notification Data Access Layer -- MongoDB operations for the notifications collection.

Provides async CRUD and query methods for Notification documents.
All ObjectId handling is transparent.
"""

import logging

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.notification import Notification

logger = logging.getLogger("headcount.dal.notifications")

COLLECTION = "notifications"


class NotificationDAL:
    """Data access layer for the notifications collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_many(self, notifications: list[Notification]) -> list[Notification]:
        """Insert multiple notification documents at once.

        Args:
            notifications: A list of Notification model instances.

        Returns:
            The same list with their ``id`` fields populated.
        """
        if not notifications:
            return notifications

        docs = [n.to_mongo_dict() for n in notifications]
        result = await self._collection.insert_many(docs)
        for notification, inserted_id in zip(notifications, result.inserted_ids):
            notification.id = str(inserted_id)
        logger.info("Created %d notifications in bulk", len(notifications))
        return notifications

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_for_user(
        self,
        user_token: str,
        game_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        """Get notifications for a user in a game, newest first.

        Uses the ``idx_user_game_unread`` index.

        Args:
            user_token: The user's UUID token.
            game_id: String representation of the game's ObjectId.
            unread_only: Skip notifications already marked read.
            limit: Maximum number of results.

        Returns:
            A list of Notification instances sorted by created_at descending.
        """
        query: dict = {"user_token": user_token, "game_id": game_id}
        if unread_only:
            query["is_read"] = False
        cursor = self._collection.find(query).sort("created_at", -1).limit(limit)
        notifications: list[Notification] = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            notifications.append(Notification(**doc))
        return notifications

    async def count_unread(self, user_token: str, game_id: str) -> int:
        """Count unread notifications for a user in a game."""
        return await self._collection.count_documents(
            {"user_token": user_token, "game_id": game_id, "is_read": False}
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def mark_read(self, notification_id: str, user_token: str) -> bool:
        """Mark a single notification owned by ``user_token`` as read.

        Returns:
            True if a document was modified, False otherwise.
        """
        if not ObjectId.is_valid(notification_id):
            return False

        result = await self._collection.update_one(
            {"_id": ObjectId(notification_id), "user_token": user_token},
            {"$set": {"is_read": True}},
        )
        return result.modified_count > 0

    async def mark_all_read(self, user_token: str, game_id: str) -> int:
        """Mark all unread notifications for a user in a game as read.

        Returns:
            The number of notifications that were marked as read.
        """
        result = await self._collection.update_many(
            {"user_token": user_token, "game_id": game_id, "is_read": False},
            {"$set": {"is_read": True}},
        )
        if result.modified_count > 0:
            logger.info(
                "Marked %d notifications as read for user_token=%s in game=%s",
                result.modified_count,
                user_token,
                game_id,
            )
        return result.modified_count
