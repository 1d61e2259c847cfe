"""Game Data Access Layer -- MongoDB operations for the games collection.

All ObjectId handling is transparent: callers pass/receive strings, the
DAL converts as needed.
"""

import logging
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.game import Game

logger = logging.getLogger("headcount.dal.games")

COLLECTION = "games"


class GameDAL:
    """Data access layer for the games collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, game: Game) -> Game:
        """Insert a new game document and return it with its generated id.

        Args:
            game: A Game model instance (id may be None).

        Returns:
            The Game with its ``id`` populated from the inserted ObjectId.
        """
        doc = game.to_mongo_dict()
        result = await self._collection.insert_one(doc)
        game.id = str(result.inserted_id)
        logger.info("Created game %s with code %s", game.id, game.code)
        return game

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, game_id: str) -> Optional[Game]:
        """Find a game by its MongoDB ``_id``.

        Args:
            game_id: String representation of the ObjectId.

        Returns:
            A Game instance, or None if not found.
        """
        if not ObjectId.is_valid(game_id):
            return None
        doc = await self._collection.find_one({"_id": ObjectId(game_id)})
        if doc is None:
            return None
        doc["_id"] = str(doc["_id"])
        return Game(**doc)

    async def get_by_code(self, code: str) -> Optional[Game]:
        """Find a game by its share code.

        Args:
            code: The uppercase share code.

        Returns:
            A Game instance, or None if not found.
        """
        doc = await self._collection.find_one({"code": code})
        if doc is None:
            return None
        doc["_id"] = str(doc["_id"])
        return Game(**doc)

    async def list_for_user(
        self,
        user_token: str,
        game_ids: list[str],
        limit: int = 10,
        skip: int = 0,
    ) -> list[Game]:
        """List games a user organizes or appears in, newest first.

        Args:
            user_token: The user's UUID token (matched against organizer).
            game_ids: Ids of games the user has a participation in.
            limit: Maximum number of results.
            skip: Number of documents to skip (for pagination).

        Returns:
            A list of Game instances.
        """
        cursor = (
            self._collection.find(self._user_filter(user_token, game_ids))
            .sort("created_at", -1)
            .skip(skip)
            .limit(limit)
        )
        games: list[Game] = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            games.append(Game(**doc))
        return games

    async def count_for_user(self, user_token: str, game_ids: list[str]) -> int:
        """Count the games :meth:`list_for_user` would page through."""
        return await self._collection.count_documents(
            self._user_filter(user_token, game_ids)
        )

    @staticmethod
    def _user_filter(user_token: str, game_ids: list[str]) -> dict[str, Any]:
        object_ids = [ObjectId(g) for g in game_ids if ObjectId.is_valid(g)]
        return {
            "$or": [
                {"organizer_token": user_token},
                {"_id": {"$in": object_ids}},
            ]
        }

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_fields(self, game_id: str, fields: dict[str, Any]) -> bool:
        """Set top-level fields on a game document.

        Args:
            game_id: String ObjectId of the game.
            fields: Field names to new values. ``None`` values are stored
                as null (used to clear ``published_at``).

        Returns:
            True if a document was modified, False otherwise.
        """
        if not ObjectId.is_valid(game_id):
            return False

        result = await self._collection.update_one(
            {"_id": ObjectId(game_id)},
            {"$set": fields},
        )
        if result.modified_count > 0:
            logger.info("Game %s updated: %s", game_id, sorted(fields))
        return result.modified_count > 0
