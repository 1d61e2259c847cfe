"""Participation Data Access Layer -- MongoDB operations for the
participations collection.

One document per (game_id, user_token). Records are upserted, never
deleted.
"""

import logging
from typing import Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from app.models.participation import Participation

logger = logging.getLogger("headcount.dal.participations")

COLLECTION = "participations"


class ParticipationDAL:
    """Data access layer for the participations collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_game(self, game_id: str) -> list[Participation]:
        """Return every participation in a game in insertion-stable order.

        Sorted by ``joined_at`` then ``_id`` so the engine sees the same
        ordering on every read.
        """
        cursor = self._collection.find({"game_id": game_id}).sort(
            [("joined_at", 1), ("_id", 1)]
        )
        participations: list[Participation] = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            participations.append(Participation(**doc))
        return participations

    async def get_by_user(
        self, game_id: str, user_token: str
    ) -> Optional[Participation]:
        """Find the participation of one user in one game.

        Uses the ``uq_game_user_token`` unique compound index.
        """
        doc = await self._collection.find_one(
            {"game_id": game_id, "user_token": user_token}
        )
        if doc is None:
            return None
        doc["_id"] = str(doc["_id"])
        return Participation(**doc)

    async def get_game_ids_for_user(self, user_token: str) -> list[str]:
        """Ids of every game the user has a participation record in."""
        cursor = self._collection.find(
            {"user_token": user_token}, {"game_id": 1}
        )
        return [doc["game_id"] async for doc in cursor]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def upsert(self, participation: Participation) -> Participation:
        """Insert or replace the record for (game_id, user_token)."""
        doc = participation.to_mongo_dict()
        doc.pop("_id", None)
        result = await self._collection.update_one(
            {
                "game_id": participation.game_id,
                "user_token": participation.user_token,
            },
            {"$set": doc},
            upsert=True,
        )
        if result.upserted_id is not None:
            participation.id = str(result.upserted_id)
            logger.info(
                "Created participation for user %s in game %s",
                participation.user_token, participation.game_id,
            )
        return participation

    async def upsert_many(
        self, participations: Iterable[Participation]
    ) -> list[Participation]:
        """Upsert every record in a single ordered bulk write.

        Callers hold the game lock. New records get their generated ids.
        """
        records = list(participations)
        if not records:
            return records

        operations = []
        for participation in records:
            doc = participation.to_mongo_dict()
            doc.pop("_id", None)
            operations.append(
                UpdateOne(
                    {
                        "game_id": participation.game_id,
                        "user_token": participation.user_token,
                    },
                    {"$set": doc},
                    upsert=True,
                )
            )

        result = await self._collection.bulk_write(operations, ordered=True)
        for index, upserted_id in result.upserted_ids.items():
            records[index].id = str(upserted_id)
        logger.info(
            "Saved %d participation(s) in game %s (%d new)",
            len(records), records[0].game_id, len(result.upserted_ids),
        )
        return records
