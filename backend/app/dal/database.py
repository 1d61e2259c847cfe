"""MongoDB database connection management using Motor async driver.

Includes connection lifecycle and index management for all collections.
"""

import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.config import settings

logger = logging.getLogger("headcount.dal.database")

# Global database client and database instances
_client: AsyncIOMotorClient | None = None
_database: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> None:
    """Establish connection to MongoDB.

    Called during FastAPI application startup.
    """
    global _client, _database

    _client = AsyncIOMotorClient(
        settings.MONGO_URL,
        serverSelectionTimeoutMS=5000,  # 5 second timeout
        tz_aware=True,
    )
    _database = _client[settings.DATABASE_NAME]

    # Verify connection by pinging the database
    await _client.admin.command("ping")
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)


async def close_mongo_connection() -> None:
    """Close MongoDB connection.

    Called during FastAPI application shutdown.
    """
    global _client

    if _client:
        _client.close()
        logger.info("Closed MongoDB connection")


def get_database() -> AsyncIOMotorDatabase:
    """Get the MongoDB database instance.

    Returns:
        AsyncIOMotorDatabase: The database instance.

    Raises:
        RuntimeError: If database is not initialized.
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() first."
        )
    return _database


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create all indexes used by the DAL classes.

    This is idempotent -- MongoDB silently ignores indexes that already exist.
    Should be called on application startup after the connection is established.

    Args:
        db: The Motor database instance to create indexes on.
    """
    logger.info("Ensuring indexes for all collections...")

    # --- games indexes ---
    games = db.games

    # 1. Share codes are unique.
    await games.create_index(
        [("code", ASCENDING)],
        unique=True,
        name="uq_code",
    )

    # 2. "My games" listing for organizers.
    await games.create_index(
        [("organizer_token", ASCENDING), ("created_at", DESCENDING)],
        name="idx_organizer_created",
    )

    # --- participations indexes ---
    participations = db.participations

    # 1. At most one record per user per game.
    await participations.create_index(
        [("game_id", ASCENDING), ("user_token", ASCENDING)],
        unique=True,
        name="uq_game_user_token",
    )

    # 2. Snapshot reads in queue order.
    await participations.create_index(
        [("game_id", ASCENDING), ("joined_at", ASCENDING)],
        name="idx_game_joined",
    )

    # 3. "My games" listing for participants.
    await participations.create_index(
        [("user_token", ASCENDING)],
        name="idx_user_token",
    )

    # --- notifications indexes ---
    notifications = db.notifications

    # 1. User polls unread notifications.
    await notifications.create_index(
        [
            ("user_token", ASCENDING),
            ("game_id", ASCENDING),
            ("is_read", ASCENDING),
            ("created_at", DESCENDING),
        ],
        name="idx_user_game_unread",
    )

    # 2. TTL: auto-delete old notifications.
    await notifications.create_index(
        [("created_at", ASCENDING)],
        expireAfterSeconds=settings.NOTIFICATION_TTL_SECONDS,
        name="ttl_notifications",
    )

    logger.info("All indexes ensured successfully.")
