"""Per-game mutual exclusion for capacity-changing writes.

Every join, leave, publish-time change and field edit reads the current
snapshot, asks the engine for a decision and writes the result. Two such
sequences on the same game must not interleave, or both could claim the
last slot. Games are independent, so locks are keyed by game id.

The registry is process-local: run a single worker per database.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from weakref import WeakValueDictionary

logger = logging.getLogger("headcount.services.game_locks")


class GameLockRegistry:
    """Hands out one asyncio.Lock per game id."""

    def __init__(self) -> None:
        self._locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, game_id: str) -> asyncio.Lock:
        lock = self._locks.get(game_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[game_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, game_id: str) -> AsyncIterator[None]:
        """Serialize the enclosed block against other writers of ``game_id``."""
        lock = self._lock_for(game_id)
        if lock.locked():
            logger.debug("Waiting for lock on game %s", game_id)
        async with lock:
            yield


# Shared by every service instance in the process.
game_locks = GameLockRegistry()
