"""In-process leaderboard snapshot cache.

The scoring engine keeps no state; this cache belongs to the service layer,
which decides when entries are refreshed or dropped.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger

from mealcomp.config import get_settings
from mealcomp.core.lifespan import manager
from mealcomp.scoring.schemas import LeaderboardSnapshot

settings = get_settings()


class SnapshotCache:
    """Latest snapshot per competition, with one lock per competition.

    Hold ``lock(competition_id)`` across a read-recompute-write cycle so that
    concurrent refreshes of the same competition do not overwrite each other.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._snapshots: dict[str, LeaderboardSnapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, competition_id: str) -> asyncio.Lock:
        """Get the lock guarding one competition's entry."""
        return self._locks.setdefault(competition_id, asyncio.Lock())

    async def get(self, competition_id: str) -> LeaderboardSnapshot | None:
        """Get cached snapshot."""
        if not self.enabled:
            return None
        return self._snapshots.get(competition_id)

    async def set(self, snapshot: LeaderboardSnapshot) -> None:
        """Store snapshot, replacing any previous one."""
        if self.enabled:
            self._snapshots[snapshot.competition_id] = snapshot

    async def invalidate(self, competition_id: str) -> None:
        """Drop the snapshot of one competition."""
        if self._snapshots.pop(competition_id, None) is not None:
            logger.debug("Invalidated leaderboard snapshot", competition_id=competition_id)

    async def clear(self) -> None:
        self._snapshots.clear()
        self._locks.clear()


@manager.add
@asynccontextmanager
async def cache_lifespan() -> AsyncIterator[dict]:
    """
    Manage snapshot cache lifecycle.
    Creates the cache on startup, clears it on shutdown.
    """
    logger.info("Initializing snapshot cache", enabled=settings.SNAPSHOT_CACHE_ENABLED)

    snapshot_cache = SnapshotCache(enabled=settings.SNAPSHOT_CACHE_ENABLED)

    yield {"snapshot_cache": snapshot_cache}

    logger.info("Clearing snapshot cache")
    await snapshot_cache.clear()
