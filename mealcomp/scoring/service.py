"""Service layer for competition leaderboards.

Fetches definitions and check-ins, hands them to the pure
``LeaderboardBuilder`` and keeps the snapshot cache current. The viewer is
always passed explicitly; there is no ambient "current user".
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.checkins.service import check_in_service
from mealcomp.competitions.exceptions import ParticipantNotRanked
from mealcomp.competitions.schemas import CompetitionDefinition
from mealcomp.competitions.service import competition_service
from mealcomp.config import get_settings
from mealcomp.core.cache import SnapshotCache
from mealcomp.scoring.exceptions import ScoringError
from mealcomp.scoring.leaderboard import IncompleteDataPolicy, LeaderboardBuilder
from mealcomp.scoring.schemas import (
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardSummary,
)


def _members(snapshot: LeaderboardSnapshot) -> set[str]:
    return {e.participant_id for e in snapshot.entries} | set(
        snapshot.unknown_participant_ids
    )


def summarize(snapshot: LeaderboardSnapshot) -> LeaderboardSummary:
    """Headline numbers of a snapshot.

    ``average_points`` is the mean total score of ranked participants,
    rounded half up to an integer.
    """
    total_points = sum(e.total_score for e in snapshot.entries)
    average = Decimal(0)
    if snapshot.total_participants:
        average = (Decimal(total_points) / snapshot.total_participants).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
    return LeaderboardSummary(
        competition_id=snapshot.competition_id,
        total_participants=snapshot.total_participants,
        total_check_ins=sum(e.check_in_count for e in snapshot.entries),
        average_points=int(average),
        unknown_participants=len(snapshot.unknown_participant_ids),
    )


class ScoringService:
    """Service for building, caching and refreshing leaderboards."""

    def __init__(
        self,
        builder: LeaderboardBuilder | None = None,
        fetch_concurrency: int | None = None,
    ):
        settings = get_settings()
        self.builder = builder or LeaderboardBuilder(
            IncompleteDataPolicy(settings.INCOMPLETE_DATA_POLICY)
        )
        self.fetch_concurrency = fetch_concurrency or settings.FETCH_CONCURRENCY

    async def build_leaderboard(
        self, session_maker: async_sessionmaker, definition: CompetitionDefinition
    ) -> LeaderboardSnapshot:
        """Fetch all participants' check-ins concurrently and build a snapshot."""
        check_ins = await check_in_service.fetch_many(
            session_maker,
            definition.participant_ids,
            definition.start_date,
            definition.end_date,
            concurrency=self.fetch_concurrency,
        )
        return self.builder.build(definition, check_ins)

    async def get_leaderboard(
        self,
        db: AsyncSession,
        session_maker: async_sessionmaker,
        cache: SnapshotCache,
        competition_id: str,
        viewer_id: str,
    ) -> LeaderboardSnapshot:
        """Get the leaderboard of a competition, built or from cache.

        Parameters
        ----------
        db : AsyncSession
            Database session
        session_maker : async_sessionmaker
            Session factory for concurrent check-in fetches
        cache : SnapshotCache
            Snapshot cache
        competition_id : str
            Competition to rank
        viewer_id : str
            Caller; must own or take part in the competition

        Returns
        -------
        LeaderboardSnapshot
            Current snapshot. Incomplete snapshots are returned but not
            cached, so the next request fetches again.

        Raises
        ------
        CompetitionNotFound
            If the competition does not exist
        CompetitionAccessDenied
            If the viewer may not see the competition
        InvalidWindowError
            If the competition starts after it ends
        IncompleteDataError
            If data is missing and the policy is ``refuse``
        """
        definition = await competition_service.get_definition(db, competition_id)
        competition_service.ensure_can_view(definition, viewer_id)

        async with cache.lock(competition_id):
            cached = await cache.get(competition_id)
            if (
                cached is not None
                and cached.definition_version == definition.version
                and _members(cached) == set(definition.participant_ids)
            ):
                return cached

            snapshot = await self.build_leaderboard(session_maker, definition)
            if snapshot.is_complete:
                await cache.set(snapshot)
            return snapshot

    async def get_participant_score(
        self,
        db: AsyncSession,
        session_maker: async_sessionmaker,
        cache: SnapshotCache,
        competition_id: str,
        participant_id: str,
        viewer_id: str,
    ) -> LeaderboardEntry:
        """Get one participant's ranked entry, as shown on the patient view.

        Raises
        ------
        ParticipantNotRanked
            If the participant is not in the competition or their data was
            unavailable
        """
        snapshot = await self.get_leaderboard(
            db, session_maker, cache, competition_id, viewer_id
        )
        entry = snapshot.entry_for(participant_id)
        if entry is None:
            raise ParticipantNotRanked(competition_id, participant_id)
        return entry

    async def get_summary(
        self,
        db: AsyncSession,
        session_maker: async_sessionmaker,
        cache: SnapshotCache,
        competition_id: str,
        viewer_id: str,
    ) -> LeaderboardSummary:
        """Get the reports-screen summary of a competition."""
        snapshot = await self.get_leaderboard(
            db, session_maker, cache, competition_id, viewer_id
        )
        return summarize(snapshot)

    async def on_check_in_changed(
        self,
        db: AsyncSession,
        session_maker: async_sessionmaker,
        cache: SnapshotCache,
        participant_id: str,
    ) -> None:
        """Refresh cached leaderboards after a participant's check-ins changed.

        Each cached competition the participant takes part in is updated
        incrementally from the participant's full check-in list. Snapshots
        that cannot be updated are dropped.
        """
        competition_ids = await competition_service.competitions_for_participant(
            db, participant_id
        )
        for competition_id in competition_ids:
            async with cache.lock(competition_id):
                previous = await cache.get(competition_id)
                if previous is None:
                    continue

                definition = await competition_service.get_definition(db, competition_id)
                fetched = await check_in_service.fetch_many(
                    session_maker,
                    [participant_id],
                    definition.start_date,
                    definition.end_date,
                    concurrency=1,
                )
                try:
                    snapshot = self.builder.update(
                        previous, definition, participant_id, fetched[participant_id]
                    )
                except ScoringError as e:
                    logger.warning(
                        "Dropping cached leaderboard",
                        competition_id=competition_id,
                        reason=str(e),
                    )
                    await cache.invalidate(competition_id)
                    continue

                if snapshot.is_complete:
                    await cache.set(snapshot)
                else:
                    await cache.invalidate(competition_id)

    async def on_participants_changed(
        self,
        db: AsyncSession,
        session_maker: async_sessionmaker,
        cache: SnapshotCache,
        competition_id: str,
        added: Iterable[str] = (),
    ) -> None:
        """Refresh a cached leaderboard after participants were added or removed.

        Removed participants disappear without affecting anyone else; added
        participants are scored from their fetched check-ins.
        """
        async with cache.lock(competition_id):
            previous = await cache.get(competition_id)
            if previous is None:
                return

            definition = await competition_service.get_definition(db, competition_id)
            try:
                snapshot = self.builder.sync_participants(previous, definition)
                new_ids = [p for p in added if p in definition.participant_ids]
                fetched = await check_in_service.fetch_many(
                    session_maker,
                    new_ids,
                    definition.start_date,
                    definition.end_date,
                    concurrency=self.fetch_concurrency,
                )
                for participant_id in new_ids:
                    snapshot = self.builder.update(
                        snapshot, definition, participant_id, fetched[participant_id]
                    )
            except ScoringError as e:
                logger.warning(
                    "Dropping cached leaderboard",
                    competition_id=competition_id,
                    reason=str(e),
                )
                await cache.invalidate(competition_id)
                return

            if snapshot.is_complete:
                await cache.set(snapshot)
            else:
                await cache.invalidate(competition_id)


# Singleton instance
scoring_service = ScoringService()
