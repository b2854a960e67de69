"""API endpoints for competition leaderboards."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.core.cache import SnapshotCache
from mealcomp.dependencies import (
    get_session,
    get_session_maker,
    get_snapshot_cache,
    get_viewer_id,
    verify_admin_api_key,
)
from mealcomp.scoring.schemas import LeaderboardEntry, LeaderboardSnapshot, LeaderboardSummary
from mealcomp.scoring.service import scoring_service

router = APIRouter(
    prefix="/competitions",
    tags=["scoring"],
    dependencies=[Depends(verify_admin_api_key)],
)


@router.get("/{competition_id}/leaderboard", response_model=LeaderboardSnapshot)
async def get_leaderboard(
    competition_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Get the ranked leaderboard of a competition.

    Entries carry rank, total score and the per-rule breakdown, so clients
    render them without recomputing anything. Participants whose check-ins
    could not be loaded are listed in ``unknown_participant_ids`` instead of
    being ranked with zero points.

    Parameters
    ----------
    competition_id : str
        Competition ID
    viewer_id : str
        Caller (X-User-Id header); must own or take part in the competition

    Returns
    -------
    LeaderboardSnapshot
        Ranked snapshot
    """
    return await scoring_service.get_leaderboard(
        db, session_maker, cache, competition_id, viewer_id
    )


@router.get("/{competition_id}/leaderboard/summary", response_model=LeaderboardSummary)
async def get_leaderboard_summary(
    competition_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Get participant count, total check-ins and average points."""
    return await scoring_service.get_summary(
        db, session_maker, cache, competition_id, viewer_id
    )


@router.get(
    "/{competition_id}/participants/{participant_id}/score",
    response_model=LeaderboardEntry,
)
async def get_participant_score(
    competition_id: str,
    participant_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Get one participant's rank and score breakdown."""
    return await scoring_service.get_participant_score(
        db, session_maker, cache, competition_id, participant_id, viewer_id
    )
