"""API endpoints for competitions and their participants."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.competitions.schemas import (
    CompetitionCreate,
    CompetitionDefinition,
    CompetitionResponse,
    CompetitionUpdate,
)
from mealcomp.competitions.service import competition_service
from mealcomp.core.cache import SnapshotCache
from mealcomp.dependencies import (
    get_session,
    get_session_maker,
    get_snapshot_cache,
    get_viewer_id,
    verify_admin_api_key,
)
from mealcomp.scoring.calculator import utc_day
from mealcomp.scoring.service import scoring_service

router = APIRouter(
    prefix="/competitions",
    tags=["competitions"],
    dependencies=[Depends(verify_admin_api_key)],
)


def to_response(definition: CompetitionDefinition) -> CompetitionResponse:
    """Render a definition with its status for today (UTC)."""
    today = utc_day(datetime.now(timezone.utc))
    return CompetitionResponse(
        **definition.model_dump(exclude={"participant_ids"}),
        participant_ids=list(definition.participant_ids),
        status=definition.status_on(today),
    )


@router.post("", response_model=CompetitionResponse, status_code=201)
async def create_competition(
    data: CompetitionCreate,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
):
    """Create a competition owned by the calling nutritionist."""
    definition = await competition_service.create_competition(db, viewer_id, data)
    return to_response(definition)


@router.get("", response_model=list[CompetitionResponse])
async def list_competitions(
    owned: bool = False,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
):
    """List competitions the caller owns or takes part in.

    Parameters
    ----------
    owned : bool
        Only competitions owned by the caller (default: False)
    """
    if owned:
        definitions = await competition_service.list_owned(db, viewer_id)
    else:
        definitions = await competition_service.list_visible(db, viewer_id)
    return [to_response(d) for d in definitions]


@router.get("/{competition_id}", response_model=CompetitionResponse)
async def get_competition(
    competition_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
):
    """Get a competition visible to the caller."""
    definition = await competition_service.get_definition(db, competition_id)
    competition_service.ensure_can_view(definition, viewer_id)
    return to_response(definition)


@router.patch("/{competition_id}", response_model=CompetitionResponse)
async def update_competition(
    competition_id: str,
    data: CompetitionUpdate,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Change a competition (owner only).

    A window or rules change creates a new definition version, so the
    cached leaderboard is dropped.
    """
    previous = await competition_service.get_definition(db, competition_id)
    definition = await competition_service.update_competition(
        db, viewer_id, competition_id, data
    )
    if definition.version != previous.version:
        await cache.invalidate(competition_id)
    return to_response(definition)


@router.put("/{competition_id}/participants/{patient_id}", response_model=CompetitionResponse)
async def add_participant(
    competition_id: str,
    patient_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Add a patient to a competition (owner only)."""
    definition = await competition_service.add_participant(
        db, viewer_id, competition_id, patient_id
    )
    await scoring_service.on_participants_changed(
        db, session_maker, cache, competition_id, added=[patient_id]
    )
    return to_response(definition)


@router.delete(
    "/{competition_id}/participants/{patient_id}", response_model=CompetitionResponse
)
async def remove_participant(
    competition_id: str,
    patient_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Remove a patient from a competition (owner only).

    The patient disappears from the leaderboard; nobody else's score changes.
    """
    definition = await competition_service.remove_participant(
        db, viewer_id, competition_id, patient_id
    )
    await scoring_service.on_participants_changed(
        db, session_maker, cache, competition_id
    )
    return to_response(definition)
