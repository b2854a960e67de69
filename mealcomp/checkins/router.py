"""API endpoints for meal check-ins."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.checkins.schemas import CheckInCreate, CheckInRecord, CheckInUpdate
from mealcomp.checkins.service import check_in_service
from mealcomp.core.cache import SnapshotCache
from mealcomp.dependencies import (
    get_session,
    get_session_maker,
    get_snapshot_cache,
    get_viewer_id,
    verify_admin_api_key,
)
from mealcomp.scoring.service import scoring_service

router = APIRouter(
    prefix="/checkins",
    tags=["checkins"],
    dependencies=[Depends(verify_admin_api_key)],
)


@router.post("", response_model=CheckInRecord, status_code=201)
async def create_check_in(
    data: CheckInCreate,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Log a check-in for the calling patient and refresh their leaderboards."""
    record = await check_in_service.add_check_in(db, viewer_id, data)
    await scoring_service.on_check_in_changed(db, session_maker, cache, viewer_id)
    return record


@router.get("/me", response_model=list[CheckInRecord])
async def list_my_check_ins(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
):
    """Get the calling patient's check-ins, most recent first."""
    return await check_in_service.list_patient_check_ins(
        db, viewer_id, limit=limit, offset=offset
    )


@router.patch("/{check_in_id}", response_model=CheckInRecord)
async def update_check_in(
    check_in_id: str,
    data: CheckInUpdate,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Edit one of the calling patient's check-ins and refresh their leaderboards."""
    record = await check_in_service.update_check_in(db, viewer_id, check_in_id, data)
    await scoring_service.on_check_in_changed(db, session_maker, cache, viewer_id)
    return record


@router.delete("/{check_in_id}", status_code=204)
async def delete_check_in(
    check_in_id: str,
    viewer_id: str = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    """Delete one of the calling patient's check-ins."""
    await check_in_service.delete_check_in(db, viewer_id, check_in_id)
    await scoring_service.on_check_in_changed(db, session_maker, cache, viewer_id)
