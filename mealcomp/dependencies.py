"""FastAPI dependencies for accessing application state."""

from typing import AsyncIterator, cast

from fastapi import Header, HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.config import get_settings
from mealcomp.core.cache import SnapshotCache

# Define API key header scheme for Swagger UI
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=True)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Get database session from application state.

    Usage:
        @app.get("/competitions")
        async def list_competitions(session: AsyncSession = Depends(get_session)):
            ...
    """
    session_maker = cast(async_sessionmaker, request.state.session_maker)
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_session_maker(request: Request) -> async_sessionmaker:
    """
    Get the session factory, for work that needs one session per task
    (concurrent check-in fetches).
    """
    return cast(async_sessionmaker, request.state.session_maker)


async def get_snapshot_cache(request: Request) -> SnapshotCache:
    """Get leaderboard snapshot cache from application state."""
    return cast(SnapshotCache, request.state.snapshot_cache)


async def get_viewer_id(
    x_user_id: str = Header(..., description="Authenticated user ID forwarded by the gateway"),
) -> str:
    """
    Get the identity of the caller.

    Authentication happens upstream; the gateway forwards the user ID in the
    X-User-Id header. Every service call receives it as an explicit argument.

    Raises
    ------
    HTTPException
        401 if the header is blank
    """
    viewer_id = x_user_id.strip()
    if not viewer_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return viewer_id


async def verify_admin_api_key(api_key: str = Security(api_key_header)) -> None:
    """
    Verify service API key from X-API-Key header.

    Usage (on entire router):
        router = APIRouter(prefix="/competitions", dependencies=[Depends(verify_admin_api_key)])

    Raises
    ------
    HTTPException
        403 if API key is invalid or missing
    """
    settings = get_settings()
    if api_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")
