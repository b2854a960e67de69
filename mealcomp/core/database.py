from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from mealcomp.config import get_settings
from mealcomp.core.lifespan import manager


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""

    pass


settings = get_settings()


def create_session_maker(database_url: str) -> tuple[AsyncEngine, async_sessionmaker]:
    """Create the engine and session factory.

    Leaderboard builds open one session per participant fetch, so the pool
    is sized for ``FETCH_CONCURRENCY`` concurrent sessions plus request
    sessions.
    """
    engine = create_async_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=max(settings.FETCH_CONCURRENCY, 5),
        max_overflow=settings.FETCH_CONCURRENCY * 2,
        echo=settings.DEBUG,
    )
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@manager.add
@asynccontextmanager
async def database_lifespan() -> AsyncIterator[dict]:
    """
    Manage database connection lifecycle.
    Creates connection pool on startup, disposes on shutdown.
    """
    logger.info("Initializing database connection pool")

    engine, session_maker = create_session_maker(settings.DATABASE_URL)

    logger.info("Database connection pool ready")

    yield {"session_maker": session_maker}

    logger.info("Shutting down database connection pool")
    await engine.dispose()
    logger.info("Database disconnected")
