from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # APP
    APP_NAME: str = "Meal Competitions"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # DB
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/meal_competitions"

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Security
    ADMIN_API_KEY: str

    # Scoring
    INCOMPLETE_DATA_POLICY: Literal["omit", "refuse"] = "omit"
    FETCH_CONCURRENCY: int = 8
    SNAPSHOT_CACHE_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings only loads once"""
    return Settings()
