from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

import mealcomp.core.cache  # noqa: F401
import mealcomp.core.database  # noqa: F401
import mealcomp.core.logging_config  # noqa: F401 - registers logging lifespan
from mealcomp.checkins.router import router as checkins_router
from mealcomp.competitions.exceptions import (
    CheckInNotFound,
    CompetitionAccessDenied,
    CompetitionNotFound,
    ParticipantNotRanked,
)
from mealcomp.competitions.router import router as competitions_router
from mealcomp.config import get_settings
from mealcomp.core.lifespan import manager
from mealcomp.core.logging_config import configure_logging
from mealcomp.core.middleware import LoggingMiddleware, RequestContextMiddleware
from mealcomp.core.request_context import get_request_id
from mealcomp.scoring.exceptions import (
    IncompleteDataError,
    InvalidWindowError,
    SnapshotMismatchError,
)
from mealcomp.scoring.router import router as scoring_router

# Configure logging FIRST (before app creation and settings access)
configure_logging()

settings = get_settings()

app_configs = {
    "title": settings.APP_NAME,
    "version": "1.0.0",
    "lifespan": manager,
}

if settings.ENVIRONMENT not in ("local", "staging"):
    app_configs["openapi_url"] = None

app = FastAPI(**app_configs)

# Add middleware (order matters - last added runs first)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestContextMiddleware)  # Must run before logging

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(competitions_router)
app.include_router(scoring_router)
app.include_router(checkins_router)

# Domain errors and the HTTP status they map to
ERROR_STATUS_CODES = {
    CompetitionNotFound: 404,
    CheckInNotFound: 404,
    ParticipantNotRanked: 404,
    CompetitionAccessDenied: 403,
    InvalidWindowError: 422,
    SnapshotMismatchError: 409,
    IncompleteDataError: 503,
}


async def domain_exception_handler(request: Request, exc: Exception):
    """Translate domain errors into JSON error responses.

    Parameters
    ----------
    request : Request
        The HTTP request that raised the error
    exc : Exception
        One of the errors listed in ERROR_STATUS_CODES

    Returns
    -------
    JSONResponse
        Error response with request_id for tracking
    """
    request_id = get_request_id()
    status_code = ERROR_STATUS_CODES[type(exc)]
    logger.warning(
        "Request failed",
        request_id=request_id,
        path=request.url.path,
        status_code=status_code,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "request_id": request_id},
    )


for exc_class in ERROR_STATUS_CODES:
    app.add_exception_handler(exc_class, domain_exception_handler)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with structured logging.

    Parameters
    ----------
    request : Request
        The HTTP request that caused the exception
    exc : Exception
        The unhandled exception

    Returns
    -------
    JSONResponse
        Error response with request_id for tracking
    """
    request_id = get_request_id()
    logger.error(
        "Unhandled exception",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id},
    )


@app.get("/health")
async def health():
    return {"status": "healthy"}
