"""Logging configuration using loguru.

- Local: colorized console output with source file:line numbers
- Other environments: one JSON object per line on stderr

A patcher stamps every record with the request_id and viewer_id of the
request being served, and standard library logging (uvicorn, SQLAlchemy) is
routed into loguru.
"""

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger

from mealcomp.config import get_settings
from mealcomp.core.lifespan import manager
from mealcomp.core.request_context import get_request_id, get_viewer_id


def add_request_context(record) -> None:
    """Loguru patcher adding request_id and viewer_id to ``extra``."""
    record["extra"].setdefault("request_id", get_request_id())
    record["extra"].setdefault("viewer_id", get_viewer_id())


def sink_serializer(message) -> None:
    """Sink writing records as compact JSON."""
    record = message.record
    payload = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
        "message": record["message"],
    }
    payload.update(
        {key: value for key, value in record["extra"].items() if not key.startswith("_")}
    )
    if record["exception"]:
        exc_type, exc_value, _ = record["exception"]
        payload["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "value": str(exc_value),
        }

    print(json.dumps(payload, default=str), file=sys.stderr)


class InterceptHandler(logging.Handler):
    """Handler routing standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging() -> None:
    """Configure loguru from settings and intercept standard logging."""
    settings = get_settings()

    logger.remove()
    logger.configure(patcher=add_request_context)

    if settings.ENVIRONMENT == "local":
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level> | {extra}"
            ),
            level=settings.LOG_LEVEL,
            colorize=True,
        )
    else:
        logger.add(sink_serializer, level=settings.LOG_LEVEL)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


@manager.add
@asynccontextmanager
async def logging_lifespan() -> AsyncIterator[dict]:
    """Log application startup and shutdown."""
    settings = get_settings()

    logger.info(
        "Application starting",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
        incomplete_data_policy=settings.INCOMPLETE_DATA_POLICY,
    )

    yield {}

    logger.info("Application shutting down")
