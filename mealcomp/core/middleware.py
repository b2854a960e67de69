"""FastAPI middleware for request context and logging.

RequestContextMiddleware must wrap LoggingMiddleware, so add it last:
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)
"""

import json
import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from mealcomp.core.request_context import (
    generate_request_id,
    set_request_id,
    set_viewer_id,
)

# Max body size to log (in bytes)
MAX_BODY_LOG_SIZE = 4000

# Free-text patient fields never written to logs
REDACTED_FIELDS = frozenset({"observations", "photo_url", "tag"})


def redact(body):
    """Replace free-text patient fields of a JSON body with a marker."""
    if isinstance(body, dict):
        return {
            key: "<redacted>" if key in REDACTED_FIELDS else redact(value)
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [redact(item) for item in body]
    return body


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Put request_id and viewer_id into the context of each request.

    The request_id is echoed back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = generate_request_id()
        set_request_id(request_id)
        set_viewer_id(request.headers.get("X-User-Id"))

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests and responses with timing.

    Request bodies are logged with patient free-text fields redacted.
    Skips /health to reduce noise.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process the request with logging.

        Parameters
        ----------
        request : Request
            The incoming HTTP request
        call_next : callable
            The next middleware or route handler

        Returns
        -------
        Response
            The HTTP response
        """
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()

        body_data = None
        if request.method in ("POST", "PUT", "PATCH"):
            body_bytes = await request.body()
            if not body_bytes:
                body_data = None
            elif len(body_bytes) > MAX_BODY_LOG_SIZE:
                body_data = f"<body too large: {len(body_bytes)} bytes>"
            else:
                try:
                    body_data = redact(json.loads(body_bytes))
                except json.JSONDecodeError:
                    body_data = "<non-JSON body>"

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "query_params": str(request.query_params),
            "client_ip": request.client.host if request.client else None,
        }
        if body_data is not None:
            log_data["body"] = body_data

        logger.info("Request started", **log_data)

        response = await call_next(request)

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )

        return response
