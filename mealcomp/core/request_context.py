"""Request context management using contextvars.

Holds the request_id and the viewer_id (caller identity forwarded by the
gateway) for the request being served. The logging patcher reads both, so
every log line emitted while handling a request - scoring warnings included -
can be traced back to it.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
viewer_id_var: ContextVar[Optional[str]] = ContextVar("viewer_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context.

    Returns
    -------
    Optional[str]
        The current request ID, or None outside a request
    """
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_viewer_id() -> Optional[str]:
    """Get the caller identity of the current request, for logging only.

    Services never read this; they receive the viewer as a parameter.
    """
    return viewer_id_var.get()


def set_viewer_id(viewer_id: Optional[str]) -> None:
    viewer_id_var.set(viewer_id)


def generate_request_id() -> str:
    """Generate a new unique request ID (UUID v4)."""
    return str(uuid.uuid4())
