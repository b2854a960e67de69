"""
Lifespan manager for FastAPI.
Modules register startup/shutdown contexts with ``@manager.add``; the state
each context yields is merged into ``request.state``.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import FastAPI


class LifespanManager:
    """Runs registered lifespan contexts in registration order."""

    def __init__(self):
        self._lifespans: list[Callable] = []

    def add(self, lifespan: Callable) -> Callable:
        """
        Decorator to register a lifespan context.

        Usage:
            @manager.add
            @asynccontextmanager
            async def cache_lifespan():
                yield {"snapshot_cache": SnapshotCache()}
        """
        self._lifespans.append(lifespan)
        return lifespan

    @asynccontextmanager
    async def __call__(self, app: FastAPI) -> AsyncIterator[dict[str, Any]]:
        """
        Enter all registered lifespans and merge their states.
        Contexts are exited in reverse order on shutdown.

        Raises
        ------
        RuntimeError
            If two lifespans yield the same state key
        """
        async with AsyncExitStack() as stack:
            combined_state: dict[str, Any] = {}

            for lifespan_func in self._lifespans:
                try:
                    context = lifespan_func(app)
                except TypeError:
                    context = lifespan_func()

                state = await stack.enter_async_context(context) or {}
                duplicated = combined_state.keys() & state.keys()
                if duplicated:
                    raise RuntimeError(
                        f"Lifespan {lifespan_func.__name__} redefines state keys: "
                        f"{sorted(duplicated)}"
                    )
                combined_state.update(state)

            yield combined_state


manager = LifespanManager()
