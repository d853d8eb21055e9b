"""FastAPI dependency injection helpers.

Usage in a route::

    @router.post("/wait_on")
    async def wait_on(
        engine: Annotated[WatcherEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request

from payment_watcher.engine.client import WatcherEngine  # noqa: TC001
from payment_watcher.errors.definitions import ErrEngineNotReady


def get_engine(request: Request) -> WatcherEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup.

    Raises:
        WatcherError: 503 if the engine is not initialized.
    """
    engine: WatcherEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ErrEngineNotReady
    return engine
