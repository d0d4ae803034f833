import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from gridgame.api.deps import get_registry, get_settings
from gridgame.api.routes import router
from gridgame.session_store import SessionRegistry

# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

EVICTION_SWEEP_INTERVAL_S = 60.0


async def _sweep_idle_sessions(sessions: SessionRegistry) -> None:
    while True:
        await asyncio.sleep(EVICTION_SWEEP_INTERVAL_S)
        sessions.evict()


def _resolve_registry(app: FastAPI) -> SessionRegistry:
    return app.dependency_overrides.get(get_registry, get_registry)()


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    sessions = _resolve_registry(app)
    sweeper = asyncio.create_task(_sweep_idle_sessions(sessions))
    yield
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    # Cancel pending reset timers and contact form loads before the loop goes away.
    logger.info("shutting down %d live session(s)", len(sessions))
    sessions.close_all()


app = FastAPI(title="gridgame", version="0.1.0", lifespan=_lifespan)
app.include_router(router)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "gridgame", "version": "0.1.0"}
