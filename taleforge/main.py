import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

import redis
from fastapi import FastAPI

from taleforge import __version__
from taleforge.api.routes import router
from taleforge.config import AppSettings, settings_from_env
from taleforge.generation.factory import create_client
from taleforge.infra.redis_client import create_redis
from taleforge.registry import SessionRegistry
from taleforge.store import RedisSnapshotStore
from taleforge.streams import redis_sink, websocket_relay

logger = logging.getLogger(__name__)


def build_registry(*, settings: AppSettings, r: redis.Redis) -> SessionRegistry:
    """Wire the session core to its collaborators: narrator, Redis snapshots and event relays."""

    return SessionRegistry(
        client=create_client(settings.generation),
        store=RedisSnapshotStore(r),
        settings=settings.session,
        sinks=[websocket_relay, redis_sink(r)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = settings_from_env()
    logging.getLogger("taleforge").setLevel(settings.log_level.upper())

    r = create_redis(settings.redis_url)
    registry = build_registry(settings=settings, r=r)
    app.state.registry = registry
    reaper = asyncio.create_task(registry.run_reaper(), name="session-reaper")
    logger.info(
        "taleforge started (backend=%s, idle_timeout=%ss)",
        settings.generation.backend,
        settings.session.idle_timeout_s,
    )
    try:
        yield
    finally:
        reaper.cancel()
        with suppress(asyncio.CancelledError):
            await reaper
        await registry.close()
        r.close()


app = FastAPI(title="taleforge", version=__version__, lifespan=lifespan)
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "taleforge", "version": __version__}
