from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .jobs.label_sync import DailyLabelSync, sync_context
from .landing.cache import ContentCache
from .landing.router import router as landing_router
from .landing.service import ContentWriteGate, GuardedContentService
from .landing.store import LandingPageStore
from .landing.watcher import LandingPageWatcher
from .locks.router import router as locks_router
from .shared.config import settings
from .shared.db import SessionLocal
from .shared.logging import get_logger, setup_logging
from .shared.redis import create_redis

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    redis = create_redis()
    store = LandingPageStore(settings.CONTENT_DATA_DIR)
    cache = ContentCache(redis)
    gate = ContentWriteGate(store, SessionLocal)

    app.state.redis = redis
    app.state.store = store
    app.state.cache = cache
    app.state.content_service = GuardedContentService(redis, gate, cache)
    app.state.label_sync = label_sync = DailyLabelSync(store, SessionLocal)

    # safety net 1: 파일 watcher / safety net 2: daily job
    watcher = LandingPageWatcher(
        store.content_path, lambda: sync_context(store.context(), SessionLocal)
    )
    if settings.WATCHER_ENABLED:
        watcher.start()
    if settings.LABEL_SYNC_ENABLED:
        label_sync.start()

    try:
        yield
    finally:
        watcher.stop()
        await label_sync.stop()
        await redis.aclose()
        log.info("Shutdown complete")


app = FastAPI(
    title="Nursery Content API",
    version="0.1.0",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get(f"{settings.API_PREFIX}/healthz")
def healthz():
    return {"status": "ok", "app": "nursery-content"}


app.include_router(landing_router)
app.include_router(locks_router)
