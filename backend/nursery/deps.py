# backend/nursery/deps.py
from typing import Optional
from fastapi import Header, HTTPException, Request
from redis.asyncio import Redis

from .jobs.label_sync import DailyLabelSync
from .landing.cache import ContentCache
from .landing.service import GuardedContentService
from .landing.store import LandingPageStore
from .shared.config import settings


# lifespan 에서 app.state 에 올려둔 것들
def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_store(request: Request) -> LandingPageStore:
    return request.app.state.store


def get_cache(request: Request) -> ContentCache:
    return request.app.state.cache


def get_content_service(request: Request) -> GuardedContentService:
    return request.app.state.content_service


def get_label_sync(request: Request) -> DailyLabelSync:
    return request.app.state.label_sync


def require_admin(x_admin_token: Optional[str] = Header(None)):
    if not x_admin_token or x_admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(403, "Forbidden")
    return True
