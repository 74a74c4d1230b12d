from __future__ import annotations
from redis.asyncio import Redis
from .config import settings


def create_redis(url: str | None = None) -> Redis:
    """decode_responses=True so lock tokens compare as str"""
    return Redis.from_url(url or settings.REDIS_URL, decode_responses=True)
