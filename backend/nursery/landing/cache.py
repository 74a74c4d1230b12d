import json
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..shared.config import settings
from ..shared.logging import get_logger
from .schemas import LandingPageContent

log = get_logger("content-cache")

CACHE_KEY = "landing-page-content:v1"


class ContentCache:
    """공식 content 의 Redis 캐시. 실패는 모두 로그만 (캐시 미스로 취급)"""

    def __init__(self, redis: Redis, ttl: int | None = None, key: str = CACHE_KEY):
        self.redis = redis
        self.ttl = settings.CONTENT_CACHE_TTL_SECONDS if ttl is None else ttl
        self.key = key

    async def get(self) -> Optional[LandingPageContent]:
        try:
            cached = await self.redis.get(self.key)
        except RedisError as e:
            log.error(f"Error reading from cache: {e}")
            return None
        if not cached:
            return None
        try:
            return LandingPageContent.model_validate(json.loads(cached))
        except ValueError as e:
            # 깨진 값은 미스로 보고 다음 set 이 덮어쓴다
            log.error(f"Invalid cached content, ignoring: {e}")
            return None

    async def set(self, document: LandingPageContent) -> None:
        try:
            await self.redis.set(self.key, json.dumps(document.to_json()), ex=self.ttl)
        except RedisError as e:
            log.error(f"Error caching content: {e}")

    async def invalidate(self) -> None:
        try:
            await self.redis.delete(self.key)
            log.info("Landing page cache invalidated")
        except RedisError as e:
            log.error(f"Error invalidating cache: {e}")
