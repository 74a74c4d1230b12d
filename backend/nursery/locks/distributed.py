# backend/nursery/locks/distributed.py
from __future__ import annotations
import asyncio
import time
import uuid
from typing import Awaitable, Callable, Optional, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..shared.config import settings
from ..shared.logging import get_logger

T = TypeVar("T")

LOCK_PREFIX = "lock:"

# 값이 내 토큰일 때만 삭제 (get → del 을 한 번에)
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

BACKEND_ERRORS = (RedisError, OSError)


class LockError(Exception):
    """분산 잠금 관련 오류의 기반"""


class LockTimeoutError(LockError):
    """timeout 안에 잠금을 얻지 못함. 호출 측은 재시도/중단을 결정한다."""

    def __init__(self, key: str, timeout: float):
        super().__init__(f"Could not acquire lock {key} within {timeout}s, try again shortly")
        self.key = key
        self.timeout = timeout


def lock_key(resource: str, operation: str) -> str:
    return f"{LOCK_PREFIX}{operation}:{resource}"


class DistributedLock:
    """
    Redis SET NX PX 기반 (resource, operation) 상호배제.

    - 레코드는 ttl 후 자동 만료된다. holder 가 죽어도 잠금은 풀린다.
    - release 는 토큰이 일치할 때만 지운다 (만료 후 다른 holder 가 잡은 잠금 보호).
    - ⚠️ 배타성은 임계구역 시간 < ttl 일 때만 보장된다. ttl 을 넘기면 두 번째 호출자가
      잠금을 얻을 수 있고, release 는 경고 로그만 남긴다. with_lock 의 반환값으로
      "전체 구간이 배타적이었다"고 추론하지 말 것.
    """

    def __init__(
        self,
        redis: Redis,
        resource: str,
        operation: str,
        ttl: float | None = None,
        log=None,
    ):
        self.redis = redis
        self.key = lock_key(resource, operation)
        self.token = f"{int(time.time() * 1000)}-{uuid.uuid4().hex}"
        self.ttl = settings.LOCK_TTL_SECONDS if ttl is None else ttl
        self.acquired = False
        self.log = log or get_logger("lock")

    @property
    def ttl_ms(self) -> int:
        return max(1, int(self.ttl * 1000))

    async def acquire(self, timeout: float | None = None, retry_interval: float | None = None) -> bool:
        timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        retry_interval = (
            settings.LOCK_RETRY_INTERVAL_SECONDS if retry_interval is None else retry_interval
        )
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            try:
                ok = await self.redis.set(self.key, self.token, nx=True, px=self.ttl_ms)
            except BACKEND_ERRORS as e:
                # 백엔드 장애 = 획득 실패 (fail closed)
                self.log.error(f"Error acquiring distributed lock {self.key}: {e}")
                return False

            if ok:
                self.acquired = True
                self.log.debug(f"Lock acquired: {self.key}")
                return True

            if loop.time() - started >= timeout:
                break
            await asyncio.sleep(retry_interval)

        self.log.warning(f"Lock acquisition timeout: {self.key} (timeout={timeout}s)")
        return False

    async def release(self) -> None:
        if not self.acquired:
            return
        self.acquired = False
        try:
            deleted = await self.redis.eval(RELEASE_SCRIPT, 1, self.key, self.token)
        except BACKEND_ERRORS as e:
            # ttl 이 결국 회수하므로 호출자에게 올리지 않음
            self.log.error(f"Error releasing distributed lock {self.key}: {e}")
            return

        if deleted == 1:
            self.log.debug(f"Lock released: {self.key}")
        else:
            self.log.warning(
                f"Lock not released (already expired or held by another process): {self.key}"
            )

    async def with_lock(
        self, fn: Callable[[], Awaitable[T]], timeout: float | None = None
    ) -> Optional[T]:
        if not await self.acquire(timeout):
            self.log.warning(f"Could not acquire lock: {self.key}")
            return None
        try:
            return await fn()
        finally:
            await self.release()

    async def is_held(self) -> bool:
        return bool(await self.redis.exists(self.key))

    async def remaining_ttl(self) -> int | None:
        """남은 ms. 키가 없으면 None"""
        ms = await self.redis.pttl(self.key)
        return ms if ms is not None and ms >= 0 else None


async def with_distributed_lock(
    redis: Redis,
    resource: str,
    operation: str,
    fn: Callable[[], Awaitable[T]],
    timeout: float | None = None,
) -> Optional[T]:
    lock = DistributedLock(redis, resource, operation)
    return await lock.with_lock(fn, timeout)


async def force_release(redis: Redis, resource: str, operation: str) -> bool:
    """관리자용. 토큰 확인 없이 삭제"""
    return bool(await redis.delete(lock_key(resource, operation)))
