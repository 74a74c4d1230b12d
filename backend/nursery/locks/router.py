# backend/nursery/locks/router.py
from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis

from ..deps import get_redis, require_admin
from ..shared.config import settings
from ..shared.logging import get_logger
from .distributed import DistributedLock, force_release, lock_key
from .schemas import LockOut, LockReleaseOut

router = APIRouter(prefix=f"{settings.API_PREFIX}/locks", tags=["locks"])
log = get_logger("locks")


@router.get("", response_model=LockOut)
async def get_lock(
    resource: str = Query(..., min_length=1, max_length=128),
    operation: str = Query("update", min_length=1, max_length=64),
    redis: Redis = Depends(get_redis),
):
    lock = DistributedLock(redis, resource, operation)
    held = await lock.is_held()
    return LockOut(
        key=lock.key,
        resource=resource,
        operation=operation,
        held=held,
        remaining_ms=await lock.remaining_ttl() if held else None,
    )


@router.post("/force-release", response_model=LockReleaseOut)
async def force_release_lock(
    resource: str = Query(..., min_length=1, max_length=128),
    operation: str = Query("update", min_length=1, max_length=64),
    redis: Redis = Depends(get_redis),
    _=Depends(require_admin),
):
    # 토큰 확인 없이 삭제. 멈춘 holder 를 ttl 전에 치울 때만 사용
    released = await force_release(redis, resource, operation)
    key = lock_key(resource, operation)
    log.warning(f"Force release requested for {key} (released={released})")
    return LockReleaseOut(key=key, released=released)
