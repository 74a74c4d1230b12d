# backend/nursery/landing/service.py
from __future__ import annotations
import asyncio
from typing import Callable, Optional

from redis.asyncio import Redis

from ..images.label_sync import LabelSyncResult, remove_namespace_labels, sync_labels_for_document
from ..images.repository import ImageRepository
from ..locks.distributed import DistributedLock, LockTimeoutError
from ..shared.config import settings
from ..shared.db import SessionFactory
from ..shared.logging import get_logger
from .cache import ContentCache
from .schemas import LandingPageContent, LandingPageVariant, utc_now_iso
from .store import LandingPageStore

UPDATE = "update"
VARIANTS_RESOURCE = "landing-page-variants"


class VariantNotFoundError(LookupError):
    pass


class ContentWriteGate:
    """
    라벨 추가 → 문서 저장 → 오래된 라벨 제거 순서를 강제한다.

    새로 참조된 이미지가 라벨 없이 "사용 중" 문서에 먼저 저장되면, 그 사이 도는 GC 가
    지워버릴 수 있다. 그래서 라벨이 먼저, 문서가 나중이다.
    반대로 빠지는 이미지의 라벨은 새 문서가 디스크에 올라간 뒤에만 뗀다. 저장이 실패하면
    이전 문서가 참조하는 이미지는 라벨을 그대로 갖고 있다.
    - 라벨 추가가 실패하면 쓰지 않고 원래 예외를 그대로 올린다.
    - 잠금은 여기서 잡지 않는다 (GuardedContentService 담당).
    """

    def __init__(self, store: LandingPageStore, session_factory: SessionFactory, log=None):
        self.store = store
        self.session_factory = session_factory
        self.log = log or get_logger("write-gate")

    def sync_labels(
        self,
        document: LandingPageContent,
        variant_id: Optional[str] = None,
        add: bool = True,
        prune: bool = True,
    ) -> LabelSyncResult:
        with self.session_factory() as db:
            try:
                result = sync_labels_for_document(
                    ImageRepository(db), document, variant_id, add=add, prune=prune
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
        return result

    def write_content(
        self, document: LandingPageContent, variant_id: Optional[str] = None
    ) -> tuple[LandingPageContent, LabelSyncResult]:
        ctx = self.store.context(variant_id)
        # 1) 새 참조 라벨 먼저
        labels = self.sync_labels(document, variant_id, prune=False)
        # 2) 성공했을 때만 lastUpdated 찍고 원자적 저장
        stored = document.stamped()
        ctx.write_atomic(stored)
        # 3) 저장된 뒤에만 빠진 이미지 라벨 제거. 실패해도 남는 건 여분 라벨뿐 (daily job 이 정리)
        try:
            labels += self.sync_labels(stored, variant_id, add=False)
        except Exception as e:
            self.log.error(f"Stale label cleanup for {ctx.name} failed, left for daily sync: {e}")
        self.log.info(f"Content written for {ctx.name} (labels +{labels.added}, -{labels.removed})")
        return stored, labels


class GuardedContentService:
    """
    잠금 + write gate. 같은 문서에 대한 쓰기는 구조적으로 직렬화된다.
    잠금 ttl 보다 오래 걸리는 작업은 여기서 하면 안 된다 (DistributedLock 참고).

    잠금 순서는 항상 문서 잠금 → variants.json 잠금.
    """

    def __init__(
        self,
        redis: Redis,
        gate: ContentWriteGate,
        cache: Optional[ContentCache] = None,
        lock_timeout: float | None = None,
        lock_ttl: float | None = None,
        log=None,
    ):
        self.redis = redis
        self.gate = gate
        self.cache = cache
        self.lock_timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        self.lock_ttl = lock_ttl
        self.log = log or get_logger("content-service")

    @property
    def store(self) -> LandingPageStore:
        return self.gate.store

    def _lock(self, resource: str, operation: str) -> DistributedLock:
        return DistributedLock(self.redis, resource, operation, ttl=self.lock_ttl)

    async def _locked(self, lock: DistributedLock, fn):
        result = await lock.with_lock(fn, self.lock_timeout)
        if result is None:
            raise LockTimeoutError(lock.key, self.lock_timeout)
        return result

    def _require_variant(self, variant_id: str) -> None:
        if self.store.get_variant(variant_id) is None:
            raise VariantNotFoundError(variant_id)

    async def update_content(
        self, document: LandingPageContent, variant_id: Optional[str] = None
    ) -> LandingPageContent:
        ctx = self.store.context(variant_id)

        async def critical():
            # 삭제도 같은 문서 잠금을 잡으므로 존재 확인은 잠금 안에서
            if variant_id is not None:
                self._require_variant(variant_id)
            stored, _ = await asyncio.to_thread(self.gate.write_content, document, variant_id)
            if variant_id is not None:
                try:
                    await self._update_variants(lambda vs: _touch(vs, variant_id))
                except LockTimeoutError as e:
                    # 문서는 이미 저장됨. lastModified 만 못 찍음
                    self.log.warning(f"Variant {variant_id} timestamp not updated: {e}")
            return stored

        stored = await self._locked(self._lock(ctx.lock_resource, UPDATE), critical)

        # 쓰기는 이미 성공. 캐시 무효화 실패는 치명적이지 않음
        if self.cache is not None and variant_id is None:
            await self.cache.invalidate()
        return stored

    async def delete_variant(self, variant_id: str) -> int:
        """
        문서 잠금 + variants.json 잠금을 모두 잡은 뒤에만 지운다.
        둘 중 하나라도 timeout 이면 아무것도 바뀌지 않는다.
        순서: 라벨 제거(commit) → content 파일 삭제 → variants.json 에서 제거
        """
        ctx = self.store.context(variant_id)

        def _remove() -> int:
            self._require_variant(variant_id)
            with self.gate.session_factory() as db:
                try:
                    removed = remove_namespace_labels(ImageRepository(db), variant_id)
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
            self.store.delete_variant_content(variant_id)
            self.store.write_variants(
                [v for v in self.store.read_variants() if v.id != variant_id]
            )
            return removed

        async def critical():
            return await self._locked(
                self._lock(VARIANTS_RESOURCE, UPDATE), lambda: asyncio.to_thread(_remove)
            )

        return await self._locked(self._lock(ctx.lock_resource, UPDATE), critical)

    async def _update_variants(
        self, change: Callable[[list[LandingPageVariant]], list[LandingPageVariant]]
    ) -> None:
        """variants.json 은 모든 variant 가 공유 → 별도 잠금으로 read-modify-write"""

        def _apply() -> bool:
            self.store.write_variants(change(self.store.read_variants()))
            return True

        await self._locked(
            self._lock(VARIANTS_RESOURCE, UPDATE), lambda: asyncio.to_thread(_apply)
        )


def _touch(variants: list[LandingPageVariant], variant_id: str) -> list[LandingPageVariant]:
    now = utc_now_iso()
    for v in variants:
        if v.id == variant_id:
            v.last_modified = now
            v.updated_at = now
    return variants
