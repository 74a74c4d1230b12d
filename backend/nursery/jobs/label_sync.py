# backend/nursery/jobs/label_sync.py
"""
매일 도는 라벨 동기화 safety net.
watcher 가 놓친 변경 (서버 다운 중 편집 등) 을 공식 문서 + 모든 variant 에 대해 다시 맞춘다.
"""
from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..images.label_sync import LabelSyncResult, sync_labels_for_document
from ..images.repository import ImageRepository
from ..landing.store import DocumentContext, LandingPageStore
from ..shared.config import settings
from ..shared.db import SessionFactory
from ..shared.logging import get_logger

log = get_logger("label-sync-job")


@dataclass
class LabelSyncSummary:
    success: bool = False
    added_counts: dict[str, int] = field(default_factory=dict)
    removed_counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    finished_at: Optional[datetime] = None

    @property
    def total_changes(self) -> int:
        return sum(self.added_counts.values()) + sum(self.removed_counts.values())


def sync_context(ctx: DocumentContext, session_factory: SessionFactory) -> LabelSyncResult:
    """컨텍스트 하나. 문서가 없거나 읽을 수 없으면 라벨을 건드리지 않고 에러"""
    try:
        document = ctx.read(strict=True)
    except FileNotFoundError:
        raise FileNotFoundError(f"content document missing for {ctx.name}: {ctx.path}") from None
    except ValueError as e:
        raise ValueError(f"content document unreadable for {ctx.name}: {e}") from e
    with session_factory() as db:
        try:
            result = sync_labels_for_document(ImageRepository(db), document, ctx.variant_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
    return result


def run_label_sync_job(store: LandingPageStore, session_factory: SessionFactory) -> LabelSyncSummary:
    started = time.monotonic()
    summary = LabelSyncSummary()
    log.info("Starting image label sync...")

    try:
        contexts = store.contexts()
    except Exception as e:
        log.error(f"Label sync failed: {e}")
        contexts = [store.context()]
        summary.errors.append(f"Variant listing failed: {e}")

    for ctx in contexts:
        # 컨텍스트 하나가 실패해도 나머지는 계속
        try:
            result = sync_context(ctx, session_factory)
        except Exception as e:
            summary.errors.append(f"{ctx.name} sync failed: {e}")
            log.error(f"Label sync for {ctx.name} failed: {e}")
            continue
        summary.added_counts[ctx.name] = result.added
        summary.removed_counts[ctx.name] = result.removed
        if result.added or result.removed:
            log.info(f"{ctx.name} labels synced: +{result.added}, -{result.removed}")
        else:
            log.debug(f"{ctx.name} labels already in sync")

    summary.duration_ms = int((time.monotonic() - started) * 1000)
    summary.success = not summary.errors
    summary.finished_at = datetime.now()

    if summary.success:
        log.info(f"Label sync completed: {summary.total_changes} changes in {summary.duration_ms}ms")
    else:
        log.error(f"Label sync finished with {len(summary.errors)} error(s): {summary.errors}")
    return summary


def next_run_at(now: datetime, hour: int, minute: int = 0) -> datetime:
    """now 이후 첫 hour:minute (로컬)"""
    run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if run <= now:
        run += timedelta(days=1)
    return run


class DailyLabelSync:
    """
    asyncio 태스크로 매일 hour:minute 에 run_label_sync_job 실행.
    job 은 DB/파일 I/O 라 스레드에서 돌린다.
    """

    def __init__(
        self,
        store: LandingPageStore,
        session_factory: SessionFactory,
        hour: int | None = None,
        minute: int | None = None,
    ):
        self.store = store
        self.session_factory = session_factory
        self.hour = settings.LABEL_SYNC_HOUR if hour is None else hour
        self.minute = settings.LABEL_SYNC_MINUTE if minute is None else minute
        self.next_run: Optional[datetime] = None
        self.last_summary: Optional[LabelSyncSummary] = None
        self._task: Optional[asyncio.Task] = None
        self._running = asyncio.Lock()

    async def trigger(self) -> LabelSyncSummary:
        """수동 실행. 이미 돌고 있으면 끝날 때까지 기다렸다가 한 번 더"""
        async with self._running:
            summary = await asyncio.to_thread(run_label_sync_job, self.store, self.session_factory)
            self.last_summary = summary
            return summary

    async def _loop(self) -> None:
        while True:
            self.next_run = next_run_at(datetime.now(), self.hour, self.minute)
            delay = (self.next_run - datetime.now()).total_seconds()
            await asyncio.sleep(max(delay, 0))
            try:
                await self.trigger()
            except Exception as e:
                # 다음 날이 재시도
                log.error(f"Daily label sync crashed: {e}")

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        self.next_run = next_run_at(datetime.now(), self.hour, self.minute)
        log.info(f"Label sync scheduled daily at {self.hour:02d}:{self.minute:02d}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
