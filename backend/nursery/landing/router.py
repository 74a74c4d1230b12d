# backend/nursery/landing/router.py
import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from ..deps import get_cache, get_content_service, get_label_sync, get_store, require_admin
from ..jobs.label_sync import DailyLabelSync
from ..locks.distributed import LockTimeoutError
from ..shared.config import settings
from ..shared.logging import get_logger
from .cache import ContentCache
from .schemas import ContentUpdateOut, LandingPageContent
from .service import GuardedContentService, VariantNotFoundError
from .store import LandingPageStore

router = APIRouter(prefix=f"{settings.API_PREFIX}/landing-page", tags=["landing-page"])
log = get_logger("landing-router")


class LabelSyncOut(BaseModel):
    success: bool
    added_counts: dict[str, int]
    removed_counts: dict[str, int]
    errors: list[str]
    duration_ms: int


class LabelSyncStatusOut(BaseModel):
    next_run: Optional[datetime] = None
    last_run: Optional[LabelSyncOut] = None


def _summary_out(summary) -> LabelSyncOut:
    return LabelSyncOut(
        success=summary.success,
        added_counts=summary.added_counts,
        removed_counts=summary.removed_counts,
        errors=summary.errors,
        duration_ms=summary.duration_ms,
    )


def _failed(e: Exception, what: str) -> HTTPException:
    # dev 에서만 원인 메시지 노출
    detail = f"Failed to {what}"
    if settings.is_dev:
        detail = f"{detail}: {e}"
    return HTTPException(500, detail)


async def _update(
    svc: GuardedContentService, payload: LandingPageContent, variant_id: Optional[str]
) -> ContentUpdateOut:
    try:
        stored = await svc.update_content(payload, variant_id)
    except LockTimeoutError:
        raise HTTPException(409, "Content is being updated by another request, try again shortly")
    except VariantNotFoundError:
        raise HTTPException(404, "Variant not found")
    except Exception as e:
        log.error(f"Error updating landing page content: {e}")
        raise _failed(e, "update landing page content")

    return ContentUpdateOut(
        message=(
            f"Variant {variant_id} updated successfully"
            if variant_id
            else "Landing page content updated successfully"
        ),
        variant_id=variant_id,
        last_updated=stored.metadata.last_updated,
    )


@router.get("")
async def get_content(
    active_only: bool = Query(True),
    store: LandingPageStore = Depends(get_store),
    cache: ContentCache = Depends(get_cache),
):
    # 캐시는 전체 문서. active 필터는 응답 시점에
    doc = await cache.get()
    if doc is None:
        doc = await asyncio.to_thread(store.read_content)
        await cache.set(doc)
    if active_only:
        doc = doc.active_only()
    return doc.to_json()


@router.put("", response_model=ContentUpdateOut)
async def update_content(
    payload: LandingPageContent = Body(...),
    svc: GuardedContentService = Depends(get_content_service),
    _=Depends(require_admin),
):
    return await _update(svc, payload, None)


@router.get("/variants/{variant_id}/content")
def get_variant_content(
    variant_id: str,
    active_only: bool = Query(False),
    store: LandingPageStore = Depends(get_store),
):
    doc = store.read_variant_content(variant_id)
    if doc is None:
        raise HTTPException(404, "Variant content not found")
    if active_only:
        doc = doc.active_only()
    return doc.to_json()


@router.put("/variants/{variant_id}/content", response_model=ContentUpdateOut)
async def update_variant_content(
    variant_id: str,
    payload: LandingPageContent = Body(...),
    svc: GuardedContentService = Depends(get_content_service),
    _=Depends(require_admin),
):
    return await _update(svc, payload, variant_id)


@router.delete("/variants/{variant_id}")
async def delete_variant(
    variant_id: str,
    svc: GuardedContentService = Depends(get_content_service),
    _=Depends(require_admin),
):
    try:
        removed = await svc.delete_variant(variant_id)
    except VariantNotFoundError:
        raise HTTPException(404, "Variant not found")
    except LockTimeoutError:
        raise HTTPException(409, "Variant is being updated by another request, try again shortly")
    except Exception as e:
        log.error(f"Error deleting variant {variant_id}: {e}")
        raise _failed(e, "delete variant")
    return {"deleted": True, "variant_id": variant_id, "labels_removed": removed}


@router.post("/labels/sync", response_model=LabelSyncOut)
async def sync_labels_now(
    label_sync: DailyLabelSync = Depends(get_label_sync),
    _=Depends(require_admin),
):
    log.info("Triggering manual label sync...")
    return _summary_out(await label_sync.trigger())


@router.get("/labels/sync", response_model=LabelSyncStatusOut)
def label_sync_status(label_sync: DailyLabelSync = Depends(get_label_sync)):
    last = label_sync.last_summary
    return LabelSyncStatusOut(
        next_run=label_sync.next_run,
        last_run=_summary_out(last) if last else None,
    )
