"""
JSON 문서(랜딩 페이지 content / variant)가 참조하는 이미지에 라벨을 맞춘다.

라벨이 없는 이미지는 정리 스크립트가 "unlabeled" 로 보고 지우므로, 문서가 쓰는
이미지는 문서가 저장되기 전에 라벨이 붙어 있어야 한다.

- 각 컨텍스트(공식 문서 / variant)는 자기 namespace 의 라벨만 추가/삭제한다.
- 같은 문서로 두 번 돌리면 두 번째는 {added: 0, removed: 0} (idempotent).
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..landing.schemas import LandingPageContent
from ..shared.logging import get_logger
from .repository import ImageRepository

log = get_logger("label-sync")

HERO_BANNER_LABEL = "hero-banner"
SEASONAL_LABEL = "seasonal"
OFFICIAL = None  # 공식 문서 namespace


@dataclass
class LabelSyncResult:
    added: int = 0
    removed: int = 0

    def __add__(self, other: "LabelSyncResult") -> "LabelSyncResult":
        return LabelSyncResult(self.added + other.added, self.removed + other.removed)

    def as_dict(self) -> dict[str, int]:
        return {"added": self.added, "removed": self.removed}


def label_for(base: str, variant_id: Optional[str] = OFFICIAL) -> str:
    """공식: "hero-banner" / variant: "variant-<id>-hero-banner" """
    return base if variant_id is None else f"variant-{variant_id}-{base}"


def namespace_labels(variant_id: Optional[str] = OFFICIAL) -> list[str]:
    return [label_for(HERO_BANNER_LABEL, variant_id), label_for(SEASONAL_LABEL, variant_id)]


def normalize_image_path(src: str) -> str:
    """
    JSON: "/hero-butterfly-XXL.jpg" 또는 "images/hero-butterfly-XXL.jpg"
    DB  : "images/hero-butterfly-XXL.jpg"
    """
    if not src:
        return ""
    normalized = src[1:] if src.startswith("/") else src
    if not normalized.startswith("images/"):
        normalized = f"images/{normalized}"
    return normalized


# 참조(src 또는 hash) → 저장된 이미지 hash, 없으면 None
Resolver = Callable[[ImageRepository, str], Optional[str]]


def _hash_by_src(repo: ImageRepository, src: str) -> Optional[str]:
    image_file = repo.resolve_image_by_path(normalize_image_path(src))
    return image_file.hash if image_file else None


def _hash_if_stored(repo: ImageRepository, image_hash: str) -> Optional[str]:
    return image_hash if repo.get_image(image_hash) is not None else None


def _reconcile(
    repo: ImageRepository,
    label: str,
    refs: Iterable[tuple[int, str]],
    resolve: Resolver,
    add: bool = True,
    prune: bool = True,
) -> LabelSyncResult:
    """
    refs 가 가리키는 이미지에만 label 이 남도록 추가/삭제.
    add / prune 로 단계를 나눠 돌릴 수 있다 (write gate 는 추가 → 저장 → 삭제).
    """
    result = LabelSyncResult()
    desired: dict[str, int] = {}

    for index, ref in refs:
        if not ref:
            continue
        image_hash = resolve(repo, ref)
        if image_hash is None:
            log.warning(f'Image for label "{label}" not found in database: {ref}')
            continue
        # 같은 이미지가 여러 번 나오면 첫 위치 기준
        desired.setdefault(image_hash, index)

    if add:
        for image_hash, index in desired.items():
            if repo.add_label(image_hash, label, index):
                result.added += 1

    if prune:
        for image_hash in repo.list_hashes_with_label(label):
            if image_hash not in desired and repo.remove_label(image_hash, label):
                result.removed += 1

    return result


def sync_hero_banner_labels(
    repo: ImageRepository,
    document: LandingPageContent,
    variant_id: Optional[str] = OFFICIAL,
    add: bool = True,
    prune: bool = True,
) -> LabelSyncResult:
    banners = document.content.hero.banners
    label = label_for(HERO_BANNER_LABEL, variant_id)
    result = _reconcile(
        repo, label, ((i, b.src) for i, b in enumerate(banners)), _hash_by_src, add, prune
    )
    log.info(f'Label "{label}" sync complete: +{result.added}, -{result.removed}')
    return result


def sync_seasonal_labels(
    repo: ImageRepository,
    document: LandingPageContent,
    variant_id: Optional[str] = OFFICIAL,
    add: bool = True,
    prune: bool = True,
) -> LabelSyncResult:
    plants = document.content.seasonal.plants
    label = label_for(SEASONAL_LABEL, variant_id)
    result = _reconcile(
        repo,
        label,
        ((i, p.image_hash or "") for i, p in enumerate(plants)),
        _hash_if_stored,
        add,
        prune,
    )
    log.info(f'Label "{label}" sync complete: +{result.added}, -{result.removed}')
    return result


def sync_labels_for_document(
    repo: ImageRepository,
    document: LandingPageContent,
    variant_id: Optional[str] = OFFICIAL,
    add: bool = True,
    prune: bool = True,
) -> LabelSyncResult:
    """hero banner + seasonal 라벨 전체 동기화. 개별 참조 실패는 경고 후 건너뜀"""
    return sync_hero_banner_labels(repo, document, variant_id, add, prune) + sync_seasonal_labels(
        repo, document, variant_id, add, prune
    )


def remove_namespace_labels(repo: ImageRepository, variant_id: str) -> int:
    removed = repo.remove_labels(namespace_labels(variant_id))
    log.info(f"Removed {removed} labels for variant: {variant_id}")
    return removed
