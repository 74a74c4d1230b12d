# backend/nursery/images/repository.py
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session
from . import models as m
from ..shared.logging import get_logger

log = get_logger("images")


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ImageRepository:
    """label sync 가 쓰는 이미지 데이터 접근. commit 은 호출 측 책임"""

    def __init__(self, db: Session):
        self.db = db

    def resolve_image_by_path(self, src: str) -> Optional[m.ImageFile]:
        return self.db.scalar(select(m.ImageFile).where(m.ImageFile.src == src))

    def get_image(self, image_hash: str) -> Optional[m.Image]:
        return self.db.get(m.Image, image_hash)

    def list_labels_for_hash(self, image_hash: str) -> list[str]:
        return list(
            self.db.scalars(
                select(m.ImageLabel.label)
                .where(m.ImageLabel.hash == image_hash)
                .order_by(m.ImageLabel.label)
            )
        )

    def list_hashes_with_label(self, label: str) -> list[str]:
        return list(
            self.db.scalars(select(m.ImageLabel.hash).where(m.ImageLabel.label == label))
        )

    def add_label(self, image_hash: str, label: str, index: int = 0) -> bool:
        """
        반환: 새로 만들었으면 True
        - 이미 있으면 index 만 맞춘다
        - 라벨이 붙었으므로 unlabeled_since 해제
        """
        existing = self.db.scalar(
            select(m.ImageLabel).where(
                m.ImageLabel.hash == image_hash, m.ImageLabel.label == label
            )
        )
        created = existing is None
        if existing is None:
            self.db.add(m.ImageLabel(hash=image_hash, label=label, index=index))
            log.info(f'Added label "{label}" to image {image_hash}')
        elif existing.index != index:
            existing.index = index
            log.info(f'Updated label "{label}" index for image {image_hash} to {index}')

        image = self.get_image(image_hash)
        if image is not None and image.unlabeled_since is not None:
            image.unlabeled_since = None
        self.db.flush()
        return created

    def remove_label(self, image_hash: str, label: str) -> bool:
        """마지막 라벨이었으면 unlabeled_since 를 찍어 GC 보존기간 시작"""
        res = self.db.execute(
            delete(m.ImageLabel).where(
                m.ImageLabel.hash == image_hash, m.ImageLabel.label == label
            )
        )
        if not res.rowcount:
            return False
        log.info(f'Removed label "{label}" from image {image_hash}')

        remaining = self.db.scalar(
            select(func.count()).select_from(m.ImageLabel).where(m.ImageLabel.hash == image_hash)
        )
        if remaining == 0:
            image = self.get_image(image_hash)
            if image is not None:
                image.unlabeled_since = _now()
                log.info(f"Image {image_hash} now unlabeled - set unlabeled_since")
        self.db.flush()
        return True

    def remove_labels(self, labels: list[str]) -> int:
        """라벨 이름 단위 일괄 제거 (variant 삭제 시)"""
        removed = 0
        for label in labels:
            for image_hash in self.list_hashes_with_label(label):
                if self.remove_label(image_hash, label):
                    removed += 1
        return removed
