from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Integer,
    ForeignKey,
    Index,
    UniqueConstraint,
    func,
    DateTime,
)
from ..shared.db import Base


class Image(Base):
    """content hash 로 식별되는 저장 이미지"""

    __tablename__ = "image"
    hash: Mapped[str] = mapped_column(String(128), primary_key=True)
    # 라벨이 하나도 없게 된 시각. GC 가 보존기간(30일) 계산에 사용
    unlabeled_since: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    files: Mapped[list["ImageFile"]] = relationship(
        back_populates="image", cascade="all, delete-orphan"
    )
    labels: Mapped[list["ImageLabel"]] = relationship(
        back_populates="image", cascade="all, delete-orphan"
    )


class ImageFile(Base):
    __tablename__ = "image_file"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    hash: Mapped[str] = mapped_column(
        ForeignKey("image.hash", ondelete="CASCADE"), nullable=False, index=True
    )
    src: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)  # "images/x.jpg"
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)

    image: Mapped["Image"] = relationship(back_populates="files")


class ImageLabel(Base):
    __tablename__ = "image_labels"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    hash: Mapped[str] = mapped_column(
        ForeignKey("image.hash", ondelete="CASCADE"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(128), nullable=False)  # "hero-banner"
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 라벨 내 순서

    image: Mapped["Image"] = relationship(back_populates="labels")

    __table_args__ = (
        UniqueConstraint("hash", "label", name="uq_image_label"),
        Index("ix_image_labels_label", "label"),
    )
