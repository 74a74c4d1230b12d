from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# JSON 파일은 camelCase. 모르는 키도 그대로 보존해서 다시 쓴다 (외부 계약)
class Doc(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# ------------------------
# Hero
# ------------------------
class HeroBanner(Doc):
    id: str
    src: str = ""
    alt: str = ""
    description: str = ""
    width: Optional[int] = None  # 에디터가 null 로 저장하는 경우 있음
    height: Optional[int] = None
    display_order: int = 0
    is_active: bool = True


class HeroContent(Doc):
    banners: List[HeroBanner] = Field(default_factory=list)
    settings: dict[str, Any] = Field(
        default_factory=lambda: {
            "autoPlay": False,
            "autoPlayDelay": 5000,
            "showDots": True,
            "showArrows": True,
            "fadeTransition": False,
        }
    )
    text: dict[str, Any] = Field(default_factory=dict)


# ------------------------
# Seasonal
# ------------------------
class SeasonalPlant(Doc):
    id: str
    name: str = ""
    description: str = ""
    season: str = ""
    care_level: str = ""
    icon: str = ""
    image_hash: Optional[str] = None  # 없으면 아이콘만 사용
    display_order: int = 0
    is_active: bool = True


class PlantTip(Doc):
    id: str
    title: str = ""
    description: str = ""
    display_order: int = 0
    is_active: bool = True


class SeasonalContent(Doc):
    plants: List[SeasonalPlant] = Field(default_factory=list)
    tips: List[PlantTip] = Field(default_factory=list)


class PageContent(Doc):
    hero: HeroContent = Field(default_factory=HeroContent)
    services: dict[str, Any] = Field(
        default_factory=lambda: {"title": "", "subtitle": "", "items": []}
    )
    seasonal: SeasonalContent = Field(default_factory=SeasonalContent)
    newsletter: dict[str, Any] = Field(default_factory=dict)
    company: dict[str, Any] = Field(default_factory=dict)


class Metadata(Doc):
    version: str = "2.0"
    last_updated: Optional[str] = None


class LandingPageContent(Doc):
    metadata: Metadata = Field(default_factory=Metadata)
    content: PageContent = Field(default_factory=PageContent)
    contact: dict[str, Any] = Field(default_factory=dict)
    theme: dict[str, Any] = Field(default_factory=dict)
    layout: dict[str, Any] = Field(default_factory=lambda: {"sections": []})
    experiments: dict[str, Any] = Field(default_factory=lambda: {"tests": []})

    def stamped(self) -> "LandingPageContent":
        """lastUpdated 를 현재 UTC 로 찍은 복사본"""
        doc = self.model_copy(deep=True)
        doc.metadata.last_updated = utc_now_iso()
        return doc

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def active_only(self) -> "LandingPageContent":
        """활성 배너/식물/팁만, displayOrder 순"""
        doc = self.model_copy(deep=True)
        hero, seasonal = doc.content.hero, doc.content.seasonal
        hero.banners = sorted((b for b in hero.banners if b.is_active), key=lambda b: b.display_order)
        seasonal.plants = sorted(
            (p for p in seasonal.plants if p.is_active), key=lambda p: p.display_order
        )
        seasonal.tips = sorted((t for t in seasonal.tips if t.is_active), key=lambda t: t.display_order)
        return doc


# ------------------------
# Variants
# ------------------------
class LandingPageVariant(Doc):
    id: str
    name: str = ""
    description: str = ""
    status: str = "draft"  # draft | enabled | disabled
    traffic_allocation: float = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_modified: Optional[str] = None


# ------------------------
# API 응답
# ------------------------
class ContentUpdateOut(BaseModel):
    success: bool = True
    message: str
    variant_id: Optional[str] = None
    last_updated: Optional[str] = None

