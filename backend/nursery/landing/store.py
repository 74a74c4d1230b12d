# backend/nursery/landing/store.py
from __future__ import annotations
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..shared.logging import get_logger
from .schemas import LandingPageContent, LandingPageVariant

log = get_logger("content-store")

CONTENT_FILE = "landing-page-content.json"
VARIANTS_FILE = "variants.json"


def variant_file_name(variant_id: str) -> str:
    return f"landing-page-variant-{variant_id}.json"


def write_json_atomic(path: Path, data: Any) -> None:
    """
    같은 디렉터리 임시파일 → fsync → os.replace
    읽는 쪽은 이전 버전 아니면 새 버전만 본다 (중간 상태 없음)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def _read_document(path: Path) -> LandingPageContent:
    with open(path, "r", encoding="utf-8") as f:
        return LandingPageContent.model_validate(json.load(f))


class LandingPageStore:
    """랜딩 페이지 JSON 파일들 (공식 content, variants.json, variant content)"""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    @property
    def content_path(self) -> Path:
        return self.data_dir / CONTENT_FILE

    @property
    def variants_path(self) -> Path:
        return self.data_dir / VARIANTS_FILE

    def variant_content_path(self, variant_id: str) -> Path:
        return self.data_dir / variant_file_name(variant_id)

    # ---- 공식 문서 ----
    def read_content(self) -> LandingPageContent:
        try:
            return _read_document(self.content_path)
        except FileNotFoundError:
            log.warning(f"Landing page content not found at {self.content_path}, using defaults")
        except (ValueError, ValidationError) as e:
            log.error(f"Error reading landing page content: {e}")
        return LandingPageContent()

    def write_atomic(self, document: LandingPageContent) -> None:
        write_json_atomic(self.content_path, document.to_json())
        log.info("Landing page content updated successfully")

    # ---- variants ----
    def read_variants(self) -> list[LandingPageVariant]:
        try:
            with open(self.variants_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return []
        except ValueError as e:
            log.error(f"Error reading variants: {e}")
            return []
        # variant id 를 키로 저장
        return [LandingPageVariant.model_validate(v) for v in raw.values()]

    def get_variant(self, variant_id: str) -> Optional[LandingPageVariant]:
        return next((v for v in self.read_variants() if v.id == variant_id), None)

    def write_variants(self, variants: list[LandingPageVariant]) -> None:
        data = {v.id: v.model_dump(mode="json", by_alias=True, exclude_none=True) for v in variants}
        write_json_atomic(self.variants_path, data)
        log.info("Variants updated successfully")

    def read_variant_content(self, variant_id: str) -> Optional[LandingPageContent]:
        try:
            return _read_document(self.variant_content_path(variant_id))
        except FileNotFoundError:
            return None
        except (ValueError, ValidationError) as e:
            log.error(f"Error reading variant content {variant_id}: {e}")
            return None

    def write_variant_content(self, variant_id: str, document: LandingPageContent) -> None:
        write_json_atomic(self.variant_content_path(variant_id), document.to_json())
        log.info(f"Variant content {variant_id} updated successfully")

    def delete_variant_content(self, variant_id: str) -> bool:
        try:
            self.variant_content_path(variant_id).unlink()
        except FileNotFoundError:
            log.warning(f"Variant content file for {variant_id} not found")
            return False
        log.info(f"Variant content file for {variant_id} deleted")
        return True

    # ---- 컨텍스트 ----
    def context(self, variant_id: Optional[str] = None) -> "DocumentContext":
        return DocumentContext(self, variant_id)

    def contexts(self) -> list["DocumentContext"]:
        """공식 문서 + variant 전부 (safety-net job 대상)"""
        return [self.context()] + [self.context(v.id) for v in self.read_variants()]


@dataclass
class DocumentContext:
    """문서 하나 + 그 문서가 소유한 라벨 namespace"""

    store: LandingPageStore
    variant_id: Optional[str] = None

    @property
    def name(self) -> str:
        return "official" if self.variant_id is None else f"variant:{self.variant_id}"

    @property
    def lock_resource(self) -> str:
        return "landing-page" if self.variant_id is None else f"landing-page-variant-{self.variant_id}"

    @property
    def path(self) -> Path:
        if self.variant_id is None:
            return self.store.content_path
        return self.store.variant_content_path(self.variant_id)

    def read(self, strict: bool = False) -> Optional[LandingPageContent]:
        """
        strict: 라벨 동기화용. 파일이 없거나 깨졌으면 예외 (FileNotFoundError / ValueError).
        빈 기본 문서로 동기화하면 사용 중인 라벨이 전부 빠진다.
        """
        if strict:
            return _read_document(self.path)
        if self.variant_id is None:
            return self.store.read_content()
        return self.store.read_variant_content(self.variant_id)

    def write_atomic(self, document: LandingPageContent) -> None:
        if self.variant_id is None:
            self.store.write_atomic(document)
        else:
            self.store.write_variant_content(self.variant_id, document)
