"""Daily safety-net job: per-context reconciliation and summary."""

import asyncio
import json
from datetime import datetime
from unittest import mock

import pytest

from nursery.images import models as m
from nursery.images.label_sync import HERO_BANNER_LABEL, label_for
from nursery.jobs.label_sync import (
    DailyLabelSync,
    next_run_at,
    run_label_sync_job,
    sync_context,
)
from nursery.landing.schemas import LandingPageVariant


def _publish(store, document, variants=()):
    store.write_atomic(document(banners=["/a.jpg"]))
    store.write_variants([LandingPageVariant(id=v) for v in variants])
    for v in variants:
        store.write_variant_content(v, document(banners=["/b.jpg"]))


def test_syncs_official_and_variants(store, session_factory, seed_images, labels, document):
    seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
    _publish(store, document, variants=["spring"])

    summary = run_label_sync_job(store, session_factory)

    assert summary.success is True
    assert summary.errors == []
    assert summary.added_counts == {"official": 1, "variant:spring": 1}
    assert summary.removed_counts == {"official": 0, "variant:spring": 0}
    assert summary.duration_ms >= 0
    assert labels() == [
        ("h1", HERO_BANNER_LABEL),
        ("h2", label_for(HERO_BANNER_LABEL, "spring")),
    ]


def test_second_run_reports_no_changes(store, session_factory, seed_images, document):
    seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
    _publish(store, document, variants=["spring"])
    run_label_sync_job(store, session_factory)

    summary = run_label_sync_job(store, session_factory)
    assert summary.success is True
    assert summary.total_changes == 0


def test_context_failure_is_isolated(store, session_factory, seed_images, labels, document):
    seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
    _publish(store, document, variants=["spring", "fall"])
    # fall 의 content 파일이 사라진 상황
    store.delete_variant_content("fall")

    summary = run_label_sync_job(store, session_factory)

    assert summary.success is False
    assert len(summary.errors) == 1
    assert "variant:fall" in summary.errors[0]
    assert summary.added_counts == {"official": 1, "variant:spring": 1}
    assert ("h2", label_for(HERO_BANNER_LABEL, "spring")) in labels()


def test_db_error_in_one_context(store, session_factory, seed_images, document):
    seed_images({"h1": "images/a.jpg"})
    _publish(store, document, variants=["spring"])
    real = sync_context

    def flaky(ctx, factory):
        if ctx.variant_id is None:
            raise RuntimeError("deadlock detected")
        return real(ctx, factory)

    with mock.patch("nursery.jobs.label_sync.sync_context", side_effect=flaky):
        summary = run_label_sync_job(store, session_factory)

    assert summary.success is False
    assert summary.errors == ["official sync failed: deadlock detected"]
    assert "variant:spring" in summary.added_counts


class TestUnreadableDocument:
    def _labeled(self, store, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg"})
        _publish(store, document)
        assert run_label_sync_job(store, session_factory).added_counts == {"official": 1}

    def _assert_labels_kept(self, session_factory, labels):
        assert labels() == [("h1", HERO_BANNER_LABEL)]
        with session_factory() as s:
            assert s.get(m.Image, "h1").unlabeled_since is None

    def test_corrupt_json_is_an_error_not_an_empty_document(
        self, store, session_factory, seed_images, labels, document
    ):
        self._labeled(store, session_factory, seed_images, document)
        store.content_path.write_text("{not json", encoding="utf-8")

        summary = run_label_sync_job(store, session_factory)

        assert summary.success is False
        assert summary.errors[0].startswith("official sync failed: content document unreadable")
        assert "official" not in summary.added_counts
        self._assert_labels_kept(session_factory, labels)

    def test_invalid_field_is_an_error(self, store, session_factory, seed_images, labels, document):
        self._labeled(store, session_factory, seed_images, document)
        raw = json.loads(store.content_path.read_text())
        raw["content"]["hero"]["banners"][0]["displayOrder"] = "first"
        store.content_path.write_text(json.dumps(raw), encoding="utf-8")

        assert run_label_sync_job(store, session_factory).success is False
        self._assert_labels_kept(session_factory, labels)

    def test_missing_official_document_is_an_error(self, store, session_factory, seed_images, labels, document):
        self._labeled(store, session_factory, seed_images, document)
        store.content_path.unlink()

        with pytest.raises(FileNotFoundError, match="content document missing for official"):
            sync_context(store.context(), session_factory)
        self._assert_labels_kept(session_factory, labels)

    def test_null_dimensions_are_accepted(self, store, session_factory, seed_images, labels, document):
        self._labeled(store, session_factory, seed_images, document)
        raw = json.loads(store.content_path.read_text())
        raw["content"]["hero"]["banners"][0]["width"] = None
        raw["content"]["hero"]["banners"][0]["height"] = None
        store.content_path.write_text(json.dumps(raw), encoding="utf-8")

        summary = run_label_sync_job(store, session_factory)

        assert summary.success is True
        assert summary.total_changes == 0
        self._assert_labels_kept(session_factory, labels)


class TestSchedule:
    def test_later_today(self):
        assert next_run_at(datetime(2025, 5, 1, 1, 30), 3) == datetime(2025, 5, 1, 3, 0)

    def test_tomorrow_when_past(self):
        assert next_run_at(datetime(2025, 5, 1, 3, 0), 3) == datetime(2025, 5, 2, 3, 0)
        assert next_run_at(datetime(2025, 5, 31, 23, 0), 3, 15) == datetime(2025, 6, 1, 3, 15)

    def test_trigger_records_summary(self, store, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg"})
        _publish(store, document)
        scheduler = DailyLabelSync(store, session_factory, hour=3)

        async def run():
            summary = await scheduler.trigger()
            return summary

        summary = asyncio.run(run())
        assert summary.success
        assert scheduler.last_summary is summary

    def test_start_and_stop(self, store, session_factory):
        scheduler = DailyLabelSync(store, session_factory, hour=3)

        async def run():
            scheduler.start()
            assert scheduler.next_run is not None
            assert scheduler.next_run > datetime.now()
            await scheduler.stop()

        asyncio.run(run())
        assert scheduler._task is None
