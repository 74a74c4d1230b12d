"""Label reconciliation between content documents and the image_labels table."""

from nursery.images import models as m
from nursery.images.label_sync import (
    HERO_BANNER_LABEL,
    SEASONAL_LABEL,
    label_for,
    normalize_image_path,
    remove_namespace_labels,
    sync_hero_banner_labels,
    sync_labels_for_document,
)
from nursery.images.repository import ImageRepository


def _sync(session_factory, doc, variant_id=None):
    with session_factory() as s:
        result = sync_labels_for_document(ImageRepository(s), doc, variant_id)
        s.commit()
    return result


class TestNormalizeImagePath:
    def test_leading_slash(self):
        assert normalize_image_path("/hero-butterfly-XXL.jpg") == "images/hero-butterfly-XXL.jpg"

    def test_already_prefixed(self):
        assert normalize_image_path("images/hero.jpg") == "images/hero.jpg"
        assert normalize_image_path("/images/hero.jpg") == "images/hero.jpg"

    def test_empty(self):
        assert normalize_image_path("") == ""


class TestSyncLabelsForDocument:
    def test_labels_referenced_images(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg", "h3": None})
        doc = document(banners=["/a.jpg", "images/b.jpg"], plants=["h3"])

        result = _sync(session_factory, doc)

        assert result.as_dict() == {"added": 3, "removed": 0}
        assert labels(HERO_BANNER_LABEL) == [("h1", HERO_BANNER_LABEL), ("h2", HERO_BANNER_LABEL)]
        assert labels(SEASONAL_LABEL) == [("h3", SEASONAL_LABEL)]

    def test_second_call_is_noop(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg", "h3": None})
        doc = document(banners=["/a.jpg", "/b.jpg"], plants=["h3"])

        _sync(session_factory, doc)
        before = labels()
        second = _sync(session_factory, doc)

        assert second.as_dict() == {"added": 0, "removed": 0}
        assert labels() == before

    def test_removes_stale_labels(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
        _sync(session_factory, document(banners=["/a.jpg", "/b.jpg"]))

        result = _sync(session_factory, document(banners=["/b.jpg"]))

        assert result.as_dict() == {"added": 0, "removed": 1}
        assert labels(HERO_BANNER_LABEL) == [("h2", HERO_BANNER_LABEL)]

    def test_empty_document_clears_namespace(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": None})
        _sync(session_factory, document(banners=["/a.jpg"], plants=["h2"]))

        result = _sync(session_factory, document())

        assert result.as_dict() == {"added": 0, "removed": 2}
        assert labels() == []

    def test_empty_document_on_empty_index(self, session_factory, document):
        assert _sync(session_factory, document()).as_dict() == {"added": 0, "removed": 0}

    def test_missing_image_is_skipped(self, session_factory, seed_images, labels, document, log_records):
        seed_images({"h1": "images/a.jpg"})
        doc = document(banners=["/a.jpg", "/missing.jpg"])

        result = _sync(session_factory, doc)

        assert result.as_dict() == {"added": 1, "removed": 0}
        assert labels() == [("h1", HERO_BANNER_LABEL)]
        assert any(
            r["level"].name == "WARNING" and "/missing.jpg" in r["message"] for r in log_records
        )

    def test_unknown_seasonal_hash_is_skipped(self, session_factory, labels, document):
        result = _sync(session_factory, document(plants=["nope"]))
        assert result.as_dict() == {"added": 0, "removed": 0}
        assert labels() == []

    def test_leaves_other_labels_alone(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg"})
        with session_factory() as s:
            s.add(m.ImageLabel(hash="h1", label="product"))
            s.commit()

        _sync(session_factory, document(banners=["/a.jpg"]))
        _sync(session_factory, document())

        assert labels() == [("h1", "product")]

    def test_index_follows_banner_order(self, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
        _sync(session_factory, document(banners=["/a.jpg", "/b.jpg"]))
        result = _sync(session_factory, document(banners=["/b.jpg", "/a.jpg"]))

        assert result.as_dict() == {"added": 0, "removed": 0}
        with session_factory() as s:
            order = {row.hash: row.index for row in s.query(m.ImageLabel)}
        assert order == {"h2": 0, "h1": 1}


class TestUnlabeledSince:
    def test_last_label_removed_stamps_image(self, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg"})
        _sync(session_factory, document(banners=["/a.jpg"]))
        _sync(session_factory, document())

        with session_factory() as s:
            assert s.get(m.Image, "h1").unlabeled_since is not None

    def test_relabel_clears_stamp(self, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg"})
        _sync(session_factory, document(banners=["/a.jpg"]))
        _sync(session_factory, document())
        _sync(session_factory, document(banners=["/a.jpg"]))

        with session_factory() as s:
            assert s.get(m.Image, "h1").unlabeled_since is None


class TestVariantNamespace:
    def test_variant_does_not_touch_official_labels(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": "images/b.jpg"})
        _sync(session_factory, document(banners=["/a.jpg"]))

        result = _sync(session_factory, document(banners=["/b.jpg"]), variant_id="spring")

        assert result.as_dict() == {"added": 1, "removed": 0}
        assert labels() == [
            ("h1", HERO_BANNER_LABEL),
            ("h2", label_for(HERO_BANNER_LABEL, "spring")),
        ]

    def test_remove_namespace_labels(self, session_factory, seed_images, labels, document):
        seed_images({"h1": "images/a.jpg", "h2": None})
        _sync(session_factory, document(banners=["/a.jpg"]))
        _sync(session_factory, document(banners=["/a.jpg"], plants=["h2"]), variant_id="spring")

        with session_factory() as s:
            removed = remove_namespace_labels(ImageRepository(s), "spring")
            s.commit()

        assert removed == 2
        assert labels() == [("h1", HERO_BANNER_LABEL)]

    def test_per_image_label_view(self, session_factory, seed_images, document):
        seed_images({"h1": "images/a.jpg"})
        _sync(session_factory, document(banners=["/a.jpg"]))
        _sync(session_factory, document(banners=["/a.jpg"]), variant_id="spring")

        with session_factory() as s:
            assert ImageRepository(s).list_labels_for_hash("h1") == [
                HERO_BANNER_LABEL,
                label_for(HERO_BANNER_LABEL, "spring"),
            ]
            assert ImageRepository(s).list_labels_for_hash("nope") == []


def test_hero_only_sync_ignores_seasonal(session_factory, seed_images, labels, document):
    seed_images({"h1": "images/a.jpg", "h2": None})
    with session_factory() as s:
        result = sync_hero_banner_labels(
            ImageRepository(s), document(banners=["/a.jpg"], plants=["h2"])
        )
        s.commit()
    assert result.as_dict() == {"added": 1, "removed": 0}
    assert labels() == [("h1", HERO_BANNER_LABEL)]
