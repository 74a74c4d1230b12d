"""Shared fixtures: in-memory DB, fake Redis server, content directory, log capture."""

import fakeredis
import pytest
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nursery.images import models as m
from nursery.landing.schemas import LandingPageContent
from nursery.landing.store import LandingPageStore
from nursery.shared.db import Base


@pytest.fixture
def session_factory():
    """Isolated SQLite database per test, shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed_images(session_factory):
    """Insert stored images: seed_images({"h1": "images/a.jpg", "h2": None})."""

    def _seed(images):
        with session_factory() as s:
            for image_hash, src in images.items():
                s.add(m.Image(hash=image_hash))
                if src:
                    s.add(m.ImageFile(hash=image_hash, src=src))
            s.commit()

    return _seed


@pytest.fixture
def labels(session_factory):
    """Current (hash, label) pairs, optionally filtered by label."""

    def _labels(label=None):
        with session_factory() as s:
            q = s.query(m.ImageLabel)
            if label is not None:
                q = q.filter(m.ImageLabel.label == label)
            return sorted((row.hash, row.label) for row in q)

    return _labels


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def make_redis(redis_server):
    """Create clients inside the running event loop; all share one fake server."""

    def _make():
        return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)

    return _make


@pytest.fixture
def store(tmp_path):
    return LandingPageStore(tmp_path / "content")


@pytest.fixture
def log_records():
    records = []
    handler_id = logger.add(lambda msg: records.append(msg.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def make_document(banners=(), plants=()):
    """Build a content document from banner srcs and seasonal image hashes."""
    return LandingPageContent.model_validate(
        {
            "metadata": {"version": "2.0", "lastUpdated": "2025-01-01T00:00:00Z"},
            "content": {
                "hero": {
                    "banners": [
                        {"id": f"b{i}", "src": src, "displayOrder": i, "isActive": True}
                        for i, src in enumerate(banners)
                    ]
                },
                "seasonal": {
                    "plants": [
                        {"id": f"p{i}", "name": f"plant {i}", "imageHash": h, "displayOrder": i}
                        for i, h in enumerate(plants)
                    ]
                },
            },
            "contact": {"name": "Green Leaf Nursery"},
        }
    )


@pytest.fixture
def document():
    return make_document
