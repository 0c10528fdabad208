from __future__ import annotations

import io
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers, UploadFile

from creative_perf import models  # noqa: F401  -- ensure all models are registered
from creative_perf.db import Base
from creative_perf.schemas import AnalysisHistoryEntry, Client, PerformanceRecord
from creative_perf.storage import ConnectionState, KeyValueStore, Repository


# ---------------------------------------------------------------------------
# Test DB
# ---------------------------------------------------------------------------


def setup_test_db():
    """Create an in-memory SQLite engine and session factory."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)
    return engine, TestingSessionLocal


@pytest.fixture
def db():
    engine, SessionFactory = setup_test_db()
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def connection(db):
    state = ConnectionState()
    state.connect(db)
    return state


@pytest.fixture
def store(db, connection):
    return KeyValueStore(db, connection)


@pytest.fixture
def repo(store):
    return Repository(store)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_record(**overrides: Any) -> PerformanceRecord:
    fields: dict[str, Any] = {
        "client_id": "c1",
        "campaign_name": "Camp",
        "ad_set_name": "Set A",
        "ad_name": "Ad1",
        "day": "2025-01-10",
        "account_name": "Acme Ads",
        "image_video_presentation": "",
        "spend": 0.0,
        "purchases": 0,
        "purchase_value": 0.0,
        "impressions": 0,
        "clicks_all": 0,
    }
    fields.update(overrides)
    return PerformanceRecord(**fields)


def make_entry(**overrides: Any) -> AnalysisHistoryEntry:
    fields: dict[str, Any] = {
        "client_id": "c1",
        "filename": "creative.png",
        "hash": "h-default",
        "size": 100,
        "date": "2025-01-01T00:00:00+00:00",
        "description": "A creative",
        "data_url": "data:image/png;base64,AAAA",
        "file_type": "image",
    }
    fields.update(overrides)
    return AnalysisHistoryEntry(**fields)


def make_client(**overrides: Any) -> Client:
    fields: dict[str, Any] = {
        "id": "c1",
        "name": "Acme",
        "currency": "EUR",
        "meta_account_name": "Acme Ads",
    }
    fields.update(overrides)
    return Client(**fields)


def make_upload(name: str, data: bytes, content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )
