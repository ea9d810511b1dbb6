from __future__ import annotations

import sys
from pathlib import Path
from typing import Any
from uuid import uuid4

import fakeredis
import pytest
from mongomock_motor import AsyncMongoMockClient

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from backend.spothunt.core.config import Settings  # noqa: E402
from backend.spothunt.db import init  # noqa: E402
from backend.spothunt.db.mongo import MongoConnectionManager  # noqa: E402
from backend.spothunt.db.redis import RedisConnectionManager  # noqa: E402
from backend.spothunt.schemas import ChallengeIn  # noqa: E402
from backend.spothunt.services.submissions import SubmissionEngine  # noqa: E402
from backend.tests.helpers import DETROIT, FakeClock  # noqa: E402


@pytest.fixture
def fake_redis() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def mongo_client() -> AsyncMongoMockClient:
    return AsyncMongoMockClient(tz_aware=True)


@pytest.fixture
def mongo_db(mongo_client: AsyncMongoMockClient):
    return mongo_client[f"spothunt_test_{uuid4().hex[:8]}"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(daily_submission_cap=10, hourly_submission_cap=0, max_travel_speed_kmh=200)


@pytest.fixture
def engine(mongo_db, fake_redis, engine_settings: Settings, clock: FakeClock) -> SubmissionEngine:
    return SubmissionEngine(mongo_db, fake_redis, engine_settings, clock=clock)


@pytest.fixture
def publish(engine: SubmissionEngine):
    """Publish a challenge with sensible defaults; keyword arguments override them."""

    async def _publish(challenge_id: str = "campus-martius", **overrides: Any):
        data = {
            "title": "Campus Martius",
            "category": "outdoors",
            "latitude": DETROIT[0],
            "longitude": DETROIT[1],
            "radius_meters": 100,
            "difficulty": "easy",
            **overrides,
        }
        return await engine.publish_challenge(challenge_id, ChallengeIn(**data))

    return _publish


@pytest.fixture(autouse=True)
def stub_infrastructure(monkeypatch: pytest.MonkeyPatch, mongo_client, mongo_db, fake_redis) -> None:
    """Route the connection managers to the in-memory stores used by the tests."""

    async def _noop_ensure_indexes(_db: Any) -> None:
        return None

    async def _noop_close(cls: type) -> None:
        return None

    monkeypatch.setattr(MongoConnectionManager, "get_client", classmethod(lambda cls: mongo_client))
    monkeypatch.setattr(MongoConnectionManager, "get_database", classmethod(lambda cls: mongo_db))
    monkeypatch.setattr(RedisConnectionManager, "get_client", classmethod(lambda cls: fake_redis))
    monkeypatch.setattr(MongoConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))
    monkeypatch.setattr(RedisConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))
    monkeypatch.setattr(init, "ensure_indexes", _noop_ensure_indexes)
