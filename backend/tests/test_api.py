from __future__ import annotations

import asyncio

import httpx
import pytest
from asgi_lifespan import LifespanManager

from backend.spothunt.core.config import settings
from backend.spothunt.main import app
from backend.tests.helpers import DETROIT, make_token, north_of

ADMIN_ID = "admin-1"

CHALLENGE = {
    "title": "Skate at Campus Martius",
    "category": "outdoors",
    "latitude": DETROIT[0],
    "longitude": DETROIT[1],
    "radius_meters": 100,
    "difficulty": "easy",
}


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def _request(method: str, url: str, **kwargs) -> httpx.Response:
    async with LifespanManager(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.request(method, url, **kwargs)
            await response.aread()
            return response


@pytest.fixture
def admin(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings, "admin_user_ids", ADMIN_ID)
    return ADMIN_ID


@pytest.mark.smoke
def test_healthcheck_returns_ok() -> None:
    response = asyncio.run(_request("GET", "/api/health"))
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.smoke
def test_rules_expose_thresholds() -> None:
    response = asyncio.run(_request("GET", "/api/config/rules"))
    assert response.status_code == 200
    body = response.json()
    assert body["dailySubmissionCap"] == settings.daily_submission_cap
    assert body["difficultyPoints"] == {"easy": 10, "medium": 25, "hard": 50}


@pytest.mark.smoke
def test_submission_requires_a_token() -> None:
    payload = {"challenge_id": "campus-martius", "latitude": 0, "longitude": 0, "accuracy": 5, "proof_ref": "p"}
    response = asyncio.run(_request("POST", "/api/submissions", json=payload))
    assert response.status_code == 401


@pytest.mark.smoke
def test_bad_token_is_refused() -> None:
    response = asyncio.run(
        _request("GET", "/api/users/me/standing", headers={"Authorization": "Bearer not-a-jwt"})
    )
    assert response.status_code == 401


@pytest.mark.smoke
def test_publishing_needs_admin(admin: str) -> None:
    response = asyncio.run(
        _request("PUT", "/api/admin/challenges/campus-martius", json=CHALLENGE, headers=_auth("player-1"))
    )
    assert response.status_code == 403


@pytest.mark.smoke
def test_challenge_id_must_be_a_slug(admin: str) -> None:
    response = asyncio.run(
        _request("PUT", "/api/admin/challenges/Bad.Id", json=CHALLENGE, headers=_auth(admin))
    )
    assert response.status_code == 422


@pytest.mark.smoke
def test_unknown_leaderboard_scope() -> None:
    response = asyncio.run(_request("GET", "/api/leaderboard", params={"scope": "hourly"}))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_submit_and_read_standings(admin: str) -> None:
    async with LifespanManager(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            published = await client.put("/api/admin/challenges/campus-martius", json=CHALLENGE, headers=_auth(admin))
            assert published.status_code == 200
            assert published.json()["points"] == 10

            listed = await client.get("/api/challenges")
            assert [item["id"] for item in listed.json()] == ["campus-martius"]

            miss_lat, miss_lon = north_of(*DETROIT, 150)
            miss = await client.post(
                "/api/submissions",
                json={
                    "challenge_id": "campus-martius",
                    "latitude": miss_lat,
                    "longitude": miss_lon,
                    "accuracy": 10,
                    "proof_ref": "photo-1",
                },
                headers=_auth("player-1"),
            )
            assert miss.status_code == 422
            assert miss.json()["status"] == "rejected"
            assert miss.json()["reason"] == "out_of_range"

            hit_lat, hit_lon = north_of(*DETROIT, 50)
            hit = await client.post(
                "/api/submissions",
                json={
                    "challenge_id": "campus-martius",
                    "latitude": hit_lat,
                    "longitude": hit_lon,
                    "accuracy": 30,
                    "proof_ref": "photo-2",
                },
                headers=_auth("player-1"),
            )
            assert hit.status_code == 201
            assert hit.json()["points_awarded"] == 10

            audit = await client.get(f"/api/submissions/{hit.json()['submission_id']}", headers=_auth("player-1"))
            assert audit.status_code == 200
            assert audit.json()["status"] == "accepted"
            hidden = await client.get(f"/api/submissions/{hit.json()['submission_id']}", headers=_auth("player-2"))
            assert hidden.status_code == 404

            board = await client.get("/api/leaderboard", params={"scope": "global", "limit": 5})
            assert board.json() == {"scope": "global", "items": [{"user_id": "player-1", "score": 10, "rank": 1}]}

            mine = await client.get("/api/users/me/standing", headers=_auth("player-1"))
            assert mine.json()["score"] == 10
            assert mine.json()["rank"] == 1
            assert mine.json()["remaining_submissions_today"] == settings.daily_submission_cap - 2

            public = await client.get("/api/users/player-1/standing")
            assert public.json()["remaining_submissions_today"] is None

            unknown = await client.post(
                "/api/submissions",
                json={"challenge_id": "nowhere", "latitude": 1, "longitude": 1, "accuracy": 5, "proof_ref": "p"},
                headers=_auth("player-1"),
            )
            assert unknown.status_code == 404
            assert unknown.json()["detail"]["code"] == "challenge_not_found"

            reconciled = await client.post("/api/admin/users/player-1/reconcile", headers=_auth(admin))
            assert reconciled.json()["score"] == 10
