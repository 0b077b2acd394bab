"""
HTTP surface tests.
Run with: pytest tests/test_api.py -v
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from propedge.config import Settings
from propedge.main import app
from propedge.models import get_db, init_db
from propedge.prop_model import PropEdgeModel
from propedge.services.analytics import AnalyticsSink
from propedge.services.cache import CacheService
from propedge.services.features import FeatureCollector
from propedge.services.game_lines import GameLinesEvaluator
from propedge.services.usage import UsageTracker

from conftest import EVENT_DAY, FakeStatsClient

ADMIN = {"X-API-Key": "admin-key"}
BASIC = {"X-API-Key": "basic-key"}

PROP = {
    "sport": "MLB",
    "subjectName": "Test Pitcher",
    "statisticLine": "Strikeouts 6.5",
    "eventStartTime": "2025-06-01T17:10:00Z",
}


@pytest.fixture
def services(monkeypatch, pitcher_client):
    for i in range(1, 6):
        monkeypatch.delenv(f"API_KEY_USER{i}", raising=False)
    monkeypatch.setenv("API_KEY_USER1", "admin-key")
    monkeypatch.setenv("API_KEY_USER2", "basic-key")

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    session_factory = sessionmaker(bind=engine)

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    ns = SimpleNamespace(
        settings=Settings(),
        cache=CacheService(),
        client=pitcher_client,
        prop_model=PropEdgeModel(FeatureCollector(pitcher_client), today=lambda: EVENT_DAY),
        game_evaluator=GameLinesEvaluator(pitcher_client, today=lambda: EVENT_DAY),
        usage=UsageTracker(limits={"basic": 3, "pro": 400, "admin": 10000}),
        analytics=AnalyticsSink(None),
        session_factory=session_factory,
    )
    app.state.services = ns
    app.dependency_overrides[get_db] = override_db
    yield ns
    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    # No context manager: the lifespan would rebuild services from the environment.
    return TestClient(app)


class TestPublic:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "operational"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["statProvider"] == "configured"


class TestAuth:

    def test_key_required(self, client):
        assert client.post("/api/props/evaluate", json=PROP).status_code == 401

    def test_bad_key(self, client):
        assert client.post("/api/props/evaluate", json=PROP, headers={"X-API-Key": "nope"}).status_code == 401

    def test_cache_clear_is_admin_only(self, client):
        assert client.delete("/api/cache", headers=BASIC).status_code == 403
        resp = client.delete("/api/cache", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Cache cleared"


class TestEvaluate:

    def test_prop(self, client):
        resp = client.post("/api/props/evaluate", json=PROP, headers=BASIC)
        assert resp.status_code == 200
        body = resp.json()
        assert body["suggestion"] == "OVER"
        assert body["decision"] != "PASS"
        assert body["meta"]["dataSource"] == "sportsdata"

    def test_missing_fields_are_a_pass_not_a_422(self, client):
        resp = client.post("/api/props/evaluate", json={"sport": "MLB"}, headers=BASIC)
        assert resp.status_code == 200
        assert resp.json()["decision"] == "PASS"
        assert "MISSING_SUBJECT" in resp.json()["flags"]

    def test_game(self, client):
        resp = client.post(
            "/api/games/evaluate",
            json={"sport": "MLB", "team": "Yankees", "opponent": "Red Sox", "eventStartTime": "2025-06-01"},
            headers=BASIC,
        )
        assert resp.status_code == 200
        assert resp.json()["decision"] == "PASS"
        assert "NO_ODDS" in resp.json()["flags"]

    def test_batch(self, client):
        resp = client.post(
            "/api/batch/evaluate",
            json={"entries": [{"type": "prop", "payload": PROP}, {"type": "bogus"}]},
            headers=BASIC,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert body["failed"] == 1

    def test_usage_limit(self, client, services):
        for _ in range(3):
            assert client.post("/api/props/evaluate", json=PROP, headers=BASIC).status_code == 200
        resp = client.post("/api/props/evaluate", json=PROP, headers=BASIC)
        assert resp.status_code == 429
        assert resp.json()["detail"]["limit"] == 3

    def test_batch_charged_per_entry(self, client):
        resp = client.post(
            "/api/batch/evaluate",
            json={"entries": [{"type": "prop", "payload": PROP}] * 4},
            headers=BASIC,
        )
        assert resp.status_code == 429


class TestHistory:

    def test_evaluations_are_recorded_per_subject(self, client):
        client.post("/api/props/evaluate", json=PROP, headers=BASIC)
        client.post("/api/props/evaluate", json=PROP, headers=ADMIN)

        rows = client.get("/api/history", headers=BASIC).json()
        assert len(rows) == 1
        assert rows[0]["subject"] == "user2"
        assert rows[0]["sport"] == "MLB"
        assert rows[0]["statistic_line"] == "Strikeouts 6.5"

    def test_history_failure_does_not_change_result(self, client, services):
        def broken():
            raise RuntimeError("db down")

        services.session_factory = broken
        resp = client.post("/api/props/evaluate", json=PROP, headers=BASIC)
        assert resp.status_code == 200
        assert resp.json()["suggestion"] == "OVER"


def test_cache_stats(client):
    body = client.get("/api/cache/stats", headers=BASIC).json()
    assert "entries" in body
    assert "hit_rate" in body


def test_usage_reports_remaining_quota(client):
    client.post("/api/props/evaluate", json=PROP, headers=BASIC)
    body = client.get("/api/usage", headers=BASIC).json()
    assert body["subject"] == "user2"
    assert body["tier"] == "basic"
    assert body["limit"] == 3
    assert body["remaining"] == 2
    assert body["reset_at"] is not None

    # Reading usage is free.
    assert client.get("/api/usage", headers=BASIC).json()["remaining"] == 2


class TestSideEffects:

    def test_analytics_gets_price_of_suggested_side(self, client, services):
        services.analytics = MagicMock(enabled=True)
        prop = dict(PROP, statisticLine="Strikeouts 9.5", overPrice=150, underPrice=-180)

        body = client.post("/api/props/evaluate", json=prop, headers=BASIC).json()

        assert body["suggestion"] == "UNDER"
        subject_id, result, odds_at_pick = services.analytics.send.call_args.args
        assert subject_id == "user2"
        assert result.suggestion == "UNDER"
        assert odds_at_pick == -180

    def test_batch_entries_get_history_and_analytics(self, client, services):
        services.analytics = MagicMock(enabled=True)
        prop = dict(PROP, openingPrice=-110, currentPrice=-130)

        resp = client.post(
            "/api/batch/evaluate",
            json={"entries": [{"type": "prop", "payload": prop}, {"type": "prop", "payload": prop}]},
            headers=BASIC,
        )

        assert resp.status_code == 200
        assert services.analytics.send.call_count == 2
        rows = client.get("/api/history", headers=BASIC).json()
        assert len(rows) == 2
        assert all(row["clv"] == pytest.approx(4.14, abs=0.01) for row in rows)


class TestAdmin:

    def test_usage_reset(self, client):
        client.post("/api/props/evaluate", json=PROP, headers=BASIC)

        assert client.delete("/api/usage/user2", headers=BASIC).status_code == 403
        resp = client.delete("/api/usage/user2", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["cleared"] == 1
        assert client.get("/api/usage", headers=BASIC).json()["remaining"] == 3

    def test_evict_expired_only(self, client, services):
        services.cache.set("stale", [1], ttl=-1)
        services.cache.set("fresh", [2], ttl=600)

        resp = client.delete("/api/cache", params={"expired_only": "true"}, headers=ADMIN)

        assert resp.status_code == 200
        assert resp.json()["removed"] == 1
        assert services.cache.get("fresh") == [2]
