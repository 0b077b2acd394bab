"""Tests for the analytics sink and the history writer."""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from propedge.models import EvaluationHistory, init_db
from propedge.prop_model import EvaluationResult
from propedge.services.analytics import AnalyticsSink, prop_odds_at_pick, record_history
from propedge.services.clv import compute_clv


def _result():
    return EvaluationResult(
        subject_name="Test Pitcher",
        statistic_line="Strikeouts 6.5",
        decision="LEAN",
        suggestion="OVER",
        final_confidence_percent=66.2,
        suggested_stake_units=1.0,
        clv=compute_clv(-110, -130),
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(bind=engine)


class TestAnalyticsSink:

    def test_disabled_without_url(self):
        with patch("propedge.services.analytics.requests.post") as mock_post:
            assert AnalyticsSink(None).send("user1", _result()) is False
            mock_post.assert_not_called()

    def test_payload(self):
        payload = AnalyticsSink("https://sink.example/events").payload("user1", _result(), -110)
        assert payload["subjectId"] == "user1"
        assert payload["pick"] == "Test Pitcher Strikeouts 6.5 OVER"
        assert payload["oddsAtPick"] == -110
        assert payload["clv"] == pytest.approx(4.14, abs=0.01)
        assert "timestamp" in payload

    @patch("propedge.services.analytics.requests.post")
    def test_posts_with_timeout(self, mock_post):
        mock_post.return_value = MagicMock()
        assert AnalyticsSink("https://sink.example/events", timeout=2.0).send("user1", _result())
        assert mock_post.call_args.kwargs["timeout"] == 2.0

    @patch("propedge.services.analytics.requests.post")
    def test_failure_is_swallowed(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("down")
        assert AnalyticsSink("https://sink.example/events").send("user1", _result()) is False


class TestHistory:

    def test_row_written(self, session_factory):
        row_id = record_history(session_factory, "user2", "mlb", _result())
        assert row_id is not None

        db = session_factory()
        row = db.get(EvaluationHistory, row_id)
        assert row.subject == "user2"
        assert row.sport == "MLB"
        assert row.decision == "LEAN"
        assert row.confidence == pytest.approx(66.2)
        assert row.clv == pytest.approx(4.14, abs=0.01)
        db.close()

    def test_failure_returns_none(self):
        broken = MagicMock(side_effect=RuntimeError("db down"))
        assert record_history(broken, "user2", "MLB", _result()) is None


@pytest.mark.parametrize("suggestion, expected", [
    ("OVER", -120),
    ("UNDER", 100),
    ("PASS", -110),
])
def test_odds_at_pick_follows_suggested_side(suggestion, expected):
    result = replace(_result(), suggestion=suggestion)
    assert prop_odds_at_pick(result, over_price=-120, under_price=100, opening_price=-110) == expected


def test_odds_at_pick_falls_back_to_opening_price():
    result = replace(_result(), suggestion="UNDER")
    assert prop_odds_at_pick(result, over_price=-120, under_price=None, opening_price=-110) == -110
    assert prop_odds_at_pick(result, over_price=None, under_price=None) is None
