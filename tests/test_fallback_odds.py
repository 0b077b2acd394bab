"""Tests for services.fallback_odds."""

from unittest.mock import MagicMock, patch

import requests

from propedge.core.result import ErrorKind
from propedge.services.cache import CacheService
from propedge.services.fallback_odds import SOURCE_TAG, FallbackOddsClient

GAME = {
    "id": "abc",
    "commence_time": "2025-06-01T23:00:00Z",
    "home_team": "New York Yankees",
    "away_team": "Boston Red Sox",
    "bookmakers": [
        {"key": "draftkings", "markets": [{"key": "h2h", "outcomes": [
            {"name": "New York Yankees", "price": -150},
            {"name": "Boston Red Sox", "price": 130},
        ]}]},
        {"key": "pinnacle", "markets": [{"key": "h2h", "outcomes": [
            {"name": "New York Yankees", "price": -160},
            {"name": "Boston Red Sox", "price": 145},
        ]}]},
    ],
}


class TestParseGame:

    def test_retail_and_sharp_split(self):
        parsed = FallbackOddsClient.parse_game(GAME)
        assert parsed["HomeTeam"] == "New York Yankees"
        assert parsed["Source"] == SOURCE_TAG
        assert parsed["PregameOdds"] == [
            {"Sportsbook": "draftkings", "HomeMoneyLine": -150, "AwayMoneyLine": 130}
        ]
        assert parsed["SharpHomeMoneyLine"] == -160
        assert parsed["SharpAwayMoneyLine"] == 145

    def test_sharp_only_game_still_priced(self):
        game = dict(GAME, bookmakers=[GAME["bookmakers"][1]])
        parsed = FallbackOddsClient.parse_game(game)
        assert parsed["PregameOdds"][0]["Sportsbook"] == "sharp"


class TestFetch:

    @patch("propedge.services.fallback_odds.requests.get")
    def test_missing_key(self, mock_get):
        client = FallbackOddsClient(api_key=None, cache=CacheService())
        assert client.fetch_h2h_odds("MLB").error == ErrorKind.NO_CREDENTIALS
        mock_get.assert_not_called()

    @patch("propedge.services.fallback_odds.requests.get")
    def test_fetch_and_cache(self, mock_get):
        resp = MagicMock()
        resp.json.return_value = [GAME]
        resp.headers = {"x-requests-used": "1", "x-requests-remaining": "499"}
        mock_get.return_value = resp
        client = FallbackOddsClient(api_key="k", cache=CacheService())

        first = client.fetch_h2h_odds("MLB")
        second = client.fetch_h2h_odds("MLB")

        assert first.is_ok
        assert first.endpoint == "MLB:odds-api-h2h"
        assert second.value == first.value
        assert mock_get.call_count == 1
        assert mock_get.call_args.kwargs["params"]["markets"] == "h2h"
        assert "baseball_mlb" in mock_get.call_args.args[0]

    @patch("propedge.services.fallback_odds.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout()
        client = FallbackOddsClient(api_key="k", cache=CacheService())
        assert client.fetch_h2h_odds("NBA").error == ErrorKind.PROVIDER_TIMEOUT
