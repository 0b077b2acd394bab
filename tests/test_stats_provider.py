"""Tests for services.stats_provider: credentials, failures and caching."""

from datetime import date
from unittest.mock import MagicMock, patch

import requests

from propedge.core.result import ErrorKind
from propedge.services.cache import CacheService
from propedge.services.stats_provider import AUTH_HEADER, SportsDataClient

DAY = date(2025, 6, 1)


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _client(key="secret"):
    return SportsDataClient(api_key=key, cache=CacheService(), base_url="https://stats.example/v3")


class TestCredentials:

    @patch("propedge.services.stats_provider.requests.get")
    def test_missing_key_never_touches_network(self, mock_get):
        result = _client(key=None).fetch_by_date("MLB", DAY)
        assert result.error == ErrorKind.NO_CREDENTIALS
        mock_get.assert_not_called()

    def test_has_credentials(self):
        assert _client().has_credentials
        assert not _client(key="").has_credentials


class TestFetch:

    @patch("propedge.services.stats_provider.requests.get")
    def test_by_date_success(self, mock_get):
        mock_get.return_value = _response([{"Name": "Tarik Skubal"}, "junk"])
        result = _client().fetch_by_date("mlb", DAY)

        assert result.is_ok
        assert result.value == [{"Name": "Tarik Skubal"}]
        assert result.endpoint == "MLB:player-stats-by-date:2025-06-01"
        args, kwargs = mock_get.call_args
        assert args[0] == "https://stats.example/v3/mlb/stats/json/PlayerGameStatsByDate/2025-06-01"
        assert kwargs["headers"] == {AUTH_HEADER: "secret"}
        assert kwargs["timeout"] == 10.0

    @patch("propedge.services.stats_provider.requests.get")
    def test_cache_hit_skips_network(self, mock_get):
        mock_get.return_value = _response([{"Name": "A"}])
        client = _client()
        client.fetch_by_date("MLB", DAY)
        again = client.fetch_by_date("MLB", DAY)

        assert again.is_ok
        assert again.endpoint == "MLB:player-stats-by-date:2025-06-01"
        assert mock_get.call_count == 1

    @patch("propedge.services.stats_provider.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout()
        assert _client().fetch_by_date("MLB", DAY).error == ErrorKind.PROVIDER_TIMEOUT

    @patch("propedge.services.stats_provider.requests.get")
    def test_http_error(self, mock_get):
        resp = _response(None)
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        mock_get.return_value = resp
        assert _client().fetch_by_date("MLB", DAY).error == ErrorKind.PROVIDER_ERROR

    @patch("propedge.services.stats_provider.requests.get")
    def test_invalid_json(self, mock_get):
        resp = _response(None)
        resp.json.side_effect = ValueError("bad json")
        mock_get.return_value = resp
        assert _client().fetch_by_date("MLB", DAY).error == ErrorKind.PROVIDER_ERROR

    @patch("propedge.services.stats_provider.requests.get")
    def test_failures_are_not_cached(self, mock_get):
        mock_get.side_effect = [requests.exceptions.Timeout(), _response([{"Name": "A"}])]
        client = _client()
        assert not client.fetch_by_date("MLB", DAY).is_ok
        assert client.fetch_by_date("MLB", DAY).is_ok

    @patch("propedge.services.stats_provider.requests.get")
    def test_non_list_payload(self, mock_get):
        mock_get.return_value = _response({"Message": "nope"})
        assert _client().fetch_by_date("MLB", DAY).error == ErrorKind.PROVIDER_ERROR

    def test_unsupported_sport(self):
        assert _client().fetch_by_date("NHL", DAY).error == ErrorKind.INVALID_INPUT


class TestNflAndOdds:

    @patch("propedge.services.stats_provider.requests.get")
    def test_week_signature(self, mock_get):
        mock_get.return_value = _response([])
        result = _client().fetch_week(2024, 7)
        assert result.endpoint == "NFL:player-stats-by-week:2024-W7"

    @patch("propedge.services.stats_provider.requests.get")
    def test_current_week_scalar(self, mock_get):
        mock_get.return_value = _response(12)
        result = _client().fetch_current_week()
        assert result.value == 12

    @patch("propedge.services.stats_provider.requests.get")
    def test_current_week_zero_is_no_data(self, mock_get):
        mock_get.return_value = _response(0)
        assert _client().fetch_current_week().error == ErrorKind.NO_DATA

    def test_nfl_odds_need_week(self):
        assert _client().fetch_game_odds("NFL", day=DAY).error == ErrorKind.INVALID_INPUT

    @patch("propedge.services.stats_provider.requests.get")
    def test_closing_line(self, mock_get):
        mock_get.return_value = _response({"GameID": 9, "ClosingLine": -135})
        result = _client().fetch_closing_line("NBA", 9)
        assert result.value == -135.0
        assert result.endpoint == "NBA:closing-line:9"

    @patch("propedge.services.stats_provider.requests.get")
    def test_missing_closing_line(self, mock_get):
        mock_get.return_value = _response({"GameID": 9})
        assert _client().fetch_closing_line("NBA", 9).error == ErrorKind.NO_DATA
