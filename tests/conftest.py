"""Shared fixtures: an in-memory stand-in for the stat provider."""

from datetime import date, timedelta

import pytest

from propedge.core.result import ErrorKind, Result

EVENT_DAY = date(2025, 6, 1)


def pitcher_row(strikeouts, player_id=7, name="Test Pitcher", innings=6.0):
    return {
        "PlayerID": player_id,
        "Name": name,
        "Position": "SP",
        "PitchingStrikeouts": strikeouts,
        "InningsPitchedDecimal": innings,
        "GamesStarted": 1,
    }


class FakeStatsClient:
    """Duck-typed ``SportsDataClient`` serving canned rows.

    ``error`` makes every call fail with that kind; ``calls`` records the
    order of requests so tests can assert early termination.
    """

    def __init__(self, by_date=None, season=None, weeks=None, odds=None,
                 error=None, current_season=2024, current_week=10, closing=None):
        self.by_date = by_date or {}
        self.season = season or []
        self.weeks = weeks or {}
        self.odds = odds or {}
        self.error = error
        self.current_season = current_season
        self.current_week = current_week
        self.closing = closing
        self.calls = []

    @property
    def has_credentials(self):
        return self.error != ErrorKind.NO_CREDENTIALS

    def _answer(self, signature, value):
        self.calls.append(signature)
        if self.error is not None:
            return Result.fail(self.error)
        return Result.ok(value, endpoint=signature)

    def fetch_by_date(self, sport, day):
        return self._answer(f"{sport}:player-stats-by-date:{day.isoformat()}", self.by_date.get(day, []))

    def fetch_season_totals(self, sport, year):
        return self._answer(f"{sport}:player-season-stats:{year}", self.season)

    def fetch_week(self, season, week):
        return self._answer(f"NFL:player-stats-by-week:{season}-W{week}", self.weeks.get(week, []))

    def fetch_current_season(self):
        return self._answer("NFL:current-season", self.current_season)

    def fetch_current_week(self):
        return self._answer("NFL:current-week", self.current_week)

    def fetch_game_odds(self, sport, day=None, season=None, week=None):
        key = day if day is not None else (season, week)
        tag = day.isoformat() if day is not None else f"{season}-W{week}"
        return self._answer(f"{sport}:game-odds:{tag}", self.odds.get(key, []))

    def fetch_closing_line(self, sport, game_id):
        if self.closing is None:
            self.calls.append(f"{sport}:closing-line:{game_id}")
            return Result.fail(ErrorKind.NO_DATA)
        return self._answer(f"{sport}:closing-line:{game_id}", float(self.closing))


@pytest.fixture
def pitcher_client():
    """Five starts, most recent first: 7, 8, 6, 9, 7 strikeouts."""
    by_date = {}
    for i, ks in enumerate([7, 8, 6, 9, 7]):
        day = EVENT_DAY - timedelta(days=1 + 5 * i)
        by_date[day] = [pitcher_row(ks), {"PlayerID": 99, "Name": "Other Hitter", "PlateAppearances": 4}]
    return FakeStatsClient(by_date=by_date)


@pytest.fixture
def empty_client():
    return FakeStatsClient()
