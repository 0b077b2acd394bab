"""
Stat provider gateway (SportsDataIO-style JSON API).

Endpoints
---------
Player game stats by date   /{sport}/stats/json/PlayerGameStatsByDate/{date}
Player season totals        /{sport}/stats/json/PlayerSeasonStats/{year}
NFL player stats by week    /nfl/stats/json/PlayerGameStatsByWeek/{season}/{week}
Game odds by date / week    /{sport}/odds/json/GameOddsByDate/{date}
                            /nfl/odds/json/GameOddsByWeek/{season}/{week}
NFL current season / week   /nfl/scores/json/CurrentSeason, CurrentWeek
Closing line for a game     /{sport}/odds/json/Game/{game_id}

Every accessor returns a :class:`~propedge.core.result.Result`.  Successful
results carry an endpoint signature such as ``MLB:player-stats-by-date:2025-06-01``
which the caller records in the evaluation's ``used_endpoints`` audit list.
Responses are cached by signature in the injected :class:`CacheService`;
cache hits carry the same signature because the data is still provider data.

Failures never raise.  A missing key returns ``NO_CREDENTIALS`` without any
network call; a timeout returns ``PROVIDER_TIMEOUT``; HTTP and JSON errors
return ``PROVIDER_ERROR``.  Nothing is retried.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from propedge.config import Settings
from propedge.core.result import ErrorKind, Result
from propedge.core.sport_config import SPORT_NFL, SportConfig, get_sport_config
from propedge.services.cache import CacheService

logger = logging.getLogger(__name__)

AUTH_HEADER = "Ocp-Apim-Subscription-Key"


class SportsDataClient:
    """Cached, non-throwing accessors over the stat provider."""

    def __init__(
        self,
        api_key: Optional[str],
        cache: CacheService,
        base_url: str = "https://api.sportsdata.io/v3",
        timeout: float = 10.0,
        ttl: float = 3600.0,
        season_ttl: float = 21600.0,
    ):
        self.api_key = api_key
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.ttl = ttl
        self.season_ttl = season_ttl

    @classmethod
    def from_settings(cls, settings: Settings, cache: CacheService) -> "SportsDataClient":
        return cls(
            api_key=settings.sportsdata_api_key,
            cache=cache,
            base_url=settings.sportsdata_base_url,
            timeout=settings.provider_timeout_seconds,
            ttl=settings.cache_ttl_seconds,
            season_ttl=settings.season_cache_ttl_seconds,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------

    def _get(self, signature: str, path: str, ttl: Optional[float] = None) -> Result[Any]:
        """Cached GET.  ``signature`` is both the cache key and the audit tag."""
        if not self.api_key:
            return Result.fail(ErrorKind.NO_CREDENTIALS, "stat provider key not configured")

        cached = self.cache.get(signature)
        if cached is not None:
            return Result.ok(cached, endpoint=signature)

        url = f"{self.base_url}{path}"
        try:
            response = requests.get(
                url, headers={AUTH_HEADER: self.api_key}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("Stat provider timeout after %.1fs: %s", self.timeout, signature)
            return Result.fail(ErrorKind.PROVIDER_TIMEOUT, signature)
        except requests.exceptions.RequestException as e:
            logger.warning("Stat provider error for %s: %s", signature, e)
            return Result.fail(ErrorKind.PROVIDER_ERROR, str(e))
        except ValueError as e:
            logger.warning("Stat provider returned invalid JSON for %s: %s", signature, e)
            return Result.fail(ErrorKind.PROVIDER_ERROR, "invalid JSON")

        if data is None:
            return Result.fail(ErrorKind.NO_DATA, signature)

        self.cache.set(signature, data, self.ttl if ttl is None else ttl)
        return Result.ok(data, endpoint=signature)

    def _get_rows(self, signature: str, path: str, ttl: Optional[float] = None) -> Result[List[Dict]]:
        result = self._get(signature, path, ttl)
        if not result.is_ok:
            return result
        if not isinstance(result.value, list):
            logger.warning("Expected a list from %s, got %s", signature, type(result.value).__name__)
            return Result.fail(ErrorKind.PROVIDER_ERROR, "unexpected payload shape")
        rows = [r for r in result.value if isinstance(r, dict)]
        return Result.ok(rows, endpoint=result.endpoint)

    @staticmethod
    def _config(sport: str) -> Optional[SportConfig]:
        cfg = get_sport_config(sport)
        if cfg is None:
            logger.warning("Unsupported sport for stat provider: %r", sport)
        return cfg

    # -----------------------------------------------------------------------
    # Player stats
    # -----------------------------------------------------------------------

    def fetch_by_date(self, sport: str, day: date) -> Result[List[Dict]]:
        """Per-game player rows for every game on ``day``."""
        cfg = self._config(sport)
        if cfg is None:
            return Result.fail(ErrorKind.INVALID_INPUT, f"sport {sport!r}")
        ds = day.isoformat()
        return self._get_rows(
            f"{cfg.sport_id}:player-stats-by-date:{ds}",
            f"/{cfg.provider_path}/stats/json/PlayerGameStatsByDate/{ds}",
        )

    def fetch_season_totals(self, sport: str, year: int) -> Result[List[Dict]]:
        """Season-to-date totals, one row per player."""
        cfg = self._config(sport)
        if cfg is None:
            return Result.fail(ErrorKind.INVALID_INPUT, f"sport {sport!r}")
        return self._get_rows(
            f"{cfg.sport_id}:player-season-stats:{year}",
            f"/{cfg.provider_path}/stats/json/PlayerSeasonStats/{year}",
            ttl=self.season_ttl,
        )

    def fetch_week(self, season: int, week: int) -> Result[List[Dict]]:
        """NFL per-game player rows for one week."""
        return self._get_rows(
            f"{SPORT_NFL}:player-stats-by-week:{season}-W{week}",
            f"/nfl/stats/json/PlayerGameStatsByWeek/{season}/{week}",
        )

    # -----------------------------------------------------------------------
    # NFL calendar
    # -----------------------------------------------------------------------

    def fetch_current_season(self) -> Result[int]:
        return self._scalar(f"{SPORT_NFL}:current-season", "/nfl/scores/json/CurrentSeason")

    def fetch_current_week(self) -> Result[int]:
        return self._scalar(f"{SPORT_NFL}:current-week", "/nfl/scores/json/CurrentWeek")

    def _scalar(self, signature: str, path: str) -> Result[int]:
        result = self._get(signature, path)
        if not result.is_ok:
            return result
        try:
            value = int(result.value)
        except (TypeError, ValueError):
            return Result.fail(ErrorKind.PROVIDER_ERROR, f"non-integer payload for {signature}")
        if value <= 0:
            return Result.fail(ErrorKind.NO_DATA, signature)
        return Result.ok(value, endpoint=result.endpoint)

    # -----------------------------------------------------------------------
    # Odds
    # -----------------------------------------------------------------------

    def fetch_game_odds(self, sport: str, day: Optional[date] = None,
                        season: Optional[int] = None, week: Optional[int] = None) -> Result[List[Dict]]:
        """Pregame odds for a date, or for an NFL (season, week)."""
        cfg = self._config(sport)
        if cfg is None:
            return Result.fail(ErrorKind.INVALID_INPUT, f"sport {sport!r}")
        if cfg.organized_by_week:
            if season is None or week is None:
                return Result.fail(ErrorKind.INVALID_INPUT, "NFL odds need season and week")
            return self._get_rows(
                f"{cfg.sport_id}:game-odds-by-week:{season}-W{week}",
                f"/{cfg.provider_path}/odds/json/GameOddsByWeek/{season}/{week}",
            )
        if day is None:
            return Result.fail(ErrorKind.INVALID_INPUT, "odds by date need a date")
        ds = day.isoformat()
        return self._get_rows(
            f"{cfg.sport_id}:game-odds-by-date:{ds}",
            f"/{cfg.provider_path}/odds/json/GameOddsByDate/{ds}",
        )

    def fetch_closing_line(self, sport: str, game_id: Any) -> Result[float]:
        """Closing American price recorded by the provider for a game."""
        cfg = self._config(sport)
        if cfg is None or game_id in (None, ""):
            return Result.fail(ErrorKind.INVALID_INPUT, "closing line needs sport and game id")
        signature = f"{cfg.sport_id}:closing-line:{game_id}"
        result = self._get(signature, f"/{cfg.provider_path}/odds/json/Game/{game_id}")
        if not result.is_ok:
            return result
        payload = result.value
        closing = payload.get("ClosingLine") if isinstance(payload, dict) else None
        if isinstance(closing, bool) or not isinstance(closing, (int, float)) or closing == 0:
            return Result.fail(ErrorKind.NO_DATA, f"no closing line for game {game_id}")
        return Result.ok(float(closing), endpoint=result.endpoint)
