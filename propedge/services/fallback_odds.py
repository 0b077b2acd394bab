"""
The Odds API integration, consulted only when the stat provider has no odds.
https://the-odds-api.com/

Games are reshaped into the stat provider's pregame-odds layout
(``HomeTeam`` / ``AwayTeam`` / ``PregameOdds[*].HomeMoneyLine``) so the
game-line evaluator matches and prices them with one code path.

Sharp Market Isolation
----------------------
SHARP_BOOKS (Pinnacle, Circa) represent true market consensus.  When one of
them quotes the game, its no-vig moneylines are attached as
``SharpHomeMoneyLine`` / ``SharpAwayMoneyLine``; the evaluator turns the
gap between sharp and retail consensus into the fusion's sharp signal.
"""

import logging
from typing import Dict, List, Optional

import requests

from propedge.config import Settings
from propedge.core.result import ErrorKind, Result
from propedge.core.sport_config import get_sport_config
from propedge.services.cache import CacheService

logger = logging.getLogger(__name__)

SOURCE_TAG = "fallback_odds_api"

# Books that represent the sharpest, most accurate market consensus.
SHARP_BOOKS: frozenset = frozenset({"pinnacle", "circasports"})


class FallbackOddsClient:
    """Client for The Odds API (moneyline / h2h market only)."""

    def __init__(
        self,
        api_key: Optional[str],
        cache: CacheService,
        base_url: str = "https://api.the-odds-api.com/v4",
        timeout: float = 10.0,
        ttl: float = 600.0,
        regions: str = "us,eu",
    ):
        self.api_key = api_key
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.ttl = ttl
        self.regions = regions

    @classmethod
    def from_settings(cls, settings: Settings, cache: CacheService) -> "FallbackOddsClient":
        return cls(
            api_key=settings.odds_api_key,
            cache=cache,
            base_url=settings.odds_api_base_url,
            timeout=settings.provider_timeout_seconds,
        )

    def fetch_h2h_odds(self, sport: str) -> Result[List[Dict]]:
        """Current moneyline odds for a sport, in the provider's game layout."""
        if not self.api_key:
            return Result.fail(ErrorKind.NO_CREDENTIALS, "THE_ODDS_API_KEY not set")
        cfg = get_sport_config(sport)
        if cfg is None:
            return Result.fail(ErrorKind.INVALID_INPUT, f"sport {sport!r}")

        signature = f"{cfg.sport_id}:odds-api-h2h"
        cached = self.cache.get(signature)
        if cached is not None:
            return Result.ok(cached, endpoint=signature)

        url = f"{self.base_url}/sports/{cfg.odds_api_sport_key}/odds"
        params = {
            "apiKey": self.api_key,
            "regions": self.regions,
            "markets": "h2h",
            "oddsFormat": "american",
        }

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("Odds API timeout after %.1fs (%s)", self.timeout, cfg.sport_id)
            return Result.fail(ErrorKind.PROVIDER_TIMEOUT, signature)
        except requests.exceptions.RequestException as e:
            logger.warning("Odds API error: %s", e)
            return Result.fail(ErrorKind.PROVIDER_ERROR, str(e))
        except ValueError as e:
            logger.warning("Odds API returned invalid JSON: %s", e)
            return Result.fail(ErrorKind.PROVIDER_ERROR, "invalid JSON")

        if not isinstance(data, list):
            return Result.fail(ErrorKind.PROVIDER_ERROR, "unexpected payload shape")

        logger.info(
            "Odds API: %d %s games fetched. Quota: %s used, %s remaining",
            len(data), cfg.sport_id,
            response.headers.get("x-requests-used"),
            response.headers.get("x-requests-remaining"),
        )

        games = [self.parse_game(g) for g in data if isinstance(g, dict)]
        self.cache.set(signature, games, self.ttl)
        return Result.ok(games, endpoint=signature)

    @staticmethod
    def parse_game(game_data: Dict) -> Dict:
        """Reshape one Odds API game into the provider's pregame-odds layout.

        Retail books keep their own entries in ``PregameOdds``; the first
        sharp book found also populates ``SharpHomeMoneyLine`` /
        ``SharpAwayMoneyLine``.
        """
        home_team = game_data.get("home_team")
        away_team = game_data.get("away_team")

        parsed: Dict = {
            "GameID": game_data.get("id"),
            "DateTime": game_data.get("commence_time"),
            "HomeTeam": home_team,
            "AwayTeam": away_team,
            "PregameOdds": [],
            "SharpHomeMoneyLine": None,
            "SharpAwayMoneyLine": None,
            "Source": SOURCE_TAG,
        }

        for bookmaker in game_data.get("bookmakers", []):
            book_key = bookmaker.get("key", "").lower()
            ml_home = ml_away = None
            for market in bookmaker.get("markets", []):
                if market.get("key") != "h2h":
                    continue
                for outcome in market.get("outcomes", []):
                    if outcome.get("name") == home_team:
                        ml_home = outcome.get("price")
                    elif outcome.get("name") == away_team:
                        ml_away = outcome.get("price")

            if ml_home is None or ml_away is None:
                continue

            if book_key in SHARP_BOOKS and parsed["SharpHomeMoneyLine"] is None:
                parsed["SharpHomeMoneyLine"] = ml_home
                parsed["SharpAwayMoneyLine"] = ml_away
            else:
                parsed["PregameOdds"].append(
                    {"Sportsbook": book_key, "HomeMoneyLine": ml_home, "AwayMoneyLine": ml_away}
                )

        # A sharp-only game still needs a quoted price.
        if not parsed["PregameOdds"] and parsed["SharpHomeMoneyLine"] is not None:
            parsed["PregameOdds"].append({
                "Sportsbook": "sharp",
                "HomeMoneyLine": parsed["SharpHomeMoneyLine"],
                "AwayMoneyLine": parsed["SharpAwayMoneyLine"],
            })

        return parsed
