"""
Moneyline evaluation.

Market-heavy: there is no team rating model, so the model probability is a
0.5 placeholder and the fused probability is driven by the no-vig market
price plus the sharp signal when a sharp book quoted the game.

Odds are looked up on the stat provider first (event date, the day before,
the day after; NFL by week) and only then on the fallback odds source.  The
same safety rail as props applies: without a matched, priced game the
decision is PASS at 49.9.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from propedge.core.odds_math import normalize_prob_pair, safe_implied_prob
from propedge.core.result import ErrorKind, Result
from propedge.core.sport_config import SUPPORTED_SPORTS, get_sport_config, infer_nfl_season_week
from propedge.core.staking import PASS, classify_confidence, suggested_stake
from propedge.prop_model import (
    GATE_CONFIDENCE_CAP,
    VALIDATION_CONFIDENCE,
    EvaluationResult,
    error_result,
)
from propedge.services.clv import DEFAULT_NEUTRAL_BAND, compute_clv
from propedge.services.fallback_odds import SOURCE_TAG as FALLBACK_SOURCE
from propedge.services.fallback_odds import FallbackOddsClient
from propedge.services.identity import match_team_pair
from propedge.services.market import FusionWeights, fuse
from propedge.services.stats_provider import SportsDataClient

logger = logging.getLogger(__name__)

MONEYLINE = "MONEYLINE"
MODEL_PLACEHOLDER = 0.5
PROVIDER_SOURCE = "sportsdata"

#: Day offsets tried for date-organized odds, in order.
ODDS_DAY_OFFSETS = (0, -1, 1)


@dataclass(frozen=True)
class GameLineInput:
    sport: str
    team: str
    opponent: str
    event_start: Optional[datetime] = None
    current_price: Optional[float] = None


@dataclass(frozen=True)
class OddsSnapshot:
    """The price the evaluation was made against."""

    line: float
    opening_price: float
    source: str
    captured_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "openingPrice": self.opening_price,
            "source": self.source,
            "capturedAt": self.captured_at.isoformat(),
        }


def _moneylines(game: Dict[str, Any]) -> Tuple[Optional[float], Optional[float], str]:
    """First book quoting both moneylines: ``(home, away, book)``."""
    books = game.get("PregameOdds")
    if not isinstance(books, list):
        books = game.get("Odds")
    if isinstance(books, list):
        for book in books:
            if not isinstance(book, dict):
                continue
            home, away = safe_implied_prob(book.get("HomeMoneyLine")), safe_implied_prob(book.get("AwayMoneyLine"))
            if home is not None and away is not None:
                name = book.get("Sportsbook") or book.get("SportsbookDisplayName") or "book"
                return float(book["HomeMoneyLine"]), float(book["AwayMoneyLine"]), str(name)
        return None, None, ""
    home, away = game.get("HomeMoneyLine"), game.get("AwayMoneyLine")
    if safe_implied_prob(home) is None or safe_implied_prob(away) is None:
        return None, None, ""
    return float(home), float(away), "book"


def _no_vig_side(home_price: float, away_price: float, team_is_home: bool) -> float:
    p_home, p_away = normalize_prob_pair(safe_implied_prob(home_price), safe_implied_prob(away_price))
    return p_home if team_is_home else p_away


class GameLinesEvaluator:
    """Moneyline evaluator over provider odds with a fallback odds source."""

    def __init__(
        self,
        client: SportsDataClient,
        fallback: Optional[FallbackOddsClient] = None,
        calibration_factor: float = 1.0,
        clv_neutral_band: float = DEFAULT_NEUTRAL_BAND,
        weights: Optional[FusionWeights] = None,
        today: Callable[[], date] = lambda: datetime.now(timezone.utc).date(),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.fallback = fallback
        self.calibration_factor = calibration_factor
        self.clv_neutral_band = clv_neutral_band
        self.weights = weights or FusionWeights.moneylines()
        self.today = today
        self.clock = clock

    def evaluate(self, game: GameLineInput) -> EvaluationResult:
        """Evaluate one moneyline.  Never raises."""
        try:
            return self._evaluate(game)
        except Exception as e:
            logger.error("Game evaluation failed for %r: %s", getattr(game, "team", None), e, exc_info=True)
            return error_result(getattr(game, "team", ""), self._label(game), MONEYLINE, e)

    @staticmethod
    def _label(game: Any) -> str:
        return f"{getattr(game, 'team', '')} vs {getattr(game, 'opponent', '')} moneyline"

    def _pass(self, game: GameLineInput, confidence: float, flags: List[str],
              meta: Dict[str, Any]) -> EvaluationResult:
        return EvaluationResult(
            subject_name=game.team or "",
            statistic_line=self._label(game),
            decision=PASS,
            suggestion=MONEYLINE,
            final_confidence_percent=confidence,
            suggested_stake_units=0.0,
            flags=tuple(flags),
            raw_numbers={
                "modelProbability": MODEL_PLACEHOLDER,
                "marketProbability": None,
                "fusedProbability": MODEL_PLACEHOLDER,
            },
            meta=meta,
        )

    # -----------------------------------------------------------------------
    # Odds lookup
    # -----------------------------------------------------------------------

    def _provider_odds(self, sport: str, event_date: date,
                       endpoints: List[str], errors: List[ErrorKind]) -> List[Dict]:
        def note(result: Result) -> None:
            if result.is_ok:
                if result.endpoint and result.endpoint not in endpoints:
                    endpoints.append(result.endpoint)
            elif result.error not in errors:
                errors.append(result.error)

        cfg = get_sport_config(sport)
        if cfg.organized_by_week:
            season, week = infer_nfl_season_week(event_date)
            current_week = self.client.fetch_current_week()
            note(current_week)
            if current_week.is_ok and event_date >= self.today():
                week = current_week.value
            result = self.client.fetch_game_odds(sport, season=season, week=week)
            note(result)
            return result.value if result.is_ok and result.value else []

        for offset in ODDS_DAY_OFFSETS:
            result = self.client.fetch_game_odds(sport, day=event_date + timedelta(days=offset))
            note(result)
            if result.error == ErrorKind.NO_CREDENTIALS:
                break
            if result.is_ok and result.value:
                return result.value
        return []

    def _fallback_odds(self, sport: str, endpoints: List[str], errors: List[ErrorKind]) -> List[Dict]:
        if self.fallback is None:
            return []
        result = self.fallback.fetch_h2h_odds(sport)
        if result.is_ok:
            endpoints.append(result.endpoint)
            return result.value or []
        if result.error not in errors:
            errors.append(result.error)
        return []

    # -----------------------------------------------------------------------
    # Evaluation
    # -----------------------------------------------------------------------

    def _evaluate(self, game: GameLineInput) -> EvaluationResult:
        missing = [
            tag for tag, value in (
                ("MISSING_SPORT", game.sport),
                ("MISSING_TEAM", game.team),
                ("MISSING_OPPONENT", game.opponent),
            ) if not (value or "").strip()
        ]
        if not missing and game.sport.strip().upper() not in SUPPORTED_SPORTS:
            missing.append("INVALID_SPORT")
        if missing:
            return self._pass(game, VALIDATION_CONFIDENCE, missing,
                              {"dataSource": "validation", "errorKinds": [ErrorKind.INVALID_INPUT.value]})

        sport = game.sport.strip().upper()
        event_date = game.event_start.date() if game.event_start else self.today()
        endpoints: List[str] = []
        errors: List[ErrorKind] = []

        odds = self._provider_odds(sport, event_date, endpoints, errors)
        source = PROVIDER_SOURCE
        if not odds:
            odds = self._fallback_odds(sport, endpoints, errors)
            source = FALLBACK_SOURCE

        def meta(**extra) -> Dict[str, Any]:
            base = {
                "dataSource": source if odds else "fallback",
                "usedEndpoints": list(endpoints),
                "errorKinds": [e.value for e in errors],
            }
            base.update(extra)
            return base

        if not odds:
            return self._pass(game, GATE_CONFIDENCE_CAP, ["NO_ODDS", "NO_REAL_DATA"],
                              meta(note="No odds found"))

        matched = match_team_pair(game.team, game.opponent, odds)
        if matched is None:
            errors.append(ErrorKind.NO_MATCH)
            return self._pass(game, GATE_CONFIDENCE_CAP, [ErrorKind.NO_MATCH.value],
                              meta(note="No matching teams"))
        matched_game, team_is_home = matched

        ml_home, ml_away, book = _moneylines(matched_game)
        if ml_home is None:
            return self._pass(game, GATE_CONFIDENCE_CAP, ["NO_MONEYLINE"], meta(note="No moneyline prices"))

        market_prob = _no_vig_side(ml_home, ml_away, team_is_home)
        sharp_signal = 0.0
        sharp_home, sharp_away = matched_game.get("SharpHomeMoneyLine"), matched_game.get("SharpAwayMoneyLine")
        if safe_implied_prob(sharp_home) is not None and safe_implied_prob(sharp_away) is not None:
            sharp_signal = _no_vig_side(sharp_home, sharp_away, team_is_home) - market_prob

        fused = fuse(MODEL_PLACEHOLDER, market_prob, self.weights,
                     sharp_signal=sharp_signal, calibration=self.calibration_factor)
        confidence = round(fused * 100.0, 1)
        decision = classify_confidence(confidence, low_confidence_band=False)

        side_price = ml_home if team_is_home else ml_away
        snapshot = OddsSnapshot(
            line=side_price,
            opening_price=side_price,
            source=matched_game.get("Source") or source,
            captured_at=self.clock(),
        )

        current_price = game.current_price
        if current_price is None and snapshot.source == PROVIDER_SOURCE:
            closing = self.client.fetch_closing_line(sport, matched_game.get("GameID"))
            if closing.is_ok:
                endpoints.append(closing.endpoint)
                current_price = closing.value
        clv = compute_clv(snapshot.opening_price, current_price, self.clv_neutral_band)

        home = str(matched_game.get("HomeTeam") or matched_game.get("HomeTeamName") or "")
        away = str(matched_game.get("AwayTeam") or matched_game.get("AwayTeamName") or "")
        drivers = [
            f"Market no-vig {market_prob:.3f} from {book} ({side_price:+g})",
            f"Matchup {away} @ {home}",
        ]
        if sharp_signal and math.isfinite(sharp_signal):
            drivers.append(f"Sharp signal {sharp_signal:+.3f}")
        if clv is not None:
            drivers.append(f"CLV {clv.percent:+.2f}% ({clv.favorability})")

        logger.info("Moneyline %s %s: market %.3f fused %.3f → %s",
                    sport, game.team, market_prob, fused, decision)

        return EvaluationResult(
            subject_name=game.team,
            statistic_line=self._label(game),
            decision=decision,
            suggestion=MONEYLINE,
            final_confidence_percent=confidence,
            suggested_stake_units=suggested_stake(confidence),
            top_drivers=tuple(drivers),
            flags=(),
            raw_numbers={
                "modelProbability": MODEL_PLACEHOLDER,
                "marketProbability": round(market_prob, 4),
                "fusedProbability": round(fused, 4),
                "sharpSignal": round(sharp_signal, 4),
                "line": side_price,
            },
            clv=clv,
            meta=meta(
                matchup={
                    "home": home,
                    "away": away,
                    "book": book,
                    "mlHome": ml_home,
                    "mlAway": ml_away,
                    "teamIsHome": team_is_home,
                },
                oddsSnapshot=snapshot.to_dict(),
            ),
        )
