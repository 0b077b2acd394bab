"""Sport-level configuration: all sport-specific constants in one place.

This module is the **registry** for every constant that differs between
sports.  Nowhere else in the codebase should lookback windows, stat field
names, variance floors, or baseline averages be hard-coded.

Architecture
------------
:class:`SportConfig` is a frozen dataclass carrying all per-sport constants.
Named constructors (:meth:`SportConfig.nba`, :meth:`SportConfig.mlb`, ...)
return pre-populated instances; :func:`get_sport_config` resolves a sport
code.  Each sport owns a tuple of :class:`StatSpec` entries describing the
statistics it can price:

* which words in a free-text line select the statistic,
* which row fields carry the per-game value,
* whether the count is Poisson-shaped or Normal-shaped,
* the variance floor and the small-sample default variance,
* the hard-default mean used when no provider data exists.

Typical usage::

    from propedge.core.sport_config import get_sport_config

    cfg = get_sport_config("MLB")
    spec = cfg.stat_for("Strikeouts 6.5")   # → StatSpec(key="strikeouts", ...)

    # Override a single constant for an experiment:
    from dataclasses import replace
    wide = replace(cfg, lookback_days=150)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Final, Optional, Tuple

#: Sport identifier strings used in requests, endpoint signatures and DB rows.
SPORT_NBA: Final[str] = "NBA"
SPORT_WNBA: Final[str] = "WNBA"
SPORT_MLB: Final[str] = "MLB"
SPORT_NFL: Final[str] = "NFL"

SUPPORTED_SPORTS: Final[Tuple[str, ...]] = (SPORT_NBA, SPORT_WNBA, SPORT_MLB, SPORT_NFL)

POISSON: Final[str] = "poisson"
NORMAL: Final[str] = "normal"

#: Keywords this short are only matched as whole tokens ("k", "pts", "td"),
#: so "k" never fires inside "strikeouts" or "walks".
_ABBREVIATION_MAX_LEN: Final[int] = 3


@dataclass(frozen=True)
class StatSpec:
    """How one proposition statistic is recognised, extracted, and modelled.

    Attributes:
        key: Canonical statistic name (``"strikeouts"``, ``"passing yards"``).
        keywords: Lower-case words that select this statistic from free
            text.  Multi-character phrases match as substrings; keywords of
            three characters or fewer must match a whole token.
        distribution: :data:`POISSON` for rare-event counts, :data:`NORMAL`
            for continuous, higher-mean statistics.
        fields: Per-game row fields, in preference order.  Summed when
            ``sum_fields`` is set (e.g. rushing + receiving touchdowns).
        season_fields: Season-total row fields, in preference order.
        variance_floor: Minimum variance reported and used by the tail
            model; protects against near-zero sample variance.
        default_variance: Variance used when the recent sample has fewer
            than three observations.
        baseline: League-typical per-game value used as the hard default.
        pitcher_only: Row must pass the pitching participation filter.
        sum_fields: Add every field in ``fields`` instead of taking the
            first present one.
    """

    key: str
    keywords: Tuple[str, ...]
    distribution: str
    fields: Tuple[str, ...]
    season_fields: Tuple[str, ...]
    variance_floor: float
    default_variance: float
    baseline: float
    pitcher_only: bool = False
    sum_fields: bool = False

    @property
    def is_poisson(self) -> bool:
        return self.distribution == POISSON


def _count(key, keywords, fields, baseline, *, season_fields=None, floor=1.4,
           pitcher_only=False, sum_fields=False) -> StatSpec:
    return StatSpec(
        key=key,
        keywords=keywords,
        distribution=POISSON,
        fields=fields,
        season_fields=season_fields or fields,
        variance_floor=floor,
        default_variance=max(floor, baseline),
        baseline=baseline,
        pitcher_only=pitcher_only,
        sum_fields=sum_fields,
    )


def _continuous(key, keywords, fields, baseline, sd_floor, default_sd, *,
                season_fields=None, pitcher_only=False) -> StatSpec:
    return StatSpec(
        key=key,
        keywords=keywords,
        distribution=NORMAL,
        fields=fields,
        season_fields=season_fields or fields,
        variance_floor=sd_floor ** 2,
        default_variance=default_sd ** 2,
        baseline=baseline,
        pitcher_only=pitcher_only,
    )


def _basketball_stats(points, rebounds, assists, steals, blocks, threes,
                      turnovers, minutes) -> Tuple[StatSpec, ...]:
    return (
        _continuous("points", ("points", "point", "pts"), ("Points",), points, 4.0, 6.5),
        _continuous("rebounds", ("rebounds", "rebound", "reb", "boards"),
                    ("Rebounds", "ReboundsTotal"), rebounds, 1.8, 3.0),
        _continuous("assists", ("assists", "assist", "ast", "dimes"), ("Assists",), assists, 1.5, 2.5),
        _count("steals", ("steals", "steal", "stl"), ("Steals",), steals),
        _count("blocks", ("blocks", "block", "blk"), ("BlockedShots", "Blocks"), blocks),
        _count("threes", ("three-pointers", "threes", "three", "3pt", "3pm"),
               ("ThreePointersMade",), threes),
        _count("turnovers", ("turnovers", "turnover", "tov"), ("Turnovers",), turnovers),
        _continuous("minutes", ("minutes", "min", "mins"), ("Minutes",), minutes, 4.0, 6.0),
    )


@dataclass(frozen=True)
class SportConfig:
    """Immutable configuration bundle for a single sport.

    Attributes:
        sport_id: ``"NBA"``, ``"WNBA"``, ``"MLB"`` or ``"NFL"``.
        sport_name: Human-readable name for logging and display.
        provider_path: Sport segment in the stat provider's URL scheme.
        organized_by_week: ``True`` for American football, whose schedule
            and stat feeds are keyed by (season, week) rather than date.
        lookback_days: Calendar days scanned backward from the event date
            when assembling the recent sample (date-organized sports).
            Baseball is longer because a starter pitches every fifth day.
        lookback_weeks: Weeks scanned backward from the current week
            (week-organized sports).
        target_sample: Stop scanning once this many observations exist.
        identity_probe_days: Day offsets probed to discover the player's
            provider id before the full scan.
        default_current_week: Current week assumed when the provider cannot
            report one.
        stats: Statistics this sport can price.
        odds_api_sport_key: Sport key for the fallback odds source.
    """

    sport_id: str
    sport_name: str
    provider_path: str
    organized_by_week: bool
    lookback_days: int
    lookback_weeks: int
    target_sample: int
    identity_probe_days: Tuple[int, ...]
    default_current_week: int
    stats: Tuple[StatSpec, ...]
    odds_api_sport_key: str

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def nba(cls) -> SportConfig:
        """NBA configuration.  Baselines are league per-game averages for a
        rotation player (≈ 25 minutes)."""
        return cls(
            sport_id=SPORT_NBA,
            sport_name="NBA",
            provider_path="nba",
            organized_by_week=False,
            lookback_days=45,
            lookback_weeks=0,
            target_sample=10,
            identity_probe_days=(0, -1, -2),
            default_current_week=0,
            stats=_basketball_stats(15.5, 6.2, 3.8, 1.1, 0.8, 1.5, 1.8, 26.5),
            odds_api_sport_key="basketball_nba",
        )

    @classmethod
    def wnba(cls) -> SportConfig:
        """WNBA configuration.  Same stat shapes as the NBA, lower baselines
        (40-minute games, shorter rotations)."""
        return cls(
            sport_id=SPORT_WNBA,
            sport_name="WNBA",
            provider_path="wnba",
            organized_by_week=False,
            lookback_days=45,
            lookback_weeks=0,
            target_sample=10,
            identity_probe_days=(0, -1, -2),
            default_current_week=0,
            stats=_basketball_stats(11.2, 5.1, 2.9, 1.0, 0.6, 1.2, 1.5, 24.0),
            odds_api_sport_key="basketball_wnba",
        )

    @classmethod
    def mlb(cls) -> SportConfig:
        """MLB configuration.

        Strikeouts are pitcher strikeouts; the per-game value is extracted by
        :func:`propedge.services.features.pick_value` with the K/9 fallback.
        The 120-day lookback covers a starter's ~25 turns in the rotation.
        """
        return cls(
            sport_id=SPORT_MLB,
            sport_name="MLB",
            provider_path="mlb",
            organized_by_week=False,
            lookback_days=120,
            lookback_weeks=0,
            target_sample=10,
            identity_probe_days=(0, -1, -2),
            default_current_week=0,
            stats=(
                _count("strikeouts", ("strikeouts", "strikeout", "k", "ks", "so"),
                       ("PitchingStrikeouts", "PitcherStrikeouts", "StrikeoutsPitched"), 5.8,
                       season_fields=("PitchingStrikeouts", "Strikeouts"), pitcher_only=True),
                _count("earned runs", ("earned runs", "earned run", "er"),
                       ("PitchingEarnedRuns", "EarnedRuns"), 3.5, pitcher_only=True),
                _continuous("innings", ("innings pitched", "innings", "ip"),
                            ("PitchingInningsPitchedDecimal", "InningsPitchedDecimal"), 5.5, 1.0, 1.5,
                            pitcher_only=True),
                _count("home runs", ("home runs", "home run", "homer", "hr"), ("HomeRuns",), 0.3, floor=0.25),
                _count("stolen bases", ("stolen bases", "stolen base", "sb"), ("StolenBases",), 0.2, floor=0.2),
                _count("rbis", ("rbis", "rbi", "runs batted in"), ("RunsBattedIn",), 0.9, floor=0.6),
                _count("walks", ("walks", "walk", "bb"), ("Walks",), 0.7, floor=0.5),
                _count("hits", ("hits", "hit"), ("Hits",), 1.2, floor=0.8),
                _count("runs", ("runs", "run"), ("Runs",), 0.8, floor=0.6),
            ),
            odds_api_sport_key="baseball_mlb",
        )

    @classmethod
    def nfl(cls) -> SportConfig:
        """NFL configuration.  Week-organized; the collector walks back from
        the provider's current week (week 18 when unavailable)."""
        return cls(
            sport_id=SPORT_NFL,
            sport_name="NFL",
            provider_path="nfl",
            organized_by_week=True,
            lookback_days=0,
            lookback_weeks=8,
            target_sample=8,
            identity_probe_days=(),
            default_current_week=18,
            stats=(
                _continuous("passing yards", ("passing yards", "pass yards", "pass yds"),
                            ("PassingYards",), 235.0, 35.0, 60.0),
                _continuous("rushing yards", ("rushing yards", "rush yards", "rush yds"),
                            ("RushingYards",), 68.0, 18.0, 28.0),
                _continuous("receiving yards", ("receiving yards", "rec yards", "rec yds"),
                            ("ReceivingYards",), 48.0, 15.0, 25.0),
                _continuous("completions", ("completions", "completion", "comp"),
                            ("PassingCompletions",), 22.0, 3.5, 5.0),
                _continuous("attempts", ("pass attempts", "attempts", "att"),
                            ("PassingAttempts",), 34.0, 4.5, 6.0),
                _count("passing touchdowns", ("passing touchdowns", "passing tds", "pass tds"),
                       ("PassingTouchdowns",), 1.5, floor=0.8),
                _count("touchdowns", ("touchdowns", "touchdown", "td", "tds"),
                       ("RushingTouchdowns", "ReceivingTouchdowns"), 1.2, floor=0.6, sum_fields=True),
                _count("receptions", ("receptions", "reception", "catches", "rec"), ("Receptions",), 4.5),
                _count("interceptions", ("interceptions", "interception", "int", "ints"),
                       ("PassingInterceptions", "Interceptions"), 0.8, floor=0.5),
                _count("field goals", ("field goals", "field goal", "fg"), ("FieldGoalsMade",), 1.8, floor=0.8),
            ),
            odds_api_sport_key="americanfootball_nfl",
        )

    # ------------------------------------------------------------------ #
    #  Convenience accessors                                               #
    # ------------------------------------------------------------------ #

    def stat_for(self, statistic_line: str) -> Optional[StatSpec]:
        """Select the :class:`StatSpec` named by a free-text proposition.

        The longest matching keyword wins, so "passing touchdowns" beats
        "touchdowns" and "earned runs" beats "runs".
        """
        text = str(statistic_line or "").lower()
        tokens = set(re.findall(r"[a-z0-9\-]+", text))
        best: Optional[StatSpec] = None
        best_len = 0
        for spec in self.stats:
            for keyword in spec.keywords:
                if len(keyword) <= _ABBREVIATION_MAX_LEN:
                    hit = keyword in tokens
                else:
                    hit = keyword in text
                if hit and len(keyword) > best_len:
                    best, best_len = spec, len(keyword)
        return best

    def season_for(self, day: date) -> int:
        """Provider season label for a calendar date.

        NBA seasons are labelled by the year they end (a November 2024 game
        belongs to season 2025).  NFL seasons are labelled by the year they
        start, so January and February games belong to the previous year.
        """
        if self.sport_id == SPORT_NBA:
            return day.year + 1 if day.month >= 10 else day.year
        if self.sport_id == SPORT_NFL:
            return day.year if day.month >= 3 else day.year - 1
        return day.year

    def __repr__(self) -> str:
        return (
            f"SportConfig(sport_id={self.sport_id!r}, "
            f"lookback={self.lookback_weeks if self.organized_by_week else self.lookback_days}"
            f"{'w' if self.organized_by_week else 'd'}, "
            f"target_sample={self.target_sample})"
        )


_REGISTRY = {
    SPORT_NBA: SportConfig.nba,
    SPORT_WNBA: SportConfig.wnba,
    SPORT_MLB: SportConfig.mlb,
    SPORT_NFL: SportConfig.nfl,
}


def get_sport_config(sport: str) -> Optional[SportConfig]:
    """Return the configuration for a sport code, or ``None`` if unsupported."""
    factory = _REGISTRY.get(str(sport or "").strip().upper())
    return factory() if factory else None


def infer_nfl_season_week(day: date) -> Tuple[int, int]:
    """Best-effort ``(season, week)`` for an NFL date without the provider.

    Week 1 starts on the first Thursday of September; the result is clamped
    to weeks 1-22 so preseason and playoff dates still map somewhere sane.
    """
    season = day.year if day.month >= 3 else day.year - 1
    kickoff = date(season, 9, 1)
    while kickoff.weekday() != 3:
        kickoff += timedelta(days=1)
    week = (day - kickoff).days // 7 + 1
    return season, max(1, min(22, week))
