"""
Feature collection for player propositions.

The collector walks backward from the event date (or, for the NFL, from the
provider's current week) and assembles a most-recent-first sample of the
requested statistic, then attaches the player's season ratio and a
league-wide ratio as fallbacks.

Participation filter
--------------------
A row is only sampled when it represents a genuine appearance.  Pitching
stats require some evidence the player pitched (innings, outs, batters
faced, games pitched or started, or a pitcher position tag); basketball
rows need positive minutes when the field is present; football rows need
``Played`` when the field is present.  Excluded rows, and rows whose
statistic cannot be extracted, are counted in ``filtered_count`` so callers
can tell "no data" from "data existed but was excluded".

Data source
-----------
``used_average`` comes from the first available level and the tag records
which one won::

    sportsdata            recent-sample mean
    league_average        player's season ratio from the league season feed
    statistical_baseline  league-wide per-game ratio from that feed
    hard_default          SportConfig baseline (no provider data at all)

Collection never raises; provider failures are recorded as error kinds and
the tag degrades.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from propedge.core.distributions import (
    DEFAULT_DECAY,
    exponential_average,
    safe_variance,
    sample_mean,
)
from propedge.core.result import ErrorKind, Result, first_success
from propedge.core.sport_config import (
    SPORT_MLB,
    SportConfig,
    StatSpec,
    get_sport_config,
)
from propedge.services.identity import DEFAULT_THRESHOLD, ResolvedIdentity, resolve
from propedge.services.stats_provider import SportsDataClient

logger = logging.getLogger(__name__)

SOURCE_SPORTSDATA = "sportsdata"
SOURCE_SEASON = "league_average"
SOURCE_LEAGUE = "statistical_baseline"
SOURCE_DEFAULT = "hard_default"

#: Recent samples are reported (and modelled) up to this length.
MAX_SAMPLE_LENGTH = 15

#: Stop scanning after this many consecutive provider failures so an outage
#: costs a few timeouts instead of a whole lookback window of them.
MAX_CONSECUTIVE_FAILURES = 3

#: Derived strikeouts (K/9 × IP / 9) need a start or at least this many innings.
MIN_DERIVED_K_INNINGS = 3.0

_EXPLICIT_K_FIELDS = ("PitchingStrikeouts", "PitcherStrikeouts", "StrikeoutsPitched")
_K9_FIELDS = ("PitchingStrikeoutsPerNine", "StrikeoutsPerNine", "KsPerNine")
_IP_FIELDS = ("PitchingInningsPitchedDecimal", "InningsPitchedDecimal", "InningsPitched")


# ---------------------------------------------------------------------------
# Row extraction
# ---------------------------------------------------------------------------


def _num(value: Any) -> Optional[float]:
    """Finite float or ``None``; booleans and blanks are not numbers."""
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def _first_num(row: Dict[str, Any], keys: Sequence[str]) -> Optional[float]:
    for key in keys:
        x = _num(row.get(key))
        if x is not None:
            return x
    return None


def mlb_strikeouts(row: Dict[str, Any]) -> Optional[float]:
    """Pitcher strikeouts for one game row.

    Explicit per-game fields win.  Only when all are absent is the value
    derived from K/9 × IP / 9, and only for a start or an outing of at least
    :data:`MIN_DERIVED_K_INNINGS`, so a two-out relief appearance is never
    inflated into a starter's strikeout total.
    """
    explicit = _first_num(row, _EXPLICIT_K_FIELDS)
    if explicit is not None:
        return explicit

    k9 = _first_num(row, _K9_FIELDS)
    ip = _first_num(row, _IP_FIELDS)
    if k9 is None or ip is None or ip <= 0:
        return None
    starts = _first_num(row, ("GamesStarted", "GS")) or 0.0
    if starts > 0 or ip >= MIN_DERIVED_K_INNINGS:
        return k9 * ip / 9.0
    return None


def extract_value(sport: str, spec: StatSpec, row: Dict[str, Any]) -> Optional[float]:
    if sport == SPORT_MLB and spec.key == "strikeouts":
        return mlb_strikeouts(row)
    if spec.sum_fields:
        parts = [_num(row.get(f)) for f in spec.fields]
        present = [p for p in parts if p is not None]
        return sum(present) if present else None
    return _first_num(row, spec.fields)


def pick_value(sport: str, statistic: str, row: Dict[str, Any]) -> Optional[float]:
    """Per-game value of ``statistic`` in a provider row, or ``None``.

    Total over every input: unknown sports, unknown statistics and rows
    missing the field all return ``None``.
    """
    cfg = get_sport_config(sport)
    if cfg is None or not isinstance(row, dict):
        return None
    spec = cfg.stat_for(statistic)
    if spec is None:
        return None
    return extract_value(cfg.sport_id, spec, row)


def pitched(row: Dict[str, Any]) -> bool:
    """Pitching participation filter for MLB rows."""
    ip = _first_num(row, _IP_FIELDS) or 0.0
    outs = _first_num(row, ("PitchingOuts", "OutsPitched")) or 0.0
    batters = _first_num(row, ("PitchingBattersFaced", "BattersFaced")) or 0.0
    games_pitched = _first_num(row, ("GamesPitched",)) or 0.0
    starts = _first_num(row, ("GamesStarted",)) or 0.0
    position = str(row.get("Position") or row.get("PositionCategory") or "").upper()
    return ip > 0 or outs > 0 or batters > 0 or games_pitched > 0 or starts > 0 or "P" in position


def participated(cfg: SportConfig, spec: StatSpec, row: Dict[str, Any]) -> bool:
    """Whether a game row represents a genuine appearance for this statistic."""
    if spec.pitcher_only:
        return pitched(row)
    if cfg.sport_id == SPORT_MLB:
        pa = _num(row.get("PlateAppearances"))
        return pa is None or pa > 0
    if cfg.organized_by_week:
        played = _num(row.get("Played"))
        return played is None or played > 0
    minutes = _num(row.get("Minutes"))
    return minutes is None or minutes > 0


def season_ratio(cfg: SportConfig, spec: StatSpec, row: Dict[str, Any]) -> Optional[float]:
    """Per-game season average: total ÷ starts (pitching) or games, never a raw total."""
    total = _first_num(row, spec.season_fields)
    if total is None:
        return None
    games = _first_num(row, ("Games", "GamesPlayed"))
    denom = games
    if cfg.sport_id == SPORT_MLB and spec.pitcher_only:
        starts = _first_num(row, ("GamesStarted",))
        if starts is not None and starts > 0:
            denom = starts
    if denom is None or denom <= 0:
        return None
    return total / denom


def league_ratio(cfg: SportConfig, spec: StatSpec, rows: Sequence[Dict[str, Any]]) -> Optional[float]:
    """Mean per-game ratio across every qualifying player in a season feed."""
    ratios = []
    for row in rows:
        if spec.pitcher_only and not pitched(row):
            continue
        r = season_ratio(cfg, spec, row)
        if r is not None:
            ratios.append(r)
    if not ratios:
        return None
    return sum(ratios) / len(ratios)


# ---------------------------------------------------------------------------
# Feature set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureSet:
    """Everything the model needs about one player and one statistic.

    Immutable; ``recent_sample`` is most-recent-first.
    """

    recent_sample: Tuple[float, ...]
    season_average: Optional[float]
    league_average: Optional[float]
    used_average: float
    variance: float
    filtered_count: int
    exponential_average: Optional[float]
    data_source: str
    used_endpoints: Tuple[str, ...] = ()
    identity: Optional[ResolvedIdentity] = None
    error_kinds: Tuple[ErrorKind, ...] = ()
    stat_key: Optional[str] = None

    @property
    def sample_size(self) -> int:
        return len(self.recent_sample)

    @property
    def matched_name(self) -> str:
        return self.identity.canonical_name if self.identity else ""


@dataclass
class _Scan:
    """Mutable scratch state local to one :meth:`FeatureCollector.collect` call."""

    endpoints: List[str] = field(default_factory=list)
    errors: List[ErrorKind] = field(default_factory=list)
    identity: Optional[ResolvedIdentity] = None
    values: List[float] = field(default_factory=list)
    filtered: int = 0
    consecutive_failures: int = 0
    offline: bool = False

    def record(self, result: Result) -> None:
        if result.is_ok:
            self.consecutive_failures = 0
            if result.endpoint and result.endpoint not in self.endpoints:
                self.endpoints.append(result.endpoint)
            return
        if result.error not in self.errors:
            self.errors.append(result.error)
        if result.error == ErrorKind.NO_CREDENTIALS:
            self.offline = True
        elif result.error in (ErrorKind.PROVIDER_TIMEOUT, ErrorKind.PROVIDER_ERROR):
            self.consecutive_failures += 1
            if self.consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                logger.warning("Stat provider failing repeatedly; stopping scan early")
                self.offline = True


class FeatureCollector:
    """Builds a :class:`FeatureSet` from the stat provider.

    Provider calls are issued one at a time because each result decides
    whether the next is needed.
    """

    def __init__(
        self,
        client: SportsDataClient,
        match_threshold: float = DEFAULT_THRESHOLD,
        decay: float = DEFAULT_DECAY,
    ):
        self.client = client
        self.match_threshold = match_threshold
        self.decay = decay

    def collect(self, sport: str, subject_name: str, statistic_line: str, event_date: date) -> FeatureSet:
        cfg = get_sport_config(sport)
        spec = cfg.stat_for(statistic_line) if cfg else None
        if cfg is None or spec is None:
            logger.info("No statistic definition for %s %r", sport, statistic_line)
            return FeatureSet(
                recent_sample=(),
                season_average=None,
                league_average=None,
                used_average=float("nan"),
                variance=float("nan"),
                filtered_count=0,
                exponential_average=None,
                data_source=SOURCE_DEFAULT,
                error_kinds=(ErrorKind.INVALID_INPUT,),
            )

        scan = _Scan()

        if cfg.organized_by_week:
            season, week = self._nfl_calendar(cfg, event_date, scan)
        else:
            season, week = cfg.season_for(event_date), None
            self._discover_identity(cfg, subject_name, event_date, scan)

        season_avg, league_avg = self._season_averages(cfg, spec, subject_name, season, scan)

        if cfg.organized_by_week:
            self._scan_weeks(cfg, spec, subject_name, season, week, scan)
        else:
            self._scan_dates(cfg, spec, subject_name, event_date, scan)

        if scan.identity is None and ErrorKind.NO_MATCH not in scan.errors and scan.endpoints:
            scan.errors.append(ErrorKind.NO_MATCH)
        if scan.identity is not None and scan.identity.ambiguous:
            scan.errors.append(ErrorKind.AMBIGUOUS_MATCH)

        sample = tuple(scan.values[:MAX_SAMPLE_LENGTH])
        winner, _ = first_success(
            lambda: self._level(sample_mean(sample) if sample else None, SOURCE_SPORTSDATA),
            lambda: self._level(season_avg, SOURCE_SEASON),
            lambda: self._level(league_avg, SOURCE_LEAGUE),
        )
        if winner.is_ok:
            used_average, data_source = winner.value
        else:
            used_average, data_source = spec.baseline, SOURCE_DEFAULT

        features = FeatureSet(
            recent_sample=sample,
            season_average=season_avg,
            league_average=league_avg,
            used_average=used_average,
            variance=safe_variance(sample, spec),
            filtered_count=scan.filtered,
            exponential_average=exponential_average(sample, self.decay) if sample else None,
            data_source=data_source,
            used_endpoints=tuple(scan.endpoints),
            identity=scan.identity,
            error_kinds=tuple(scan.errors),
            stat_key=spec.key,
        )
        logger.info(
            "Collected %s %s for %r: n=%d filtered=%d source=%s",
            cfg.sport_id, spec.key, subject_name, features.sample_size,
            features.filtered_count, features.data_source,
        )
        return features

    @staticmethod
    def _level(value: Optional[float], tag: str) -> Result[Tuple[float, str]]:
        if value is None or not math.isfinite(value):
            return Result.fail(ErrorKind.NO_DATA, tag)
        return Result.ok((value, tag))

    # -----------------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------------

    def _match(self, name: str, rows: List[Dict], scan: _Scan) -> Optional[ResolvedIdentity]:
        hint = scan.identity.provider_id if scan.identity else None
        result = resolve(name, rows, id_hint=hint, threshold=self.match_threshold)
        if not result.is_ok:
            return None
        if scan.identity is None:
            scan.identity = result.value
        return result.value

    def _discover_identity(self, cfg: SportConfig, name: str, event_date: date, scan: _Scan) -> None:
        """Probe the event date and the days just before it for the player's id."""
        for offset in cfg.identity_probe_days:
            if scan.offline or scan.identity is not None:
                return
            result = self.client.fetch_by_date(cfg.sport_id, event_date + timedelta(days=offset))
            scan.record(result)
            if result.is_ok and result.value:
                self._match(name, result.value, scan)

    def _nfl_calendar(self, cfg: SportConfig, event_date: date, scan: _Scan) -> Tuple[int, int]:
        season_result = self.client.fetch_current_season()
        scan.record(season_result)
        if scan.offline:
            return cfg.season_for(event_date), cfg.default_current_week
        week_result = self.client.fetch_current_week()
        scan.record(week_result)
        season = season_result.unwrap_or(cfg.season_for(event_date))
        week = week_result.unwrap_or(cfg.default_current_week)
        return season, week

    def _season_averages(
        self, cfg: SportConfig, spec: StatSpec, name: str, season: int, scan: _Scan,
    ) -> Tuple[Optional[float], Optional[float]]:
        if scan.offline:
            return None, None
        result = self.client.fetch_season_totals(cfg.sport_id, season)
        scan.record(result)
        if not result.is_ok or not result.value:
            return None, None

        rows = result.value
        season_avg = None
        identity = self._match(name, rows, scan)
        if identity is not None:
            season_avg = season_ratio(cfg, spec, identity.row)
        return season_avg, league_ratio(cfg, spec, rows)

    def _take(self, cfg: SportConfig, spec: StatSpec, name: str, rows: List[Dict], scan: _Scan) -> None:
        identity = self._match(name, rows, scan)
        if identity is None:
            return
        row = identity.row
        if not participated(cfg, spec, row):
            scan.filtered += 1
            return
        value = extract_value(cfg.sport_id, spec, row)
        if value is None:
            scan.filtered += 1
            return
        scan.values.append(value)

    def _scan_dates(self, cfg: SportConfig, spec: StatSpec, name: str, event_date: date, scan: _Scan) -> None:
        for back in range(cfg.lookback_days):
            if scan.offline or len(scan.values) >= cfg.target_sample:
                break
            result = self.client.fetch_by_date(cfg.sport_id, event_date - timedelta(days=back))
            scan.record(result)
            if result.is_ok and result.value:
                self._take(cfg, spec, name, result.value, scan)

    def _scan_weeks(
        self, cfg: SportConfig, spec: StatSpec, name: str, season: int, current_week: int, scan: _Scan,
    ) -> None:
        last_week = max(1, current_week - cfg.lookback_weeks + 1)
        for week in range(current_week, last_week - 1, -1):
            if scan.offline or len(scan.values) >= cfg.target_sample:
                break
            result = self.client.fetch_week(season, week)
            scan.record(result)
            if result.is_ok and result.value:
                self._take(cfg, spec, name, result.value, scan)
