"""
Player proposition evaluation.

Pipeline
--------
Validate → Collect → Score → Gate → Classify → Stake

Each stage takes an immutable :class:`EvaluationContext` and returns a new
one via :func:`dataclasses.replace`; a stage that decides the outcome sets
``terminal`` and the remaining stages are skipped.  Nothing is stored on
the model between calls, so one :class:`PropEdgeModel` serves every request.

Safety gate
-----------
If no provider endpoint contributed data, the recent sample is smaller than
``min_sample_size``, or the line could not be parsed, the decision is forced
to PASS and confidence capped at 49.9 regardless of the computed
probability.  Synthetic confidence is never presented as signal.

Failure policy
--------------
Missing inputs return a PASS at 50 with ``MISSING_<FIELD>`` flags.  Any
other exception inside the pipeline is caught in :meth:`PropEdgeModel.evaluate`
and returned as an ERROR decision with confidence 0 and flag
``FATAL_ERROR``; the model never raises to its caller.
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from propedge.core.distributions import over_prob
from propedge.core.odds_math import american_to_decimal
from propedge.core.result import ErrorKind
from propedge.core.sport_config import SUPPORTED_SPORTS, get_sport_config
from propedge.core.staking import (
    ERROR,
    PASS,
    classify_confidence,
    kelly_fraction,
    suggested_stake,
)
from propedge.services.clv import DEFAULT_NEUTRAL_BAND, CLVResult, compute_clv
from propedge.services.features import SOURCE_DEFAULT, FeatureCollector, FeatureSet
from propedge.services.house_bias import HouseBiasReport, analyze_house_bias
from propedge.services.market import FusionWeights, fuse, market_pair

logger = logging.getLogger(__name__)

GATE_CONFIDENCE_CAP = 49.9
VALIDATION_CONFIDENCE = 50.0

OVER = "OVER"
UNDER = "UNDER"

# Standalone numbers only, so "3PT" or "3PM" in a stat name is not the line.
# A bare o/u prefix ("o6.5") is allowed.
_LINE_RE = re.compile(r"(?<![A-Za-z0-9.])[oOuU]?(-?\d+(?:\.\d+)?)(?![A-Za-z0-9]|\.\d)")


def parse_line(statistic_line: str) -> float:
    """Last standalone number of a free-text line, NaN when there is none.

    ``"Points 23.5"`` → ``23.5``; ``"3PT Made 2.5"`` → ``2.5``;
    ``"Strikeouts"`` → ``nan``
    """
    matches = _LINE_RE.findall(str(statistic_line or ""))
    return float(matches[-1]) if matches else float("nan")


def _finite_or_none(x: Optional[float], digits: int = 4) -> Optional[float]:
    if x is None or not math.isfinite(x):
        return None
    return round(x, digits)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PropInput:
    """Validated-shape request as seen by the core."""

    sport: str
    subject_name: str
    statistic_line: str
    opponent: Optional[str] = None
    event_start: Optional[datetime] = None
    current_price: Optional[float] = None
    opening_price: Optional[float] = None
    over_price: Optional[float] = None
    under_price: Optional[float] = None


@dataclass(frozen=True)
class EvaluationResult:
    """Terminal artifact of one evaluation; never mutated after construction."""

    subject_name: str
    statistic_line: str
    decision: str
    suggestion: str
    final_confidence_percent: float
    suggested_stake_units: float
    top_drivers: Tuple[str, ...] = ()
    flags: Tuple[str, ...] = ()
    raw_numbers: Dict[str, Any] = field(default_factory=dict)
    clv: Optional[CLVResult] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subjectName": self.subject_name,
            "statisticLine": self.statistic_line,
            "decision": self.decision,
            "suggestion": self.suggestion,
            "finalConfidencePercent": self.final_confidence_percent,
            "suggestedStakeUnits": self.suggested_stake_units,
            "topDrivers": list(self.top_drivers),
            "flags": list(self.flags),
            "rawNumbers": dict(self.raw_numbers),
            "clv": self.clv.to_dict() if self.clv else None,
            "meta": dict(self.meta),
        }


def error_result(subject_name: Any, statistic_line: Any, suggestion: str, exc: Exception) -> EvaluationResult:
    """ERROR decision returned in place of an exception."""
    return EvaluationResult(
        subject_name=str(subject_name or ""),
        statistic_line=str(statistic_line or ""),
        decision=ERROR,
        suggestion=suggestion,
        final_confidence_percent=0.0,
        suggested_stake_units=0.0,
        flags=(ErrorKind.FATAL_ERROR.value,),
        meta={"error": type(exc).__name__, "errorKinds": [ErrorKind.FATAL_ERROR.value]},
    )


@dataclass(frozen=True)
class EvaluationContext:
    """State threaded through the pipeline stages."""

    prop: PropInput
    line: float = float("nan")
    event_date: Optional[date] = None
    features: Optional[FeatureSet] = None
    distribution: Optional[str] = None
    model_prob: float = 0.5
    bias: Optional[HouseBiasReport] = None
    market: Optional[Tuple[float, float]] = None
    fused_over: float = 0.5
    fused_under: float = 0.5
    suggestion: str = UNDER
    confidence: float = 50.0
    decision: str = PASS
    stake: float = 0.0
    clv: Optional[CLVResult] = None
    flags: Tuple[str, ...] = ()
    drivers: Tuple[str, ...] = ()
    terminal: bool = False

    def flagged(self, *tags: str) -> Tuple[str, ...]:
        return self.flags + tuple(t for t in tags if t not in self.flags)


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class PropEdgeModel:
    """
    Player-prop evaluator.

    Conservative by construction: every sub-failure degrades the data source
    rather than aborting, and the safety gate refuses to rate a prop without
    a real recent sample.
    """

    def __init__(
        self,
        collector: FeatureCollector,
        min_sample_size: int = 3,
        calibration_factor: float = 1.0,
        clv_neutral_band: float = DEFAULT_NEUTRAL_BAND,
        weights: Optional[FusionWeights] = None,
        today: Callable[[], date] = lambda: datetime.now(timezone.utc).date(),
    ):
        self.collector = collector
        self.min_sample_size = min_sample_size
        self.calibration_factor = calibration_factor
        self.clv_neutral_band = clv_neutral_band
        self.weights = weights or FusionWeights.props()
        self.today = today

    def evaluate(self, prop: PropInput) -> EvaluationResult:
        """Run the full pipeline.  Never raises."""
        try:
            ctx = EvaluationContext(prop=prop)
            for stage in (self._validate, self._collect, self._score,
                          self._gate, self._classify, self._stake):
                ctx = stage(ctx)
                if ctx.terminal:
                    break
            return self._result(ctx)
        except Exception as e:
            logger.error("Prop evaluation failed for %r: %s", getattr(prop, "subject_name", None),
                         e, exc_info=True)
            return error_result(
                getattr(prop, "subject_name", ""), getattr(prop, "statistic_line", ""), UNDER, e,
            )

    # -----------------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------------

    def _validate(self, ctx: EvaluationContext) -> EvaluationContext:
        p = ctx.prop
        missing = []
        if not (p.sport or "").strip():
            missing.append("MISSING_SPORT")
        if not (p.subject_name or "").strip():
            missing.append("MISSING_SUBJECT")
        if not (p.statistic_line or "").strip():
            missing.append("MISSING_STATISTIC_LINE")
        if not missing and p.sport.strip().upper() not in SUPPORTED_SPORTS:
            missing.append("INVALID_SPORT")

        if missing:
            logger.info("Rejected prop request: %s", ", ".join(missing))
            return replace(
                ctx,
                flags=ctx.flagged(*missing),
                confidence=VALIDATION_CONFIDENCE,
                decision=PASS,
                terminal=True,
            )

        prop = replace(p, sport=p.sport.strip().upper(), subject_name=p.subject_name.strip())
        line = parse_line(prop.statistic_line)
        event_date = prop.event_start.date() if prop.event_start else self.today()
        flags = ctx.flags if math.isfinite(line) else ctx.flagged("LINE_UNPARSEABLE")
        return replace(ctx, prop=prop, line=line, event_date=event_date, flags=flags)

    def _collect(self, ctx: EvaluationContext) -> EvaluationContext:
        p = ctx.prop
        features = self.collector.collect(p.sport, p.subject_name, p.statistic_line, ctx.event_date)
        tags = []
        if features.stat_key is None:
            tags.append("UNSUPPORTED_STATISTIC")
        if ErrorKind.AMBIGUOUS_MATCH in features.error_kinds:
            tags.append(ErrorKind.AMBIGUOUS_MATCH.value)
        return replace(ctx, features=features, flags=ctx.flagged(*tags))

    def _score(self, ctx: EvaluationContext) -> EvaluationContext:
        p, f = ctx.prop, ctx.features
        spec = get_sport_config(p.sport).stat_for(p.statistic_line)
        drivers = []

        if spec is None:
            model = 0.5
            distribution = None
        else:
            model = over_prob(spec, f.used_average, f.variance, ctx.line)
            distribution = spec.distribution
            drivers.append(
                f"{distribution.title()} P(over {ctx.line:g}) = {model:.3f} "
                f"from average {f.used_average:.2f} ({f.data_source})"
            )

        bias = analyze_house_bias(f.used_average, ctx.line, f.recent_sample)
        adjusted = bias.apply_to(model)
        if bias.triggered:
            drivers.append(f"House bias {bias.bias:.2f}: {', '.join(bias.signals)}")

        market = market_pair(p.over_price, p.under_price)
        if market is not None:
            fused_over = fuse(adjusted, market[0], self.weights, calibration=self.calibration_factor)
            fused_under = fuse(1.0 - adjusted, market[1], self.weights, calibration=self.calibration_factor)
            drivers.append(f"Market no-vig over {market[0]:.3f} / under {market[1]:.3f}")
        else:
            fused_over = max(0.0, min(1.0, adjusted * self.calibration_factor))
            fused_under = max(0.0, min(1.0, (1.0 - adjusted) * self.calibration_factor))

        suggestion = OVER if fused_over >= fused_under else UNDER
        fused = fused_over if suggestion == OVER else fused_under
        confidence = round(fused * 100.0, 1)

        if f.sample_size:
            drivers.append(f"Recent sample {f.sample_size} games, mean {sum(f.recent_sample) / f.sample_size:.2f}")
        if f.exponential_average is not None:
            drivers.append(f"Recency-weighted average {f.exponential_average:.2f}")
        if f.season_average is not None:
            drivers.append(f"Season average {f.season_average:.2f}")

        side_price = p.over_price if suggestion == OVER else p.under_price
        if side_price:
            try:
                kelly = kelly_fraction(fused, american_to_decimal(side_price))
                if kelly > 0:
                    drivers.append(f"Quarter-Kelly {kelly * 100:.1f}% of bankroll at {side_price:+g}")
            except ValueError:
                logger.debug("Skipping Kelly driver: unusable price %r", side_price)

        clv = compute_clv(p.opening_price, p.current_price, self.clv_neutral_band)
        if clv is not None:
            drivers.append(f"CLV {clv.percent:+.2f}% ({clv.favorability})")

        return replace(
            ctx,
            distribution=distribution,
            model_prob=model,
            bias=bias,
            market=market,
            fused_over=fused_over,
            fused_under=fused_under,
            suggestion=suggestion,
            confidence=confidence,
            clv=clv,
            drivers=ctx.drivers + tuple(drivers),
            flags=ctx.flagged(*bias.signals),
        )

    def _gate(self, ctx: EvaluationContext) -> EvaluationContext:
        f = ctx.features
        reasons = []
        if not f.used_endpoints or f.data_source == SOURCE_DEFAULT:
            reasons.append("NO_REAL_DATA")
        if f.sample_size < self.min_sample_size:
            reasons.append(ErrorKind.INSUFFICIENT_SAMPLE.value)
        if not math.isfinite(ctx.line):
            reasons.append("LINE_UNPARSEABLE")
        if not reasons:
            return ctx

        logger.info("Safety gate forced PASS for %r: %s", ctx.prop.subject_name, ", ".join(reasons))
        return replace(
            ctx,
            decision=PASS,
            confidence=min(ctx.confidence, GATE_CONFIDENCE_CAP),
            stake=0.0,
            flags=ctx.flagged(*reasons),
            terminal=True,
        )

    def _classify(self, ctx: EvaluationContext) -> EvaluationContext:
        return replace(ctx, decision=classify_confidence(ctx.confidence))

    def _stake(self, ctx: EvaluationContext) -> EvaluationContext:
        bias = ctx.bias.bias if ctx.bias else 0.0
        return replace(ctx, stake=suggested_stake(ctx.confidence, bias))

    # -----------------------------------------------------------------------
    # Output
    # -----------------------------------------------------------------------

    def _result(self, ctx: EvaluationContext) -> EvaluationResult:
        f = ctx.features
        raw: Dict[str, Any] = {}
        meta: Dict[str, Any] = {}

        if f is not None:
            fused = ctx.fused_over if ctx.suggestion == OVER else ctx.fused_under
            market = None
            if ctx.market is not None:
                market = ctx.market[0] if ctx.suggestion == OVER else ctx.market[1]
            raw = {
                "usedAverage": _finite_or_none(f.used_average),
                "line": _finite_or_none(ctx.line),
                "sampleSize": f.sample_size,
                "variance": _finite_or_none(f.variance),
                "modelProbability": _finite_or_none(ctx.model_prob),
                "marketProbability": _finite_or_none(market),
                "fusedProbability": _finite_or_none(fused),
                "houseBias": ctx.bias.bias if ctx.bias else 0.0,
                "deltaPercent": _finite_or_none(ctx.bias.delta_percent, 2) if ctx.bias else None,
                "distribution": ctx.distribution,
            }
            meta = {
                "dataSource": f.data_source,
                "usedEndpoints": list(f.used_endpoints),
                "matchedName": f.matched_name,
                "filteredCount": f.filtered_count,
                "recentSample": list(f.recent_sample),
                "seasonAverage": _finite_or_none(f.season_average),
                "exponentialAverage": _finite_or_none(f.exponential_average),
                "errorKinds": [k.value for k in f.error_kinds],
            }
        else:
            meta = {"dataSource": "validation", "errorKinds": [ErrorKind.INVALID_INPUT.value]}

        return EvaluationResult(
            subject_name=ctx.prop.subject_name,
            statistic_line=ctx.prop.statistic_line,
            decision=ctx.decision,
            suggestion=ctx.suggestion,
            final_confidence_percent=ctx.confidence,
            suggested_stake_units=ctx.stake,
            top_drivers=ctx.drivers,
            flags=ctx.flags,
            raw_numbers=raw,
            clv=ctx.clv,
            meta=meta,
        )
