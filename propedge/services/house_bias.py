"""
House-bias (line trap) detection.

A posted line that sits far from a player's form is more often a trap than a
gift.  :func:`analyze_house_bias` inspects four independent signals and sums
their bias increments; :meth:`HouseBiasReport.apply_to` then pulls the model
probability toward 0.5 by that amount.  The adjustment is one-directional:
it can only make the model less confident, never more.

Signals
-------
RECENCY_BIAS_TRAP   last-3 mean > 1.25 × earlier-sample mean AND line > 1.12 × average  (+0.04)
INFLATED_LINE       line more than 18% above the average                           (+0.03)
DEFLATED_LINE       line more than 18% below the average                           (+0.03)
HIGH_VOLATILITY     coefficient of variation of the recent sample > 0.4          (+0.02)

The total is capped at :data:`MAX_BIAS`.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from propedge.core.distributions import coefficient_of_variation

RECENCY_BIAS_TRAP = "RECENCY_BIAS_TRAP"
INFLATED_LINE = "INFLATED_LINE"
DEFLATED_LINE = "DEFLATED_LINE"
HIGH_VOLATILITY = "HIGH_VOLATILITY"

RECENCY_SPIKE_RATIO = 1.25
RECENCY_LINE_RATIO = 1.12
LINE_DELTA_PCT = 18.0
CV_THRESHOLD = 0.4

RECENCY_BIAS = 0.04
LINE_BIAS = 0.03
VOLATILITY_BIAS = 0.02
MAX_BIAS = 0.10


@dataclass(frozen=True)
class HouseBiasReport:
    delta_percent: Optional[float]
    signals: Tuple[str, ...]
    bias: float

    @property
    def triggered(self) -> bool:
        return bool(self.signals)

    def apply_to(self, prob: float) -> float:
        """Move ``prob`` toward 0.5 by ``bias`` without crossing it.

        ``0.62`` with bias ``0.05`` → ``0.57``; ``0.38`` → ``0.43``;
        ``0.52`` → ``0.5``.
        """
        if not math.isfinite(prob):
            return 0.5
        if prob >= 0.5:
            return max(0.5, prob - self.bias)
        return min(0.5, prob + self.bias)


def analyze_house_bias(
    average: float,
    line: float,
    recent_sample: Sequence[float],
) -> HouseBiasReport:
    """Inspect a line against form.

    Args:
        average: Recent-or-season average the line is compared against.
        line: Posted threshold.
        recent_sample: Most-recent-first observations.

    Returns:
        A report with the triggered signal tags and the capped bias.
    """
    signals = []
    bias = 0.0

    delta_pct = None
    if math.isfinite(average) and math.isfinite(line) and average > 0:
        delta_pct = (line - average) / average * 100.0

    if len(recent_sample) > 3 and delta_pct is not None:
        last3 = sum(recent_sample[:3]) / 3.0
        earlier = recent_sample[3:]
        prior = sum(earlier) / len(earlier)
        if prior > 0 and last3 > RECENCY_SPIKE_RATIO * prior and line > RECENCY_LINE_RATIO * average:
            signals.append(RECENCY_BIAS_TRAP)
            bias += RECENCY_BIAS

    if delta_pct is not None:
        if delta_pct > LINE_DELTA_PCT:
            signals.append(INFLATED_LINE)
            bias += LINE_BIAS
        elif delta_pct < -LINE_DELTA_PCT:
            signals.append(DEFLATED_LINE)
            bias += LINE_BIAS

    if coefficient_of_variation(recent_sample) > CV_THRESHOLD:
        signals.append(HIGH_VOLATILITY)
        bias += VOLATILITY_BIAS

    return HouseBiasReport(
        delta_percent=delta_pct,
        signals=tuple(signals),
        bias=round(min(MAX_BIAS, bias), 4),
    )
