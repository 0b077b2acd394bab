"""
Model / market probability fusion.

The fused probability is a fixed-weight convex combination::

    fused = w_model · model + w_market · market + w_sharp · (0.5 + sharp_signal)

scaled by a calibration factor and clamped to ``[0, 1]``.  The market weight
dominates because a liquid two-sided price is the best single estimate of
the true probability; the model only tilts it.  Without a market price the
fused probability is the model probability.

Weights are validated at construction: each must be non-negative and the
three must sum to 1.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from propedge.core.odds_math import remove_vig_proportional, safe_implied_prob

logger = logging.getLogger(__name__)

#: Absolute sharp signal is capped so a single sharp quote cannot swing the
#: sharp term outside ``[0.45, 0.55]``.
MAX_SHARP_SIGNAL = 0.05


@dataclass(frozen=True)
class FusionWeights:
    model: float
    market: float
    sharp: float

    def __post_init__(self):
        for name in ("model", "market", "sharp"):
            if getattr(self, name) < 0:
                raise ValueError(f"Fusion weight {name} must be non-negative")
        total = self.model + self.market + self.sharp
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Fusion weights must sum to 1.0, got {total:.6f}")

    @classmethod
    def props(cls) -> "FusionWeights":
        return cls(model=0.35, market=0.55, sharp=0.10)

    @classmethod
    def moneylines(cls) -> "FusionWeights":
        return cls(model=0.25, market=0.65, sharp=0.10)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def fuse(
    model_prob: float,
    market_prob: Optional[float],
    weights: FusionWeights,
    sharp_signal: float = 0.0,
    calibration: float = 1.0,
) -> float:
    """Blend model and market probability for one side."""
    if not math.isfinite(model_prob):
        model_prob = 0.5
    if market_prob is None or not math.isfinite(market_prob):
        return _clamp01(model_prob * calibration)
    sharp = max(-MAX_SHARP_SIGNAL, min(MAX_SHARP_SIGNAL, sharp_signal))
    base = (
        weights.model * model_prob
        + weights.market * market_prob
        + weights.sharp * (0.5 + sharp)
    )
    return _clamp01(base * calibration)


def market_pair(
    over_price: Optional[float],
    under_price: Optional[float],
) -> Optional[Tuple[float, float]]:
    """No-vig (over, under) probabilities from a two-sided quote.

    With only one side quoted the raw implied probability of that side and
    its complement are used.  ``None`` when neither side is usable.
    """
    p_over = safe_implied_prob(over_price)
    p_under = safe_implied_prob(under_price)
    if p_over is not None and p_under is not None:
        return remove_vig_proportional(over_price, under_price)
    if p_over is not None:
        return p_over, 1.0 - p_over
    if p_under is not None:
        return 1.0 - p_under, p_under
    return None
