"""
Closing Line Value (CLV) calculation service.

CLV is the primary edge-validation metric in sports betting.  A price that
the market later moves toward (the side gets more expensive) means the
bettor transacted at better-than-final odds, which is correlated with
long-term profitability independent of win/loss outcomes.

    edge = current_implied_prob − opening_implied_prob

Positive edge is favorable, negative unfavorable, and anything inside the
symmetric neutral band is neutral.  Either price missing, zero or
non-finite means there is no CLV at all (``None``), never an exception.

Only the bettor's side is known at open and close, so raw implied
probabilities (vig included) are compared.
"""

from dataclasses import dataclass
from typing import Optional

from propedge.core.odds_math import safe_implied_prob

DEFAULT_NEUTRAL_BAND = 0.005

FAVORABLE = "favorable"
UNFAVORABLE = "unfavorable"
NEUTRAL = "neutral"


# ---------------------------------------------------------------------------
# Data container
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CLVResult:
    """All CLV metrics for a single pick."""

    percent: float              # edge × 100
    edge: float                 # current − opening implied probability
    direction: str              # positive | negative | none
    favorability: str           # favorable | unfavorable | neutral
    opening_implied_prob: float
    current_implied_prob: float
    opening_price: float
    current_price: float

    def grade(self) -> str:
        """Human-readable CLV grade for display."""
        if self.edge >= 0.03:
            return "STRONG+"
        elif self.edge >= 0.01:
            return "POSITIVE"
        elif self.edge >= -0.01:
            return "NEUTRAL"
        elif self.edge >= -0.03:
            return "NEGATIVE"
        return "STRONG-"

    def to_dict(self) -> dict:
        return {
            "percent": round(self.percent, 2),
            "edge": round(self.edge, 4),
            "direction": self.direction,
            "favorability": self.favorability,
            "opening_implied_prob": round(self.opening_implied_prob, 4),
            "current_implied_prob": round(self.current_implied_prob, 4),
            "opening_price": self.opening_price,
            "current_price": self.current_price,
            "grade": self.grade(),
        }


def _classify(
    opening_prob: float,
    current_prob: float,
    opening_price: float,
    current_price: float,
    neutral_band: float,
) -> CLVResult:
    edge = current_prob - opening_prob
    if edge > 0:
        direction = "positive"
    elif edge < 0:
        direction = "negative"
    else:
        direction = "none"

    if edge > neutral_band:
        favorability = FAVORABLE
    elif edge < -neutral_band:
        favorability = UNFAVORABLE
    else:
        favorability = NEUTRAL

    return CLVResult(
        percent=edge * 100.0,
        edge=edge,
        direction=direction,
        favorability=favorability,
        opening_implied_prob=opening_prob,
        current_implied_prob=current_prob,
        opening_price=float(opening_price),
        current_price=float(current_price),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_clv(
    opening_price: Optional[float],
    current_price: Optional[float],
    neutral_band: float = DEFAULT_NEUTRAL_BAND,
) -> Optional[CLVResult]:
    """
    CLV from the bettor's side only.

    Args:
        opening_price:  American price when the pick was made.
        current_price:  Current or closing American price of the same side.
        neutral_band:   Symmetric band around zero treated as neutral.

    Returns:
        :class:`CLVResult`, or ``None`` when either price is unusable.

    Example::

        compute_clv(-110, -130)
        # opening 0.5238, current 0.5652 → edge ≈ +0.041, favorable
    """
    opening_prob = safe_implied_prob(opening_price)
    current_prob = safe_implied_prob(current_price)
    if opening_prob is None or current_prob is None:
        return None
    return _classify(opening_prob, current_prob, opening_price, current_price, neutral_band)

