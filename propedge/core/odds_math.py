"""Fundamental odds mathematics: the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or models.

The pillars exposed are:

1. **Odds conversion**: American ↔ decimal ↔ implied probability.
2. **Inverse conversion**: implied probability → fair American price.
3. **Vig removal**: proportional normalisation of a two-sided market.

Design decisions
----------------
* Sportsbook feeds return integer American odds.  Any non-zero finite value
  is accepted by :func:`implied_prob`; the round trip through
  :func:`prob_to_american` is exact (within rounding) for every real price,
  i.e. ``|odds| ≥ 100``.
* Two-sided prop markets (over/under) are de-vigged by proportional
  normalisation so the two sides sum to exactly 1.0.  The books quoting
  player props rarely show the favourite-longshot skew that would justify a
  heavier method on a near-even line.
* :func:`safe_implied_prob` is the degrade-locally variant used on request
  payloads: a missing, zero, or non-finite price yields ``None`` instead of
  an exception.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final, Optional, Tuple

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Probability bounds used by the inverse conversion.  Outside this range
#: the fair American price is unbounded and carries no information.
_MIN_PROB: Final[float] = 1e-6
_MAX_PROB: Final[float] = 1.0 - 1e-6


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def implied_prob(american: int | float) -> float:
    """Raw implied probability from American odds (vig-inclusive).

    ``p = 100 / (o + 100)`` for positive odds, ``|o| / (|o| + 100)`` for
    negative odds.

    Args:
        american: American odds.  Sign convention: negative = favourite,
            positive = underdog.

    Returns:
        Implied probability in ``(0, 1)``.

    Raises:
        ValueError: If ``american`` is zero or not finite.

    Examples::

        implied_prob(+120) → 0.4545
        implied_prob(-150) → 0.6000
        implied_prob(-110) → 0.5238
    """
    value = float(american)
    if not math.isfinite(value) or value == 0:
        raise ValueError(f"Invalid American odds {american!r}: must be non-zero and finite.")
    if value > 0:
        return 100.0 / (value + 100.0)
    return abs(value) / (abs(value) + 100.0)


def safe_implied_prob(american: Optional[int | float]) -> Optional[float]:
    """Like :func:`implied_prob` but returns ``None`` for unusable prices."""
    if american is None:
        return None
    try:
        return implied_prob(american)
    except (TypeError, ValueError):
        return None


def american_to_decimal(american: int | float) -> float:
    """Convert American odds to decimal (European) format.

    Decimal odds represent the total payout per unit staked, **including**
    the return of the stake itself::

        american_to_decimal(-110) → 1.9091
        american_to_decimal(+150) → 2.5000

    Raises:
        ValueError: If ``american`` is zero or not finite.
    """
    return 1.0 / implied_prob(american)


def prob_to_american(prob: float) -> float:
    """Fair American price for a win probability (inverse of :func:`implied_prob`).

    Returns a float so callers can compare against the source price within
    their own rounding tolerance.  Even money (0.5) maps to ``+100``.

    Raises:
        ValueError: If ``prob`` is not strictly inside ``(0, 1)``.
    """
    if not (_MIN_PROB <= prob <= _MAX_PROB):
        raise ValueError(f"Probability {prob!r} must be inside (0, 1).")
    if prob > 0.5:
        return -100.0 * prob / (1.0 - prob)
    return 100.0 * (1.0 - prob) / prob


# ---------------------------------------------------------------------------
# Vig removal
# ---------------------------------------------------------------------------


def normalize_prob_pair(prob_a: float, prob_b: float) -> Tuple[float, float]:
    """Normalise two raw implied probabilities so they sum to 1.0."""
    total = prob_a + prob_b
    if not math.isfinite(total) or total <= 0:
        return 0.5, 0.5
    return prob_a / total, prob_b / total


def remove_vig_proportional(
    odds_a: int | float,
    odds_b: int | float,
) -> Tuple[float, float]:
    """No-vig probabilities for a two-sided market by proportional scaling.

    Args:
        odds_a: American odds for side A (over / home).
        odds_b: American odds for side B (under / away).

    Returns:
        ``(true_prob_a, true_prob_b)`` summing to 1.0.

    Raises:
        ValueError: If either price is zero or not finite.
    """
    return normalize_prob_pair(implied_prob(odds_a), implied_prob(odds_b))
