"""Decision labels and stake sizing: the single source of truth.

All functions here are **pure**: no I/O, no logging.

1. :func:`classify_confidence` maps a confidence percentage to a label.
2. :func:`suggested_stake` converts confidence to stake units, with the
   house-bias penalty.
3. :func:`kelly_fraction` is the fractional Kelly stake reported as a
   driver when a price is known; it never overrides the unit stake.

Design decisions
----------------
* The unit stake is linear above the LEAN threshold: 65% → 1 unit,
  100% → 5 units, rounded to the nearest half unit.  Anything below LEAN
  stakes nothing.
* A house-bias magnitude of 0.05 or more halves the stake.  The halving is
  applied after the ``[1, 5]`` clamp so the penalised range is
  ``[0.5, 2.5]``.

Run tests with::

    pytest tests/test_staking.py -v
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LOCK: Final[str] = "LOCK"
STRONG_LEAN: Final[str] = "STRONG_LEAN"
LEAN: Final[str] = "LEAN"
LOW_CONFIDENCE: Final[str] = "OVER/UNDER (Low Confidence)"
PASS: Final[str] = "PASS"
ERROR: Final[str] = "ERROR"

#: Confidence thresholds, in percent.
LOCK_THRESHOLD: Final[float] = 70.0
STRONG_LEAN_THRESHOLD: Final[float] = 67.5
LEAN_THRESHOLD: Final[float] = 65.0
LOW_CONFIDENCE_THRESHOLD: Final[float] = 55.0

MIN_STAKE_UNITS: Final[float] = 1.0
MAX_STAKE_UNITS: Final[float] = 5.0

#: House-bias magnitude at which the stake is halved.
BIAS_PENALTY_THRESHOLD: Final[float] = 0.05

#: Fractional Kelly divisor and cap for the reported Kelly driver.
KELLY_DIVISOR: Final[float] = 4.0
MAX_KELLY_FRACTION: Final[float] = 0.05


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_confidence(confidence_pct: float, low_confidence_band: bool = True) -> str:
    """Map a confidence percentage to a decision label.

    The low-confidence band only exists for over/under picks; moneylines
    pass ``low_confidence_band=False`` and drop straight to PASS below LEAN.

    Examples::

        classify_confidence(72.0) → "LOCK"
        classify_confidence(66.0) → "LEAN"
        classify_confidence(58.0) → "OVER/UNDER (Low Confidence)"
        classify_confidence(51.0) → "PASS"
    """
    if confidence_pct >= LOCK_THRESHOLD:
        return LOCK
    if confidence_pct >= STRONG_LEAN_THRESHOLD:
        return STRONG_LEAN
    if confidence_pct >= LEAN_THRESHOLD:
        return LEAN
    if low_confidence_band and confidence_pct >= LOW_CONFIDENCE_THRESHOLD:
        return LOW_CONFIDENCE
    return PASS


# ---------------------------------------------------------------------------
# Stake sizing
# ---------------------------------------------------------------------------


def suggested_stake(confidence_pct: float, house_bias: float = 0.0) -> float:
    """Stake in units for a confidence percentage.

    Args:
        confidence_pct: Final confidence in ``[0, 100]``.
        house_bias: Aggregate house-bias magnitude from the analyzer.

    Returns:
        ``0.0`` below :data:`LEAN_THRESHOLD`; otherwise a half-unit multiple
        in ``[1, 5]``, halved when ``house_bias >= 0.05``.
    """
    if confidence_pct < LEAN_THRESHOLD:
        return 0.0
    span = 100.0 - LEAN_THRESHOLD
    raw = MIN_STAKE_UNITS + (confidence_pct - LEAN_THRESHOLD) / span * (MAX_STAKE_UNITS - MIN_STAKE_UNITS)
    units = round(raw * 2.0) / 2.0
    units = min(MAX_STAKE_UNITS, max(MIN_STAKE_UNITS, units))
    if house_bias >= BIAS_PENALTY_THRESHOLD:
        units = units / 2.0
    return units


def kelly_fraction(win_prob: float, decimal_odds: float, *, divisor: float = KELLY_DIVISOR) -> float:
    """Fractional Kelly stake as a share of bankroll.

    ``f* = (b·p − q) / b`` with ``b = decimal_odds − 1``, divided by
    ``divisor`` and capped at :data:`MAX_KELLY_FRACTION`.  Returns 0.0 for
    negative edges or unusable odds.
    """
    b = decimal_odds - 1.0
    if b <= 0 or not (0.0 < win_prob < 1.0):
        return 0.0
    full = (b * win_prob - (1.0 - win_prob)) / b
    if full <= 0:
        return 0.0
    return min(MAX_KELLY_FRACTION, full / divisor)
