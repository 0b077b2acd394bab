"""Tail probabilities and sample statistics for proposition lines.

All functions are pure.  They never raise on bad numeric input: a
non-finite mean or line yields the uninformative probability 0.5, and every
probability returned is clamped to ``[0, 1]``.

Two tail shapes are supported:

* **Poisson** for rare-event counts (strikeouts, steals, touchdowns).  The
  discrete threshold is ``k = floor(line + 0.5)``, the smallest count that
  clears a half-point line, and the tail is ``P(X >= k)``.
* **Normal** for continuous, higher-mean statistics (points, passing yards).
  The line is shifted by the 0.5 continuity correction and the standard
  deviation is floored so near-zero sample variance cannot produce a tail
  pinned at 0 or 1.
"""

from __future__ import annotations

import math
from typing import Final, Optional, Sequence

import numpy as np
from scipy.stats import norm, poisson

from propedge.core.sport_config import StatSpec

#: Probability returned whenever the inputs carry no information.
NEUTRAL_PROB: Final[float] = 0.5

#: Below this many observations the sample variance is not trusted.
MIN_VARIANCE_SAMPLE: Final[int] = 3

#: Decay applied per game step in :func:`exponential_average`.
DEFAULT_DECAY: Final[float] = 0.85


def _clamp01(p: float) -> float:
    return float(min(1.0, max(0.0, p)))


def _finite(x: Optional[float]) -> bool:
    return x is not None and math.isfinite(x)


def poisson_over_prob(mu: float, line: float) -> float:
    """``P(X > line)`` for ``X ~ Poisson(mu)`` with the half-point threshold.

    Examples::

        poisson_over_prob(7.4, 6.5) → 0.608   # P(X >= 7)
        poisson_over_prob(0.0, 0.5) → 0.0
    """
    if not (_finite(mu) and _finite(line)):
        return NEUTRAL_PROB
    if mu <= 0:
        return 0.0 if line >= 0 else 1.0
    k = math.floor(line + 0.5)
    return _clamp01(poisson.sf(k - 1, mu))


def normal_over_prob(mu: float, sigma: float, line: float, sigma_floor: float = 1.0) -> float:
    """``P(X > line + 0.5)`` for ``X ~ Normal(mu, max(sigma, sigma_floor))``."""
    if not (_finite(mu) and _finite(line)):
        return NEUTRAL_PROB
    if not _finite(sigma) or sigma <= 0:
        sigma = 0.0
    sd = max(sigma, sigma_floor, 1e-9)
    return _clamp01(norm.sf(line + 0.5, loc=mu, scale=sd))


def over_prob(spec: StatSpec, mu: float, variance: float, line: float) -> float:
    """Dispatch to the tail shape configured for the statistic."""
    if spec.is_poisson:
        return poisson_over_prob(mu, line)
    sigma = math.sqrt(variance) if _finite(variance) and variance > 0 else 0.0
    return normal_over_prob(mu, sigma, line, sigma_floor=math.sqrt(spec.variance_floor))


# ---------------------------------------------------------------------------
# Sample statistics
# ---------------------------------------------------------------------------


def sample_mean(values: Sequence[float]) -> float:
    """Arithmetic mean, NaN for an empty sample."""
    if not values:
        return float("nan")
    return float(np.mean(values))


def safe_variance(values: Sequence[float], spec: StatSpec) -> float:
    """Sample variance floored to the statistic's minimum.

    With fewer than :data:`MIN_VARIANCE_SAMPLE` observations the sample
    variance is meaningless and the statistic's default variance is used.
    """
    if len(values) < MIN_VARIANCE_SAMPLE:
        return max(spec.default_variance, spec.variance_floor)
    var = float(np.var(values, ddof=1))
    if not math.isfinite(var):
        return max(spec.default_variance, spec.variance_floor)
    return max(var, spec.variance_floor)


def exponential_average(values: Sequence[float], decay: float = DEFAULT_DECAY) -> float:
    """Recency-weighted mean of a most-recent-first sample.

    Weight of the i-th most recent game is ``decay ** i``.  NaN when empty.
    """
    if not values:
        return float("nan")
    weights = np.power(decay, np.arange(len(values)))
    return float(np.dot(weights, np.asarray(values, dtype=float)) / weights.sum())


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Sample standard deviation over the mean; 0.0 when undefined."""
    if len(values) < 2:
        return 0.0
    mean = float(np.mean(values))
    if mean <= 0:
        return 0.0
    return float(np.std(values, ddof=1)) / mean
