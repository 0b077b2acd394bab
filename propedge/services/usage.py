"""
Per-subject usage accounting.

Each subject gets a quota per rolling 30-day period, sized by tier.  The
tracker is consulted before the evaluation core runs; a deny becomes an
HTTP 429 in the API layer.  State is in-memory and per process.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

TIER_LIMITS: Dict[str, int] = {
    "basic": 100,
    "pro": 400,
    "admin": 10000,
}

PERIOD_SECONDS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class UsageDecision:
    allowed: bool
    remaining: int
    limit: int
    reset_at: Optional[float] = None


@dataclass
class _Usage:
    count: int
    period_end: float


class UsageTracker:
    """Thread-safe quota counter keyed by subject id."""

    def __init__(self, limits: Optional[Dict[str, int]] = None,
                 clock: Callable[[], float] = time.time):
        self.limits = dict(limits or TIER_LIMITS)
        self._clock = clock
        self._lock = threading.Lock()
        self._usage: Dict[str, _Usage] = {}

    def check_and_increment(self, subject_id: str, tier: str, cost: int = 1) -> UsageDecision:
        """Consume ``cost`` evaluations if the quota allows it."""
        limit = self.limits.get(tier)
        if not subject_id or limit is None:
            return UsageDecision(allowed=False, remaining=0, limit=0)

        now = self._clock()
        with self._lock:
            usage = self._usage.get(subject_id)
            if usage is None or now > usage.period_end:
                usage = _Usage(count=0, period_end=now + PERIOD_SECONDS)
                self._usage[subject_id] = usage

            if usage.count + cost > limit:
                logger.info("Usage limit reached for %s (%d/%d)", subject_id, usage.count, limit)
                return UsageDecision(
                    allowed=False,
                    remaining=max(0, limit - usage.count),
                    limit=limit,
                    reset_at=usage.period_end,
                )

            usage.count += cost
            return UsageDecision(
                allowed=True,
                remaining=limit - usage.count,
                limit=limit,
                reset_at=usage.period_end,
            )

    def status(self, subject_id: str, tier: str) -> UsageDecision:
        """Current quota without consuming any of it."""
        limit = self.limits.get(tier)
        if not subject_id or limit is None:
            return UsageDecision(allowed=False, remaining=0, limit=0)

        now = self._clock()
        with self._lock:
            usage = self._usage.get(subject_id)
            if usage is None or now > usage.period_end:
                return UsageDecision(allowed=limit > 0, remaining=limit, limit=limit)
            remaining = max(0, limit - usage.count)
            return UsageDecision(
                allowed=remaining > 0,
                remaining=remaining,
                limit=limit,
                reset_at=usage.period_end,
            )

    def reset(self, subject_id: str) -> None:
        with self._lock:
            self._usage.pop(subject_id, None)

    def used(self, subject_id: str) -> int:
        with self._lock:
            usage = self._usage.get(subject_id)
            return usage.count if usage else 0
