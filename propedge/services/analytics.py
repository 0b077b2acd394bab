"""
Post-evaluation side effects: the analytics sink and the history writer.

Both run after the response is built (FastAPI ``BackgroundTasks``).  Any
failure here is logged and dropped; it never reaches the caller and never
changes an evaluation result.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests

from propedge.models import EvaluationHistory
from propedge.prop_model import OVER, UNDER, EvaluationResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def pick_label(result: EvaluationResult) -> str:
    return f"{result.subject_name} {result.statistic_line} {result.suggestion}".strip()


def prop_odds_at_pick(result: EvaluationResult, over_price: Optional[float],
                      under_price: Optional[float],
                      opening_price: Optional[float] = None) -> Optional[float]:
    """Price of the side actually suggested; the opening price when that side is unpriced."""
    side_price = None
    if result.suggestion == OVER:
        side_price = over_price
    elif result.suggestion == UNDER:
        side_price = under_price
    return side_price if side_price is not None else opening_price


class AnalyticsSink:
    """Fire-and-forget POST of ``{subjectId, pick, oddsAtPick, clv, timestamp}``."""

    def __init__(self, url: Optional[str], timeout: float = DEFAULT_TIMEOUT):
        self.url = url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def payload(self, subject_id: str, result: EvaluationResult,
                odds_at_pick: Optional[float] = None,
                timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        ts = timestamp or datetime.now(timezone.utc)
        return {
            "subjectId": subject_id,
            "pick": pick_label(result),
            "oddsAtPick": odds_at_pick,
            "clv": result.clv.percent if result.clv is not None else None,
            "timestamp": ts.isoformat(),
        }

    def send(self, subject_id: str, result: EvaluationResult,
             odds_at_pick: Optional[float] = None) -> bool:
        """Returns True when the sink accepted the event."""
        if not self.enabled:
            return False
        try:
            resp = requests.post(self.url, json=self.payload(subject_id, result, odds_at_pick),
                                 timeout=self.timeout)
            resp.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logger.warning("Analytics post failed for %s: %s", subject_id, e)
            return False


def record_history(session_factory: Callable, subject_id: str, sport: str,
                   result: EvaluationResult) -> Optional[int]:
    """Persist one ``EvaluationHistory`` row; returns its id or None on failure."""
    db = None
    try:
        db = session_factory()
        row = EvaluationHistory(
            subject=subject_id,
            sport=(sport or "").upper(),
            statistic_line=result.statistic_line or "",
            confidence=float(result.final_confidence_percent),
            decision=result.decision,
            clv=result.clv.percent if result.clv is not None else None,
            timestamp=datetime.utcnow(),
        )
        db.add(row)
        db.commit()
        return row.id
    except Exception as e:
        logger.error("History write failed for %s: %s", subject_id, e, exc_info=True)
        if db is not None:
            db.rollback()
        return None
    finally:
        if db is not None:
            db.close()
