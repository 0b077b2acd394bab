"""
Batch evaluation of mixed prop and moneyline entries.

Entries run in order.  A malformed or failing entry yields an
``{index, type, error}`` record in its slot; it never aborts the batch.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from propedge.prop_model import EvaluationResult, PropEdgeModel
from propedge.schemas import BatchEntry, GameLineRequest, PropRequest
from propedge.services.game_lines import GameLinesEvaluator

logger = logging.getLogger(__name__)

EntryRequest = Union[PropRequest, GameLineRequest]


def evaluate_batch(
    entries: Sequence[Dict[str, Any]],
    prop_model: PropEdgeModel,
    game_evaluator: GameLinesEvaluator,
    on_result: Optional[Callable[[EntryRequest, EvaluationResult], None]] = None,
) -> Dict[str, Any]:
    """Evaluate every entry; returns results plus a small summary.

    ``on_result`` is called with the validated request and the full
    result of each entry that evaluated, so callers can run the same
    post-evaluation side effects as for single evaluations.
    """
    results: List[Dict[str, Any]] = []
    failed = 0

    for index, raw in enumerate(entries):
        kind = raw.get("type") if isinstance(raw, dict) else None
        try:
            entry = BatchEntry.model_validate(raw)
            if entry.type == "prop":
                request = PropRequest.model_validate(entry.payload)
                result = prop_model.evaluate(request.to_input())
            else:
                request = GameLineRequest.model_validate(entry.payload)
                result = game_evaluator.evaluate(request.to_input())
            results.append({"index": index, "type": entry.type, "result": result.to_dict()})
        except ValidationError as e:
            failed += 1
            logger.warning("Batch entry %d rejected: %s", index, e.errors()[0].get("msg") if e.errors() else e)
            results.append({"index": index, "type": kind, "error": "invalid entry"})
        except Exception as e:
            failed += 1
            logger.error("Batch entry %d failed: %s", index, e, exc_info=True)
            results.append({"index": index, "type": kind, "error": str(e) or type(e).__name__})
        else:
            if on_result is not None:
                on_result(request, result)

    decisions: Dict[str, int] = {}
    for r in results:
        if "result" in r:
            label = r["result"]["decision"]
            decisions[label] = decisions.get(label, 0) + 1

    return {
        "count": len(results),
        "failed": failed,
        "decisions": decisions,
        "results": results,
    }
