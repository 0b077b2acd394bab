"""
Name resolution against provider rosters.

Player names on a slip rarely match the provider's spelling exactly
("Ronald Acuna" vs "Ronald Acuña Jr.").  :func:`resolve` picks the best row
from a roster using, in priority order:

1. the provider id already resolved earlier in the same evaluation,
2. token containment (every token of the target inside the candidate),
3. normalised Levenshtein similarity above a threshold.

When the runner-up scores within :data:`AMBIGUITY_GAP` of the winner the
match is flagged ambiguous and logged, but still returned.  Ties break by
roster order, never randomly.

:func:`match_team_pair` is the moneyline counterpart: it finds the game in
an odds list whose home/away teams match a (team, opponent) pair in either
orientation.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from propedge.core.result import ErrorKind, Result

logger = logging.getLogger(__name__)

#: Score for an id-hint match and for an exact (normalised) name match.
EXACT_SCORE = 1.0
#: Score for a candidate that contains every token of the target.
CONTAINMENT_SCORE = 0.95
#: Default acceptance threshold for approximate matches.
DEFAULT_THRESHOLD = 0.7
#: Winner and runner-up closer than this are flagged ambiguous.
AMBIGUITY_GAP = 0.05

_SUFFIXES = ("jr", "sr", "ii", "iii", "iv", "v")

HOME_KEYS = ("HomeTeam", "HomeTeamName", "HomeTeamKey", "HomeTeamShort")
AWAY_KEYS = ("AwayTeam", "AwayTeamName", "AwayTeamKey", "AwayTeamShort")


@dataclass(frozen=True)
class ResolvedIdentity:
    """A roster row matched to the requested name.

    Lives for one evaluation only; rosters change, so identities are never
    cached across requests.
    """

    canonical_name: str
    provider_id: Optional[int]
    match_score: float
    ambiguous: bool = False
    row: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def normalize_name(name: Any) -> str:
    """Lower-case, strip accents, punctuation and generational suffixes.

    ``"Ronald Acuña Jr."`` → ``"ronald acuna"``
    """
    text = unicodedata.normalize("NFKD", str(name or ""))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[^a-z0-9\s'-]", " ", text)
    tokens = [t for t in text.split() if t.strip(".") not in _SUFFIXES]
    return " ".join(tokens)


def row_name(row: Dict[str, Any]) -> str:
    """Display name of a provider row (``Name`` or first + last)."""
    name = row.get("Name")
    if name:
        return str(name)
    first, last = row.get("FirstName"), row.get("LastName")
    if first or last:
        return f"{first or ''} {last or ''}".strip()
    return ""


def _row_id(row: Dict[str, Any], id_key: str) -> Optional[int]:
    try:
        return int(row.get(id_key))
    except (TypeError, ValueError):
        return None


def _score(target: str, target_tokens: List[str], candidate: str) -> Tuple[float, bool]:
    """``(score, contained)`` for one candidate."""
    if not candidate:
        return 0.0, False
    if candidate == target:
        return EXACT_SCORE, True
    if target_tokens and all(tok in candidate for tok in target_tokens):
        return CONTAINMENT_SCORE, True
    return float(Levenshtein.normalized_similarity(candidate, target)), False


def resolve(
    name: str,
    roster: Sequence[Dict[str, Any]],
    id_hint: Optional[int] = None,
    threshold: float = DEFAULT_THRESHOLD,
    id_key: str = "PlayerID",
) -> Result[ResolvedIdentity]:
    """Best roster row for ``name``.

    Args:
        name: Free-text name from the request.
        roster: Provider rows, in provider order.
        id_hint: Provider id resolved earlier in the evaluation.  Matched by
            equality and authoritative: when the roster carries ids and none
            equals the hint the result is NO_MATCH, whatever the names say.
        threshold: Approximate matches must score strictly above this.
        id_key: Row field holding the provider id.

    Returns:
        ``Result.ok(ResolvedIdentity)`` or ``Result.fail(NO_MATCH)``.
    """
    if not roster:
        return Result.fail(ErrorKind.NO_MATCH, "empty roster")

    if id_hint is not None:
        has_ids = False
        for row in roster:
            row_id = _row_id(row, id_key)
            has_ids = has_ids or row_id is not None
            if row_id == id_hint:
                return Result.ok(ResolvedIdentity(
                    canonical_name=row_name(row),
                    provider_id=id_hint,
                    match_score=EXACT_SCORE,
                    row=row,
                ))
        # A same-named player with a different id is someone else.
        if has_ids:
            return Result.fail(ErrorKind.NO_MATCH, f"id {id_hint} not in roster")

    target = normalize_name(name)
    if not target:
        return Result.fail(ErrorKind.NO_MATCH, "blank name")
    target_tokens = target.split()

    scored: List[Tuple[float, bool, int]] = []
    for idx, row in enumerate(roster):
        score, contained = _score(target, target_tokens, normalize_name(row_name(row)))
        scored.append((score, contained, idx))

    contained = [s for s in scored if s[1]]
    if contained:
        # Containment outranks similarity; exact names outrank containment.
        best_score = max(s[0] for s in contained)
        winner = next(s for s in contained if s[0] == best_score)
    else:
        best_score = max(s[0] for s in scored)
        winner = next(s for s in scored if s[0] == best_score)
        if best_score <= threshold:
            logger.debug("No roster match for %r (best %.3f <= %.2f)", name, best_score, threshold)
            return Result.fail(ErrorKind.NO_MATCH, f"best score {best_score:.3f}")

    others = [s[0] for s in scored if s[2] != winner[2]]
    runner_up = max(others) if others else None
    ambiguous = runner_up is not None and (winner[0] - runner_up) < AMBIGUITY_GAP

    row = roster[winner[2]]
    if ambiguous:
        logger.warning(
            "Ambiguous match for %r: chose %r (%.3f), runner-up %.3f",
            name, row_name(row), winner[0], runner_up,
        )

    return Result.ok(ResolvedIdentity(
        canonical_name=row_name(row),
        provider_id=_row_id(row, id_key),
        match_score=winner[0],
        ambiguous=ambiguous,
        row=row,
    ))


# ---------------------------------------------------------------------------
# Team pairs
# ---------------------------------------------------------------------------


def _first_present(game: Dict[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = game.get(key)
        if value:
            return str(value)
    return ""


def _any_token_in(tokens: List[str], text: str) -> bool:
    candidate = text.lower()
    return bool(tokens) and any(tok in candidate for tok in tokens)


def team_tokens(name: str) -> List[str]:
    return [t for t in str(name or "").lower().split() if t]


def match_team_pair(
    team: str,
    opponent: str,
    games: Sequence[Dict[str, Any]],
) -> Optional[Tuple[Dict[str, Any], bool]]:
    """Find the game between ``team`` and ``opponent``.

    A side matches when any of its tokens appears in the game's team name
    (home/away fields tried in order).  Both orientations are accepted.

    Returns:
        ``(game, team_is_home)`` for the first matching game, or ``None``.
    """
    t_tok, o_tok = team_tokens(team), team_tokens(opponent)
    for game in games:
        home, away = _first_present(game, HOME_KEYS), _first_present(game, AWAY_KEYS)
        if _any_token_in(t_tok, home) and _any_token_in(o_tok, away):
            return game, True
        if _any_token_in(t_tok, away) and _any_token_in(o_tok, home):
            return game, False
    return None
