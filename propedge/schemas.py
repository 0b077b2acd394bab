"""
Pydantic request/response schemas for the Prop Edge API.

Request fields use the wire names of the public payload (``subjectName``,
``statisticLine``, ...).  Required-looking fields are optional here on
purpose: a missing sport or subject is reported by the evaluator as a PASS
with ``MISSING_<FIELD>`` flags, not as an HTTP 422.  Malformed numeric and
timestamp fields are coerced to ``None`` rather than rejected.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from propedge.prop_model import PropInput
from propedge.services.game_lines import GameLineInput


def _coerce_price(v: Any) -> Optional[float]:
    """Finite, non-zero number or ``None``."""
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(str(v).strip().replace("+", "", 1)) if isinstance(v, str) else float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x) or x == 0:
        return None
    return x


def _coerce_timestamp(v: Any) -> Optional[datetime]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    try:
        return datetime.fromisoformat(str(v).replace("Z", "+00:00"))
    except ValueError:
        return None


def _coerce_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


# ---------------------------------------------------------------------------
# Evaluation requests
# ---------------------------------------------------------------------------

class PropRequest(BaseModel):
    """Payload for POST /api/props/evaluate."""

    sport: Optional[str] = Field(None, description="NBA, WNBA, MLB or NFL")
    subject_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("subjectName", "subject_name", "player"),
        description="Player name as printed on the slip",
    )
    opponent: Optional[str] = None
    statistic_line: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("statisticLine", "statistic_line", "prop"),
        description='Free text with a numeric threshold, e.g. "Points 23.5"',
    )
    event_start_time: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("eventStartTime", "event_start_time", "startTime"),
    )
    current_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("currentPrice", "current_price"),
        description="Current or closing American price of the pick",
    )
    opening_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("openingPrice", "opening_price"),
        description="American price when the pick was made",
    )
    over_price: Optional[float] = Field(None, validation_alias=AliasChoices("overPrice", "over_price"))
    under_price: Optional[float] = Field(None, validation_alias=AliasChoices("underPrice", "under_price"))

    @field_validator("current_price", "opening_price", "over_price", "under_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[float]:
        return _coerce_price(v)

    @field_validator("event_start_time", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[datetime]:
        return _coerce_timestamp(v)

    @field_validator("sport", "subject_name", "opponent", "statistic_line", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _coerce_text(v)

    def to_input(self) -> PropInput:
        return PropInput(
            sport=self.sport or "",
            subject_name=self.subject_name or "",
            statistic_line=self.statistic_line or "",
            opponent=self.opponent,
            event_start=self.event_start_time,
            current_price=self.current_price,
            opening_price=self.opening_price,
            over_price=self.over_price,
            under_price=self.under_price,
        )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "sport": "MLB",
                "subjectName": "Tarik Skubal",
                "statisticLine": "Strikeouts 6.5",
                "eventStartTime": "2025-06-01T17:10:00Z",
                "overPrice": -120,
                "underPrice": 100,
            }
        },
    }


class GameLineRequest(BaseModel):
    """Payload for POST /api/games/evaluate."""

    sport: Optional[str] = None
    team: Optional[str] = None
    opponent: Optional[str] = None
    event_start_time: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("eventStartTime", "event_start_time", "startTime"),
    )
    current_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("currentPrice", "current_price"),
    )

    @field_validator("current_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[float]:
        return _coerce_price(v)

    @field_validator("event_start_time", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[datetime]:
        return _coerce_timestamp(v)

    @field_validator("sport", "team", "opponent", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _coerce_text(v)

    def to_input(self) -> GameLineInput:
        return GameLineInput(
            sport=self.sport or "",
            team=self.team or "",
            opponent=self.opponent or "",
            event_start=self.event_start_time,
            current_price=self.current_price,
        )

    model_config = {"populate_by_name": True}


class BatchEntry(BaseModel):
    """One entry of a batch; the payload is validated per entry."""

    type: Literal["prop", "game"]
    payload: Dict[str, Any] = Field(default_factory=dict)


class BatchRequest(BaseModel):
    """Payload for POST /api/batch/evaluate.

    Entries are kept as raw dicts so one malformed entry fails alone instead
    of rejecting the whole batch.
    """

    entries: List[Dict[str, Any]] = Field(..., max_length=50)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class HistoryEntry(BaseModel):
    """One row of GET /api/history."""

    id: int
    subject: str
    sport: str
    statistic_line: str
    confidence: float
    decision: str
    clv: Optional[float]
    timestamp: datetime

    model_config = {"from_attributes": True}


class UsageInfo(BaseModel):
    subject: str
    tier: str
    allowed: bool
    remaining: int
    limit: int
    reset_at: Optional[datetime] = None
