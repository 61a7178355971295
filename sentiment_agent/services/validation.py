# sentiment_agent/services/validation.py
"""
Shape validation for recovered sentiment payloads.

normalize_sentiment() never fails: every field is checked on its own and
replaced by a safe default when it does not fit the output schema. It does
not judge whether the content makes sense.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..constants import (
    SENTIMENT_VALUES, RISK_LEVELS, NOT_AVAILABLE, SCORE_MIN, SCORE_MAX, MAX_CATALYSTS,
    DEFAULT_SENTIMENT, DEFAULT_SCORE, DEFAULT_RISK_LEVEL, DEFAULT_SUMMARY,
)
from ..exceptions import InvalidSchema

logger = logging.getLogger(__name__)

Sentiment = Literal["BULLISH", "BEARISH", "NEUTRAL", "NOT_AVAILABLE"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "NOT_AVAILABLE"]
AnalysisMethod = Literal["agent_cli", "pattern_based", "none"]


class SentimentRecord(BaseModel):
    """Schema-conformant sentiment verdict. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment
    score: int | None = Field(default=None, ge=SCORE_MIN, le=SCORE_MAX)
    risk_level: RiskLevel
    catalysts: list[str] = Field(default_factory=list, max_length=MAX_CATALYSTS)
    summary: str
    analysis_method: AnalysisMethod = "agent_cli"

    @classmethod
    def not_available(cls, reason: str) -> "SentimentRecord":
        return cls(
            sentiment=NOT_AVAILABLE,
            score=None,
            risk_level=NOT_AVAILABLE,
            catalysts=[],
            summary=f"Analysis not available: {reason}",
            analysis_method="none",
        )

    @property
    def available(self) -> bool:
        return self.sentiment != NOT_AVAILABLE

    def to_payload(self) -> dict[str, Any]:
        """Output-schema JSON object (no provenance)."""
        return {
            "sentiment": self.sentiment,
            "score": self.score,
            "catalysts": list(self.catalysts),
            "risk_level": self.risk_level,
            "summary": self.summary,
        }


def _coerce_enum(field: str, value: Any, allowed: tuple[str, ...]) -> str:
    if isinstance(value, str):
        v = value.strip().upper()
        if v in allowed:
            return v
    raise InvalidSchema(field, value)


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSchema("score", value)
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidSchema("score", value)
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise InvalidSchema("score", value)
    return int(round(value))


def _coerce_catalysts(value: Any) -> list[str]:
    if not isinstance(value, list):
        raise InvalidSchema("catalysts", value)
    return [c for c in value if isinstance(c, str)][:MAX_CATALYSTS]


def _coerce_summary(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidSchema("summary", value)
    return value


def _field(obj: dict, name: str, coerce, default):
    try:
        return coerce(obj.get(name))
    except InvalidSchema as exc:
        if name in obj:
            logger.debug("Defaulting %s: %s", name, exc)
        return default


def normalize_sentiment(obj: Any, analysis_method: AnalysisMethod = "agent_cli") -> SentimentRecord:
    """Turn an arbitrary recovered object into a complete SentimentRecord."""
    if not isinstance(obj, dict):
        logger.warning("Recovered payload is %s, not an object; using defaults", type(obj).__name__)
        obj = {}
    # camelCase riskLevel is accepted as an alias of risk_level
    if "risk_level" not in obj and "riskLevel" in obj:
        obj = {**obj, "risk_level": obj["riskLevel"]}

    return SentimentRecord(
        sentiment=_field(obj, "sentiment", lambda v: _coerce_enum("sentiment", v, SENTIMENT_VALUES),
                         DEFAULT_SENTIMENT),
        score=_field(obj, "score", _coerce_score, DEFAULT_SCORE),
        risk_level=_field(obj, "risk_level", lambda v: _coerce_enum("risk_level", v, RISK_LEVELS),
                          DEFAULT_RISK_LEVEL),
        catalysts=_field(obj, "catalysts", _coerce_catalysts, []),
        summary=_field(obj, "summary", _coerce_summary, DEFAULT_SUMMARY),
        analysis_method=analysis_method,
    )


def looks_like_sentiment(obj: Any) -> bool:
    """True when an object carries at least one recognized schema field."""
    return isinstance(obj, dict) and any(
        obj.get(k) not in (None, "", []) for k in ("sentiment", "score", "catalysts", "risk_level")
    )
