# sentiment_agent/services/heuristic.py
"""
Keyword-frequency sentiment used when the agent CLI is unusable.
Deterministic and offline: same headlines, same verdict.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

from ..constants import (
    BULLISH_KEYWORDS, BEARISH_KEYWORDS, NEUTRAL_KEYWORDS, HEURISTIC_SCORE_CAP,
    HIGH_VOLATILITY, LOW_VOLATILITY, MAX_CATALYSTS,
)
from .validation import SentimentRecord, normalize_sentiment

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z]+")

# (label, words of which one must appear, words of which one must also appear)
CATALYST_RULES = (
    ("Fed Rate Policy", {"fed"}, {"rate", "rates", "cut", "cuts"}),
    ("Cryptocurrency", {"bitcoin", "crypto"}, None),
    ("AI Market Activity", {"ai"}, {"spending", "investment"}),
)


def _catalysts(title: str) -> list[str]:
    words = set(_WORD.findall(title))
    out = []
    for label, first, second in CATALYST_RULES:
        if words & first and (second is None or words & second):
            out.append(label)
    return out


def analyze_headlines_heuristic(headlines: Iterable[Mapping]) -> SentimentRecord:
    titles = [str(h.get("title") or "").lower() for h in headlines]
    n = len(titles)
    if n == 0:
        return SentimentRecord.not_available("No headlines to analyze")

    bullish = bearish = neutral = 0
    catalysts: list[str] = []
    for t in titles:
        if any(k in t for k in BULLISH_KEYWORDS):
            bullish += 1
        elif any(k in t for k in BEARISH_KEYWORDS):
            bearish += 1
        elif any(k in t for k in NEUTRAL_KEYWORDS):
            neutral += 1
        for c in _catalysts(t):
            if c not in catalysts:
                catalysts.append(c)

    if bullish > bearish and bullish > neutral:
        sentiment, score = "BULLISH", min(HEURISTIC_SCORE_CAP, round(bullish / n * 100))
    elif bearish > bullish and bearish > neutral:
        sentiment, score = "BEARISH", max(-HEURISTIC_SCORE_CAP, -round(bearish / n * 100))
    else:
        sentiment, score = "NEUTRAL", 0

    volatility = (bullish + bearish) / n
    if volatility > HIGH_VOLATILITY:
        risk = "HIGH"
    elif volatility < LOW_VOLATILITY:
        risk = "LOW"
    else:
        risk = "MEDIUM"

    logger.info("Pattern-based analysis: %d bullish / %d bearish / %d neutral of %d",
                bullish, bearish, neutral, n)
    return normalize_sentiment(
        {
            "sentiment": sentiment,
            "score": score,
            "risk_level": risk,
            "catalysts": catalysts[:MAX_CATALYSTS],
            "summary": (
                f"Pattern-based analysis: {bullish} bullish, {bearish} bearish, {neutral} neutral "
                f"headlines analyzed. Sentiment determined as {sentiment} with {abs(score)} confidence score."
            ),
        },
        analysis_method="pattern_based",
    )
