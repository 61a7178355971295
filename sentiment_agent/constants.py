# sentiment_agent/constants.py
"""
Centralized constants for the sentiment agent.
Eliminates magic numbers and makes the output contract explicit.
"""
from __future__ import annotations

# Output schema
SENTIMENT_VALUES = ("BULLISH", "BEARISH", "NEUTRAL")
RISK_LEVELS = ("LOW", "MEDIUM", "HIGH")
NOT_AVAILABLE = "NOT_AVAILABLE"
SCHEMA_FIELDS = ("sentiment", "score", "catalysts", "risk_level", "summary")

SCORE_MIN = -100
SCORE_MAX = 100
MAX_CATALYSTS = 5
MAX_CATALYST_LEN = 200

DEFAULT_SENTIMENT = "NEUTRAL"
DEFAULT_SCORE = 0
DEFAULT_RISK_LEVEL = "MEDIUM"
DEFAULT_SUMMARY = "No analysis available"
MARKDOWN_DEFAULT_SUMMARY = "No summary extracted."

# Prompt delivery
INLINE_PROMPT_THRESHOLD = 1000  # chars; above this use a temp file on stdin
INLINE_PROMPT_MAX = 5000        # chars; inline strategy refuses beyond this
TEMP_PROMPT_PREFIX = "sentiment_prompt_"

# Heuristic fallback keyword sets
BULLISH_KEYWORDS = (
    "rally", "bullish", "gains", "positive", "growth", "rises", "jumps", "surges", "recovery",
)
BEARISH_KEYWORDS = (
    "fall", "decline", "bearish", "drop", "crash", "slump", "plunge", "declines", "losses",
    "negative",
)
NEUTRAL_KEYWORDS = (
    "stable", "flat", "mixed", "uncertain", "caution", "wait", "holds", "steady",
)
HEURISTIC_SCORE_CAP = 50
HIGH_VOLATILITY = 0.7
LOW_VOLATILITY = 0.3

# News keyword tagging on insert
MARKET_KEYWORDS = (
    "fed", "rate", "inflation", "cpi", "market", "stock", "trade",
    "bull", "bear", "rally", "crash", "volatile", "economy",
)

# Cache / retention defaults
CACHE_MAX_AGE_HOURS = 2
ANALYSIS_WINDOW_HOURS = 24
ANALYSIS_NEWS_LIMIT = 100
DEFAULT_CLEANUP_DAYS = 30
