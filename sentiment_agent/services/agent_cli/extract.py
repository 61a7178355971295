"""
Recover one JSON object from free-form agent output.

Tiers, first success wins:
  1. fenced ```json block interior
  2. the text itself, when it is a clean JSON object
  3. first '{' .. last '}' slice
  4. anchored brace patterns (nested before greedy, then any object)
Every parse attempt also runs on a cleaned copy (fence markers, outer quotes
and \\" / \\n escapes removed). When nothing JSON-shaped parses, a Markdown
field scan is the last resort.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Iterator

from ...constants import SCHEMA_FIELDS, MAX_CATALYSTS, MAX_CATALYST_LEN, MARKDOWN_DEFAULT_SUMMARY
from ...exceptions import NoRecoverablePayload

logger = logging.getLogger(__name__)

ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
FENCE_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
FENCE_ANY_RE = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)\s*```")
FENCE_MARKER_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

# one level of nesting is enough for the flat output schema
_NESTED_BODY = r"(?:[^{}]|\{[^{}]*\})*"
ANY_NESTED_RE = re.compile(r"\{" + _NESTED_BODY + r"\}")
ANY_LAZY_RE = re.compile(r"\{[\s\S]*?\}")


def _anchored_pattern(key: str) -> re.Pattern:
    return re.compile(r"\{" + _NESTED_BODY + re.escape(key) + _NESTED_BODY + r"\}")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def clean_json_text(text: str) -> str:
    """Undo shell/markdown artifacts: fence markers, outer quotes, escaped quotes and newlines."""
    cleaned = FENCE_MARKER_RE.sub("", text).strip()
    if len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    return cleaned.replace('\\"', '"').replace("\\n", "\n").strip()


def _loads_object(text: str) -> dict | None:
    """Parse text as a JSON object; a JSON string is decoded once more."""
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (ValueError, RecursionError):
            return None
    return value if isinstance(value, dict) else None


def _whole(text: str) -> dict | None:
    t = text.strip()
    if t.startswith("{") and t.endswith("}"):
        return _loads_object(t)
    if t.startswith('"') and t.endswith('"'):
        return _loads_object(t)
    return None


def _brace_slice(text: str) -> dict | None:
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or last <= first:
        return None
    return _loads_object(text[first:last + 1])


def _first_match(patterns: Iterable[re.Pattern], text: str) -> dict | None:
    for pattern in patterns:
        for m in pattern.finditer(text):
            obj = _loads_object(m.group(0))
            if obj is not None:
                return obj
    return None


def _greedy_span(text: str, key: str) -> dict | None:
    """Widest '{' .. key .. '}' span, located with plain index scans."""
    k = text.rfind(key)
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or first > k or last < k + len(key):
        return None
    return _loads_object(text[first:last + 1])


def _pattern_search(text: str, anchors: tuple[str, ...]) -> dict | None:
    if "}" not in text:
        return None
    for anchor in anchors:
        key = f'"{anchor}"'
        # an absent key would make the anchored pattern backtrack from every '{'
        if key not in text:
            continue
        obj = _first_match((_anchored_pattern(key),), text) or _greedy_span(text, key)
        if obj is not None:
            return obj
    return _first_match((ANY_NESTED_RE, ANY_LAZY_RE), text)


def _blobs(text: str) -> Iterator[str]:
    m = FENCE_JSON_RE.search(text) or FENCE_ANY_RE.search(text)
    if m and m.group(1).strip():
        yield m.group(1)
    yield text


def extract_json_object(text: str, anchors: tuple[str, ...] = SCHEMA_FIELDS) -> dict | None:
    """JSON-shaped tiers only; None when nothing parses."""
    if not text or not text.strip():
        return None
    text = strip_ansi(text)
    for blob in _blobs(text):
        for variant in (blob, clean_json_text(blob)):
            for tier in (_whole, _brace_slice):
                obj = tier(variant)
                if obj is not None:
                    return obj
            obj = _pattern_search(variant, anchors)
            if obj is not None:
                return obj
    return None


# ---- Markdown fallback --------------------------------------------------------

_SENTIMENT_RES = (
    re.compile(r"\*\*SENTIMENT:?\*\*:?\s*(\w+)", re.IGNORECASE),
    re.compile(r"sentiment[\"\s:]+(\w+)", re.IGNORECASE),
    re.compile(r"\"sentiment\"\s*:\s*\"(\w+)\"", re.IGNORECASE),
)
_SCORE_RES = (
    re.compile(r"\((-?\d+)/100\)"),
    re.compile(r"\*\*SCORE:?\*\*:?\s*(-?\d+)", re.IGNORECASE),
    re.compile(r"score[\"\s:]+(-?\d+)", re.IGNORECASE),
    re.compile(r"\"score\"\s*:\s*(-?\d+)", re.IGNORECASE),
)
_RISK_RES = (
    re.compile(r"\*\*RISK[_ ]LEVEL:?\*\*:?\s*(\w+)", re.IGNORECASE),
    re.compile(r"risk[_\s]*level[\"\s:]+(\w+)", re.IGNORECASE),
    re.compile(r"\"risk_level\"\s*:\s*\"(\w+)\"", re.IGNORECASE),
)
_SUMMARY_RES = (
    re.compile(r"\*\*SUMMARY:?\*\*:?\s*([\s\S]+?)$", re.IGNORECASE),
    re.compile(r"summary[\"\s:]+(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"\"summary\"\s*:\s*\"([^\"]+)\"", re.IGNORECASE),
)
_BULLET_RE = re.compile(r"^\s*[-*+]\s+(.+?)\s*$", re.MULTILINE)
_CATALYST_ARRAY_RE = re.compile(r"\"catalysts\"\s*:\s*\[(.*?)\]", re.DOTALL)


def _search(patterns: tuple[re.Pattern, ...], text: str) -> str | None:
    for p in patterns:
        m = p.search(text)
        if m:
            return m.group(1)
    return None


def _markdown_catalysts(text: str) -> list[str]:
    out: list[str] = []
    for m in _BULLET_RE.finditer(text):
        item = m.group(1).strip().strip("*").strip()
        if item:
            out.append(item[:MAX_CATALYST_LEN])
    arr = _CATALYST_ARRAY_RE.search(text)
    if arr:
        try:
            values = json.loads(f"[{arr.group(1)}]")
        except (ValueError, RecursionError):
            values = []
        out.extend(v[:MAX_CATALYST_LEN] for v in values if isinstance(v, str))
    return out[:MAX_CATALYSTS]


def extract_markdown_fields(text: str) -> dict | None:
    """Field-by-field scan of Markdown/prose output. None when no sentiment label exists."""
    if not text:
        return None
    text = strip_ansi(text)
    sentiment = _search(_SENTIMENT_RES, text)
    if not sentiment:
        return None
    score = _search(_SCORE_RES, text)
    risk = _search(_RISK_RES, text)
    summary = _search(_SUMMARY_RES, text)
    return {
        "sentiment": sentiment.upper(),
        "score": int(score) if score is not None else 0,
        "risk_level": risk.upper() if risk else "MEDIUM",
        "catalysts": _markdown_catalysts(text),
        "summary": summary.strip().replace('"', "") if summary else MARKDOWN_DEFAULT_SUMMARY,
    }


def extract_payload(text: str, anchors: tuple[str, ...] = SCHEMA_FIELDS) -> dict[str, Any]:
    """Recover the intended payload or raise NoRecoverablePayload."""
    obj = extract_json_object(text, anchors)
    if obj is not None:
        return obj
    md = extract_markdown_fields(text or "")
    if md is not None:
        logger.info("Recovered payload from Markdown fields")
        return md
    raise NoRecoverablePayload(f"No JSON or Markdown payload in {len(text or '')} chars of output")
