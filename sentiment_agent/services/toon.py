"""
Compact tabular text ("TOON") for embedding record lists in prompts:

    headlines[2]{title,src}:
      Fed Cuts Rates by 50bps,CNBC
      "Stocks rally, yields fall",ZeroHedge
"""
from __future__ import annotations

from typing import Any, Mapping, Sequence

_NEEDS_QUOTES = (",", '"', "\n", "\r", "\\")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    s = str(value)
    if any(ch in s for ch in _NEEDS_QUOTES) or s != s.strip():
        s = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "")
        return f'"{s}"'
    return s


def to_toon(name: str, rows: Sequence[Mapping[str, Any]], fields: Sequence[str] | None = None) -> str:
    if not rows:
        return f"{name}[0]:"
    if fields is None:
        fields = []
        for r in rows:
            for k in r.keys():
                if k not in fields:
                    fields.append(k)
    header = f"{name}[{len(rows)}]{{{','.join(fields)}}}:"
    body = ["  " + ",".join(_cell(r.get(f)) for f in fields) for r in rows]
    return "\n".join([header, *body])
