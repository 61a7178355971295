from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..models import SentimentAnalysis
from ..services.validation import SentimentRecord

DEFAULT_CONFIDENCE = 0.8


def save_sentiment_analysis(sess: Session, record: SentimentRecord, news: list[dict] | None = None,
                            data_source: str | None = None) -> int:
    now = datetime.now(timezone.utc)
    news = news or []
    sources = Counter(str(n.get("source") or "unknown") for n in news)
    row = SentimentAnalysis(
        analysis_date=now.strftime("%Y-%m-%d"),
        overall_sentiment=record.sentiment,
        score=record.score,
        risk_level=record.risk_level,
        confidence=DEFAULT_CONFIDENCE if record.analysis_method == "agent_cli" else None,
        catalysts=json.dumps(record.catalysts),
        summary=record.summary,
        news_count=len(news),
        sources_analyzed=json.dumps(dict(sources)),
        analysis_method=record.analysis_method,
        data_source=data_source,
        created_at=now.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
    )
    sess.add(row)
    sess.flush()
    return row.id


def latest_sentiment_analysis(sess: Session) -> dict | None:
    row = sess.scalars(
        select(SentimentAnalysis).order_by(SentimentAnalysis.created_at.desc(), SentimentAnalysis.id.desc()).limit(1)
    ).first()
    if row is None:
        return None
    return {
        "id": row.id,
        "analysis_date": row.analysis_date,
        "sentiment": row.overall_sentiment,
        "score": row.score,
        "risk_level": row.risk_level,
        "catalysts": json.loads(row.catalysts or "[]"),
        "summary": row.summary,
        "news_count": row.news_count,
        "sources_analyzed": json.loads(row.sources_analyzed or "{}"),
        "analysis_method": row.analysis_method,
        "data_source": row.data_source,
        "created_at": row.created_at,
    }


def analysis_stats(sess: Session) -> dict:
    total = sess.scalar(select(func.count()).select_from(SentimentAnalysis)) or 0
    latest = sess.scalar(select(func.max(SentimentAnalysis.created_at)))
    return {"total_analyses": total, "latest_analysis": latest}
