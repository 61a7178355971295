from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select, func, delete
from sqlalchemy.orm import Session

from ..config import settings
from ..constants import ANALYSIS_NEWS_LIMIT, MARKET_KEYWORDS
from ..models import NewsItem, NewsSource

Z = timezone.utc


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=Z)
    return dt.astimezone(Z).strftime("%Y-%m-%dT%H:%M:%SZ")


def _now_iso() -> str:
    return _iso(datetime.now(Z))


def _parse_iso(s: str) -> datetime:
    return datetime.strptime(s, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=Z)


def extract_keywords(title: str) -> list[str]:
    t = title.lower()
    return [k for k in MARKET_KEYWORDS if k in t]


def determine_market_hours(ts: datetime, tz: str | None = None) -> str:
    """Bucket a timestamp into pre-market / market / after-hours / extended (exchange local time)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=Z)
    local = ts.astimezone(ZoneInfo(tz or settings.timezone))
    if local.weekday() >= 5:
        return "extended"
    h = local.hour
    if 4 <= h < 9:
        return "pre-market"
    if 9 <= h < 16:
        return "market"
    if 16 <= h < 20:
        return "after-hours"
    return "extended"


def save_news_items(sess: Session, items: list[dict]) -> int:
    """Insert unseen URLs, refresh scraped_at on known ones. Returns the number inserted."""
    now = _now_iso()
    saved = 0
    seen: set[str] = set()
    for it in items:
        url = it.get("url")
        title = it.get("title")
        if not url or not title or url in seen:
            continue
        seen.add(url)
        existing = sess.scalar(select(NewsItem).where(NewsItem.url == url))
        if existing:
            existing.scraped_at = now
            existing.processing_status = "processed"
            continue
        ts = it.get("timestamp") or datetime.now(Z)
        sess.add(NewsItem(
            title=title,
            url=url,
            source=it.get("source") or "unknown",
            published_at=_iso(ts),
            scraped_at=now,
            sentiment=it.get("sentiment"),
            keywords=json.dumps(extract_keywords(title)),
            market_hours=determine_market_hours(ts),
            processing_status="processed",
        ))
        saved += 1
    sess.flush()
    return saved


def _to_record(row: NewsItem) -> dict:
    return {
        "id": row.id,
        "title": row.title,
        "url": row.url,
        "source": row.source,
        "timestamp": _parse_iso(row.published_at),
        "scraped_at": row.scraped_at,
        "sentiment": row.sentiment,
        "keywords": json.loads(row.keywords or "[]"),
        "market_hours": row.market_hours,
        "processing_status": row.processing_status,
    }


def get_recent_news(sess: Session, hours_back: int = 24, sources: list[str] | None = None) -> list[dict]:
    since = _iso(datetime.now(Z) - timedelta(hours=hours_back))
    q = select(NewsItem).where(NewsItem.published_at >= since)
    if sources:
        q = q.where(NewsItem.source.in_(sources))
    q = q.order_by(NewsItem.published_at.desc())
    return [_to_record(r) for r in sess.scalars(q).all()]


def get_news_for_analysis(sess: Session, hours_back: int = 24, limit: int = ANALYSIS_NEWS_LIMIT) -> list[dict]:
    since = _iso(datetime.now(Z) - timedelta(hours=hours_back))
    q = (
        select(NewsItem)
        .where(NewsItem.published_at >= since, NewsItem.processing_status == "processed")
        .order_by(NewsItem.published_at.desc())
        .limit(limit)
    )
    return [_to_record(r) for r in sess.scalars(q).all()]


def is_cache_fresh(sess: Session, max_age_hours: int = 2) -> bool:
    since = _iso(datetime.now(Z) - timedelta(hours=max_age_hours))
    q = select(func.count()).select_from(NewsItem).where(NewsItem.scraped_at >= since)
    return (sess.scalar(q) or 0) > 0


def update_source_status(sess: Session, name: str, success: bool, error: str | None = None,
                         rss_url: str | None = None) -> None:
    src = sess.get(NewsSource, name)
    if src is None:
        src = NewsSource(name=name, rss_url=rss_url, success_count=0, error_count=0, is_active=True)
        sess.add(src)
        sess.flush()
    now = _now_iso()
    src.last_scraped_at = now
    if success:
        src.last_success_at = now
        src.success_count = (src.success_count or 0) + 1
    else:
        src.error_count = (src.error_count or 0) + 1
        src.last_error = error


def cleanup_old_data(sess: Session, days_to_keep: int = 30) -> int:
    cutoff = _iso(datetime.now(Z) - timedelta(days=days_to_keep))
    res = sess.execute(delete(NewsItem).where(NewsItem.published_at < cutoff))
    return res.rowcount or 0


def news_stats(sess: Session) -> dict:
    today = datetime.now(Z).strftime("%Y-%m-%d")
    total = sess.scalar(select(func.count()).select_from(NewsItem)) or 0
    today_n = sess.scalar(
        select(func.count()).select_from(NewsItem).where(NewsItem.published_at >= today)
    ) or 0
    by_sentiment = dict(
        sess.execute(
            select(NewsItem.sentiment, func.count()).group_by(NewsItem.sentiment)
        ).all()
    )
    latest = sess.scalar(select(func.max(NewsItem.published_at)))
    sources = [
        {
            "name": s.name,
            "last_scraped_at": s.last_scraped_at,
            "success_count": s.success_count,
            "error_count": s.error_count,
            "is_active": s.is_active,
        }
        for s in sess.scalars(select(NewsSource).order_by(NewsSource.last_scraped_at.desc())).all()
    ]
    return {
        "news": {
            "total_news": total,
            "today_news": today_n,
            "bullish": by_sentiment.get("bullish", 0),
            "bearish": by_sentiment.get("bearish", 0),
            "neutral": by_sentiment.get("neutral", 0),
            "latest_news": latest,
        },
        "sources": sources,
    }
