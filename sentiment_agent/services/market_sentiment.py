"""
End-to-end market sentiment: cached headlines (or a fresh scrape), one
pipeline run, and the verdict persisted alongside its inputs.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from ..config import settings
from ..db import get_session, init_db, ping_database
from ..repositories.analyses import save_sentiment_analysis
from ..repositories.news import (
    get_news_for_analysis, is_cache_fresh, save_news_items, update_source_status,
)
from .news import SourceStatus, scrape_fresh_news
from .news_providers import BaseNewsProvider, NewsRecord
from .sentiment import SentimentPipeline
from .validation import SentimentRecord

logger = logging.getLogger(__name__)


def _not_available(reason: str) -> Dict[str, Any]:
    return {
        **SentimentRecord.not_available(reason).to_payload(),
        "data_source": "error",
        "news_count": 0,
        "analysis_method": "none",
    }


def _load_cached_news() -> List[NewsRecord]:
    with get_session() as sess:
        if not is_cache_fresh(sess, settings.cache_max_age_hours):
            logger.info("Database cache status: STALE")
            return []
        logger.info("Database cache status: FRESH")
        rows = get_news_for_analysis(sess, settings.analysis_window_hours)
    return [
        {"title": r["title"], "url": r["url"], "source": r["source"],
         "timestamp": r["timestamp"], "sentiment": r["sentiment"]}
        for r in rows
    ]


def _scrape_and_store(providers: Sequence[BaseNewsProvider] | None, db_ok: bool) -> List[NewsRecord]:
    statuses: List[SourceStatus] = []
    news = scrape_fresh_news(providers, on_status=statuses.append)
    if db_ok:
        with get_session() as sess:
            for s in statuses:
                update_source_status(sess, s.name, s.ok, s.error)
            saved = save_news_items(sess, news)
            sess.commit()
        logger.info(f"Saved {saved} new items to database")
    return news


def analyze_market_sentiment(
    force_refresh: bool = False,
    pipeline: SentimentPipeline | None = None,
    providers: Sequence[BaseNewsProvider] | None = None,
) -> Dict[str, Any]:
    """
    Returns the output-schema payload plus data_source / news_count / analysis_method.
    Never raises: any failure becomes a NOT_AVAILABLE payload.
    """
    try:
        db_ok = ping_database()
        if db_ok:
            init_db()

        news: List[NewsRecord] = []
        use_cache = False
        if db_ok and not force_refresh:
            news = _load_cached_news()
            use_cache = bool(news)
            if use_cache:
                logger.info(f"Using {len(news)} cached news items")

        if not news:
            logger.info("Scraping fresh news data...")
            news = _scrape_and_store(providers, db_ok)

        if not news:
            logger.warning("No news data available")
            return _not_available("No news data from any source")

        data_source = "database_cache" if use_cache else "fresh_scraping"
        record = (pipeline or SentimentPipeline()).analyze(news)

        if db_ok:
            with get_session() as sess:
                analysis_id = save_sentiment_analysis(sess, record, news, data_source)
                sess.commit()
            logger.info(f"Analysis saved to database (id={analysis_id})")

        return {
            **record.to_payload(),
            "data_source": data_source,
            "news_count": len(news),
            "analysis_method": record.analysis_method,
        }
    except Exception as exc:
        logger.exception("Market sentiment analysis failed")
        return _not_available(f"Analysis failed: {exc}")
