# sentiment_agent/services/news.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Sequence

from .news_providers import (
    BaseNewsProvider, NewsRecord, FinancialJuiceProvider, cnbc_provider, zerohedge_provider,
)

logger = logging.getLogger(__name__)


@dataclass
class SourceStatus:
    name: str
    ok: bool
    count: int = 0
    error: str | None = None


def default_providers() -> List[BaseNewsProvider]:
    return [zerohedge_provider(), cnbc_provider(), FinancialJuiceProvider()]


def _fetch_one(provider: BaseNewsProvider) -> tuple[List[NewsRecord], SourceStatus]:
    try:
        items = provider.fetch()
    except Exception as exc:
        logger.error(f"Failed to scrape {provider.name}: {exc}")
        return [], SourceStatus(provider.name, ok=False, error=str(exc))
    return items, SourceStatus(provider.name, ok=True, count=len(items))


def scrape_fresh_news(
    providers: Sequence[BaseNewsProvider] | None = None,
    on_status: Callable[[SourceStatus], None] | None = None,
) -> List[NewsRecord]:
    """
    Fetch every source concurrently. A failing source contributes nothing;
    the others still count. Order follows the provider list.
    """
    providers = list(providers) if providers is not None else default_providers()
    if not providers:
        return []

    logger.info(f"Scraping from {', '.join(p.name for p in providers)}...")
    with ThreadPoolExecutor(max_workers=len(providers), thread_name_prefix="news") as pool:
        results = list(pool.map(_fetch_one, providers))

    all_news: List[NewsRecord] = []
    for items, status in results:
        all_news.extend(items)
        if on_status is not None:
            on_status(status)

    counts = ", ".join(f"{s.name}: {s.count}" for _, s in results)
    logger.info(f"Scraped {len(all_news)} headlines ({counts})")
    return all_news
