from __future__ import annotations
import calendar
from datetime import datetime, timezone
from typing import List

import feedparser
import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from .base_news import BaseNewsProvider, NewsRecord
from ...config import settings
from ...exceptions import ProviderError


class RssNewsProvider(BaseNewsProvider):
    """
    Generic RSS/Atom headline source.
    - httpx for transport (3 attempts, jittered backoff)
    - feedparser for the XML
    - keeps the top `limit` items that have both a title and a link
    """
    def __init__(self, name: str, url: str, limit: int | None = None,
                 client: httpx.Client | None = None):
        self.name = name
        self.url = url
        self.limit = limit or settings.news_max_per_source
        self.client = client or httpx.Client(
            timeout=settings.news_timeout_sec,
            headers={"User-Agent": settings.news_user_agent},
            follow_redirects=True,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(0.5, 4),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    def _get(self) -> bytes:
        r = self.client.get(self.url)
        r.raise_for_status()
        return r.content

    def fetch(self) -> List[NewsRecord]:
        try:
            body = self._get()
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, f"RSS fetch failed: {exc}") from exc

        feed = feedparser.parse(body)
        if feed.bozo and not feed.entries:
            raise ProviderError(self.name, f"unparseable feed: {feed.get('bozo_exception')}")

        out: List[NewsRecord] = []
        for entry in feed.entries:
            title = (entry.get("title") or "").strip()
            link = (entry.get("link") or "").strip()
            if not title or not link:
                continue
            parsed = entry.get("published_parsed") or entry.get("updated_parsed")
            if parsed:
                ts = datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            else:
                ts = datetime.now(timezone.utc)
            out.append({"title": title, "source": self.name, "url": link, "timestamp": ts})
            if len(out) >= self.limit:
                break
        return out


def zerohedge_provider(client: httpx.Client | None = None) -> RssNewsProvider:
    return RssNewsProvider("ZeroHedge", settings.zerohedge_rss_url, client=client)


def cnbc_provider(client: httpx.Client | None = None) -> RssNewsProvider:
    return RssNewsProvider("CNBC", settings.cnbc_rss_url, client=client)
