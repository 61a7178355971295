"""
Tests for the end-to-end market sentiment flow (cache, scrape, analyze, persist).
"""
from datetime import datetime, timezone

import pytest

from sentiment_agent.config import settings
from sentiment_agent.models import NewsItem, SentimentAnalysis, NewsSource
from sentiment_agent.services.market_sentiment import analyze_market_sentiment
from sentiment_agent.services.news_providers import BaseNewsProvider
from sentiment_agent.services.validation import normalize_sentiment


class StaticProvider(BaseNewsProvider):
    def __init__(self, name, titles):
        self.name = name
        self.titles = titles
        self.calls = 0

    def fetch(self):
        self.calls += 1
        now = datetime.now(timezone.utc)
        return [{"title": t, "source": self.name, "url": f"https://{self.name}/{i}", "timestamp": now}
                for i, t in enumerate(self.titles)]


class StubPipeline:
    def __init__(self, payload):
        self.payload = payload
        self.seen = []

    def analyze(self, headlines):
        self.seen.append(list(headlines))
        return normalize_sentiment(self.payload)


class FailingPipeline:
    def analyze(self, headlines):
        raise RuntimeError("pipeline exploded")


@pytest.fixture
def provider():
    return StaticProvider("CNBC", ["Stocks rally", "Fed holds rates"])


class TestAnalyzeMarketSentiment:

    def test_fresh_scrape_is_persisted(self, session, provider, valid_payload):
        pipeline = StubPipeline(valid_payload)
        result = analyze_market_sentiment(pipeline=pipeline, providers=[provider])
        assert result["sentiment"] == "BULLISH"
        assert result["data_source"] == "fresh_scraping"
        assert result["news_count"] == 2
        assert result["analysis_method"] == "agent_cli"
        assert session.query(NewsItem).count() == 2
        assert session.query(SentimentAnalysis).count() == 1
        assert session.get(NewsSource, "CNBC").success_count == 1

    def test_second_run_uses_cache(self, session, provider, valid_payload):
        analyze_market_sentiment(pipeline=StubPipeline(valid_payload), providers=[provider])
        result = analyze_market_sentiment(pipeline=StubPipeline(valid_payload), providers=[provider])
        assert result["data_source"] == "database_cache"
        assert result["news_count"] == 2
        assert provider.calls == 1

    def test_force_refresh_scrapes_again(self, session, provider, valid_payload):
        analyze_market_sentiment(pipeline=StubPipeline(valid_payload), providers=[provider])
        result = analyze_market_sentiment(force_refresh=True, pipeline=StubPipeline(valid_payload),
                                          providers=[provider])
        assert result["data_source"] == "fresh_scraping"
        assert provider.calls == 2
        assert session.query(NewsItem).count() == 2

    def test_no_news_is_not_available(self, session, valid_payload):
        pipeline = StubPipeline(valid_payload)
        result = analyze_market_sentiment(pipeline=pipeline, providers=[StaticProvider("Empty", [])])
        assert result["sentiment"] == "NOT_AVAILABLE"
        assert result["score"] is None
        assert result["data_source"] == "error"
        assert result["analysis_method"] == "none"
        assert pipeline.seen == []

    def test_failure_never_raises(self, session, provider):
        result = analyze_market_sentiment(pipeline=FailingPipeline(), providers=[provider])
        assert result["sentiment"] == "NOT_AVAILABLE"
        assert "pipeline exploded" in result["summary"]

    def test_database_disabled(self, session, provider, valid_payload, monkeypatch):
        monkeypatch.setattr(settings, "use_database", False)
        result = analyze_market_sentiment(pipeline=StubPipeline(valid_payload), providers=[provider])
        assert result["data_source"] == "fresh_scraping"
        assert session.query(NewsItem).count() == 0
