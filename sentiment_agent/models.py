from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Float, Text, Boolean
from .db import Base

class NewsItem(Base):
    __tablename__ = "news_items"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text)
    url: Mapped[str] = mapped_column(String, unique=True, index=True)
    source: Mapped[str] = mapped_column(String, index=True)
    published_at: Mapped[str] = mapped_column(String, index=True)  # ISO8601 UTC, e.g. 2025-10-25T21:59:30Z
    scraped_at: Mapped[str] = mapped_column(String, index=True)
    sentiment: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # bullish/bearish/neutral
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    keywords: Mapped[str] = mapped_column(Text, default="[]")  # JSON list
    market_hours: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    processing_status: Mapped[str] = mapped_column(String, default="processed")

class SentimentAnalysis(Base):
    __tablename__ = "sentiment_analyses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_date: Mapped[str] = mapped_column(String, index=True)  # YYYY-MM-DD
    overall_sentiment: Mapped[str] = mapped_column(String)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    risk_level: Mapped[str] = mapped_column(String)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    catalysts: Mapped[str] = mapped_column(Text, default="[]")  # JSON list
    summary: Mapped[str] = mapped_column(Text, default="")
    news_count: Mapped[int] = mapped_column(Integer, default=0)
    sources_analyzed: Mapped[str] = mapped_column(Text, default="{}")  # JSON {source: count}
    analysis_method: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    data_source: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[str] = mapped_column(String, index=True)

class NewsSource(Base):
    __tablename__ = "news_sources"
    name: Mapped[str] = mapped_column(String, primary_key=True)
    rss_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_scraped_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_success_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    success_count: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    scrape_interval_minutes: Mapped[int] = mapped_column(Integer, default=60)
