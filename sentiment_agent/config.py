# sentiment_agent/config.py
from __future__ import annotations

import shlex
from pathlib import Path
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    INLINE_PROMPT_THRESHOLD, INLINE_PROMPT_MAX, CACHE_MAX_AGE_HOURS, ANALYSIS_WINDOW_HOURS,
)


def _default_sqlite_url() -> str:
    db_path = (Path(__file__).resolve().parents[1] / "sentiment.db").as_posix()
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """
    Central app configuration.
    - Reads from .env
    - Accepts BOTH UPPERCASE and lowercase env names (AliasChoices)
    - Ignores unknown extras so new keys in .env won't crash
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---- Database ----
    database_url: str = Field(
        default_factory=_default_sqlite_url,
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )
    use_database: bool = Field(
        True, validation_alias=AliasChoices("USE_DATABASE", "use_database")
    )

    # ---- App basics ----
    env: str = Field("dev", validation_alias=AliasChoices("ENV", "env"))
    timezone: str = Field(
        "America/New_York", validation_alias=AliasChoices("TIMEZONE", "timezone")
    )
    log_level: str | None = Field(
        default=None, validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )
    log_to_file: bool = Field(
        True, validation_alias=AliasChoices("LOG_TO_FILE", "log_to_file")
    )

    # ---- External agent CLI ----
    agent_command: str = Field(
        "kilocode -m ask --auto --json",
        validation_alias=AliasChoices("AGENT_COMMAND", "agent_command"),
        description="Executable plus flags for non-interactive NDJSON output.",
    )
    agent_timeout_sec: float = Field(
        90.0, validation_alias=AliasChoices("AGENT_TIMEOUT_SEC", "agent_timeout_sec")
    )
    agent_inline_threshold: int = Field(
        INLINE_PROMPT_THRESHOLD,
        validation_alias=AliasChoices("AGENT_INLINE_THRESHOLD", "agent_inline_threshold"),
        description="Prompts longer than this go through a temp file on stdin.",
    )
    agent_inline_max: int = Field(
        INLINE_PROMPT_MAX,
        validation_alias=AliasChoices("AGENT_INLINE_MAX", "agent_inline_max"),
        description="Hard ceiling for passing the prompt as an argument.",
    )
    agent_tmp_dir: str | None = Field(
        default=None, validation_alias=AliasChoices("AGENT_TMP_DIR", "agent_tmp_dir")
    )
    agent_workdir: str | None = Field(
        default=None, validation_alias=AliasChoices("AGENT_WORKDIR", "agent_workdir")
    )
    agent_terminate_grace_sec: float = Field(
        2.0,
        validation_alias=AliasChoices("AGENT_TERMINATE_GRACE_SEC", "agent_terminate_grace_sec"),
    )

    # ---- News cache ----
    cache_max_age_hours: int = Field(
        CACHE_MAX_AGE_HOURS, validation_alias=AliasChoices("CACHE_MAX_AGE_HOURS", "cache_max_age_hours")
    )
    analysis_window_hours: int = Field(
        ANALYSIS_WINDOW_HOURS, validation_alias=AliasChoices("ANALYSIS_WINDOW_HOURS", "analysis_window_hours")
    )

    # ---- News sources ----
    news_timeout_sec: float = Field(
        5.0, validation_alias=AliasChoices("NEWS_TIMEOUT_SEC", "news_timeout_sec")
    )
    news_user_agent: str = Field(
        "Mozilla/5.0 (compatible; SentimentAgent/1.0)",
        validation_alias=AliasChoices("NEWS_USER_AGENT", "news_user_agent"),
    )
    news_max_per_source: int = Field(
        10, validation_alias=AliasChoices("NEWS_MAX_PER_SOURCE", "news_max_per_source")
    )
    zerohedge_rss_url: str = Field(
        "http://feeds.feedburner.com/zerohedge/feed",
        validation_alias=AliasChoices("ZEROHEDGE_RSS_URL", "zerohedge_rss_url"),
    )
    cnbc_rss_url: str = Field(
        "https://search.cnbc.com/rs/search/combinedcms/view.xml?partnerId=wrss01&id=10000664",
        validation_alias=AliasChoices("CNBC_RSS_URL", "cnbc_rss_url"),
    )

    def agent_argv(self) -> list[str]:
        return shlex.split(self.agent_command)


settings = Settings()
