from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, TypedDict


class NewsRecord(TypedDict, total=False):
    """Standard headline structure shared by providers, the DB layer and the prompt."""
    title: str
    source: str
    url: str
    timestamp: datetime  # tz-aware UTC
    sentiment: str  # bullish / bearish / neutral, when known


class BaseNewsProvider(ABC):
    """Abstract base class for news providers."""

    name: str = "base"

    @abstractmethod
    def fetch(self) -> List[NewsRecord]:
        """
        Fetch the latest headlines from this source.

        Returns:
            List of NewsRecord dictionaries, newest first

        Raises:
            ProviderError: when the source cannot be read
        """
        pass
