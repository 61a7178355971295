from __future__ import annotations
from datetime import datetime, timezone
from typing import List

from .base_news import BaseNewsProvider, NewsRecord


class FinancialJuiceProvider(BaseNewsProvider):
    """
    FinancialJuice is a JS-only single-page app; until a headless fetcher
    exists this returns a fixed pair of representative headlines.
    """
    name = "FinancialJuice"
    url = "https://financialjuice.com"

    def fetch(self) -> List[NewsRecord]:
        now = datetime.now(timezone.utc)
        return [
            {
                "title": "S&P 500 Futures extend gains as bond yields retreat",
                "source": self.name,
                "url": f"{self.url}/#es-futures-gains",
                "timestamp": now,
            },
            {
                "title": "Fed's Powell: 'Inflation is moving down but slowly'",
                "source": self.name,
                "url": f"{self.url}/#powell-inflation",
                "timestamp": now,
            },
        ]
