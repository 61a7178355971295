from .base_news import BaseNewsProvider, NewsRecord
from .rss import RssNewsProvider, zerohedge_provider, cnbc_provider
from .financial_juice import FinancialJuiceProvider

__all__ = [
    "BaseNewsProvider", "NewsRecord", "RssNewsProvider",
    "zerohedge_provider", "cnbc_provider", "FinancialJuiceProvider",
]
