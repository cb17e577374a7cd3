"""Market data: CoinMarketCap client and price resolution."""

from .client import CoinMarketCapClient, PriceFeedError, Quote, QuoteSnapshot
from .resolver import PriceResolver

__all__ = [
    "CoinMarketCapClient",
    "PriceFeedError",
    "PriceResolver",
    "Quote",
    "QuoteSnapshot",
]
