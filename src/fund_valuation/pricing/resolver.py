"""Merge live quotes with manual price overrides."""

import logging
from typing import Iterable, Mapping

from .client import CoinMarketCapClient, PriceFeedError, Quote

logger = logging.getLogger(__name__)


class PriceResolver:
    """
    Price lookup for one request.

    A live quote always wins. A manual override only fills in for a token with
    no live quote, and then carries no percent-change data. Unknown tokens
    resolve to None and price at 0.0.
    """

    def __init__(
        self,
        live_quotes: Mapping[str, Quote] | None = None,
        manual_prices: Mapping[str, float] | None = None,
        feed_error: str | None = None,
    ) -> None:
        self._live = {k.upper(): v for k, v in (live_quotes or {}).items()}
        self._manual = {k.upper(): float(v) for k, v in (manual_prices or {}).items()}
        self.feed_error = feed_error

    @classmethod
    def from_client(
        cls,
        client: CoinMarketCapClient | None,
        manual_prices: Mapping[str, float],
        symbols: Iterable[str] = (),
    ) -> "PriceResolver":
        """Fetch live quotes, falling back to manual prices only when the feed is unavailable."""
        if client is None:
            return cls({}, manual_prices, feed_error="no price client configured")
        try:
            live = client.get_quotes(symbols)
        except PriceFeedError as e:
            logger.warning("Price feed unavailable, using manual prices only: %s", e)
            return cls({}, manual_prices, feed_error=str(e))
        return cls(live, manual_prices)

    def quote(self, token: str) -> Quote | None:
        symbol = token.strip().upper()
        live = self._live.get(symbol)
        if live is not None:
            return live
        if symbol in self._manual:
            return Quote(symbol=symbol, price=self._manual[symbol], is_manual=True)
        return None

    def resolve(self, tokens: Iterable[str]) -> dict[str, Quote | None]:
        """Map each token to its quote, or None when neither source has one."""
        return {token.strip().upper(): self.quote(token) for token in tokens}

    def price_of(self, token: str) -> float:
        quote = self.quote(token)
        return quote.price if quote is not None else 0.0

    def has_live_quote(self, token: str) -> bool:
        return token.strip().upper() in self._live

    def has_price(self, token: str) -> bool:
        return self.quote(token) is not None

    def quotes(self) -> dict[str, Quote]:
        """Every known quote: live ones plus manual overrides for tokens without one."""
        merged: dict[str, Quote] = {}
        for symbol in sorted(set(self._live) | set(self._manual)):
            quote = self.quote(symbol)
            if quote is not None:
                merged[symbol] = quote
        return merged
