"""CoinMarketCap HTTP client with a bounded-staleness quote cache."""

import logging
import time
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

import httpx

from ..config import Config

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """No quotes could be obtained and there is no earlier snapshot to fall back on."""


@dataclass(frozen=True)
class Quote:
    """Latest USD quote for one token."""

    symbol: str
    price: float
    name: str | None = None
    percent_change_24h: float | None = None
    percent_change_7d: float | None = None
    percent_change_30d: float | None = None
    percent_change_60d: float | None = None
    market_cap: float | None = None
    volume_24h: float | None = None
    is_manual: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        del data["symbol"]
        return data


@dataclass(frozen=True)
class QuoteSnapshot:
    """One upstream response. Replaced wholesale, never mutated."""

    quotes: Mapping[str, Quote]
    symbols: frozenset[str]
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


def _number(value) -> float:
    # Upstream nulls count as zero
    return float(value) if value else 0.0


def parse_quotes_response(payload: dict) -> dict[str, Quote]:
    """
    Parse a v2 quotes/latest payload.

    The payload maps each symbol to a list of matching assets; the first one
    is taken. Symbols with an empty list are left out.
    """
    quotes: dict[str, Quote] = {}
    for symbol, assets in (payload.get("data") or {}).items():
        if not isinstance(assets, list) or not assets:
            continue
        asset = assets[0]
        usd = (asset.get("quote") or {}).get("USD") or {}
        key = symbol.upper()
        quotes[key] = Quote(
            symbol=key,
            name=asset.get("name"),
            price=_number(usd.get("price")),
            percent_change_24h=_number(usd.get("percent_change_24h")),
            percent_change_7d=_number(usd.get("percent_change_7d")),
            percent_change_30d=_number(usd.get("percent_change_30d")),
            percent_change_60d=_number(usd.get("percent_change_60d")),
            market_cap=_number(usd.get("market_cap")),
            volume_24h=_number(usd.get("volume_24h")),
        )
    return quotes


class CoinMarketCapClient:
    """
    Quote client for the CoinMarketCap v2 API.

    Holds a single QuoteSnapshot. Within ``quote_ttl_seconds`` of the last
    fetch no upstream call is made; when a refresh fails the previous
    snapshot is served regardless of age.
    """

    def __init__(
        self,
        config: Config,
        symbols: Iterable[str] = (),
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.symbols = frozenset(s.strip().upper() for s in symbols)
        self._clock = clock
        self._snapshot: QuoteSnapshot | None = None

        self._client = http_client or httpx.Client(
            headers={"Accept": "application/json"},
            timeout=config.request_timeout,
        )

    @property
    def snapshot(self) -> QuoteSnapshot | None:
        return self._snapshot

    def _is_fresh(self, snapshot: QuoteSnapshot | None, wanted: frozenset[str]) -> bool:
        if snapshot is None:
            return False
        if snapshot.age(self._clock()) >= self.config.quote_ttl_seconds:
            return False
        return wanted <= snapshot.symbols

    def fetch(self, symbols: Iterable[str]) -> dict[str, Quote]:
        """
        Call the upstream API once, bypassing the cache.

        Raises:
            PriceFeedError: No API key is configured, or the request or payload failed
        """
        if not self.config.cmc_api_key:
            raise PriceFeedError("COINMARKETCAP_API_KEY is not set")

        symbol_list = sorted(symbols)
        logger.debug("Fetching quotes for %d symbols", len(symbol_list))
        try:
            response = self._client.get(
                self.config.cmc_quotes_url,
                headers={"X-CMC_PRO_API_KEY": self.config.cmc_api_key},
                params={"symbol": ",".join(symbol_list)},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedError(f"Quote request failed: {e}") from e
        if not isinstance(payload, dict):
            raise PriceFeedError("Unexpected quote payload")

        return parse_quotes_response(payload)

    def get_quotes(self, symbols: Iterable[str] = (), force: bool = False) -> Mapping[str, Quote]:
        """
        Return quotes covering the tracked symbols plus ``symbols``.

        Raises:
            PriceFeedError: The refresh failed and no snapshot was ever populated
        """
        wanted = self.symbols | frozenset(s.strip().upper() for s in symbols)
        snapshot = self._snapshot
        if not force and self._is_fresh(snapshot, wanted):
            return snapshot.quotes

        if snapshot is not None:
            wanted = wanted | snapshot.symbols
        try:
            quotes = self.fetch(wanted)
        except PriceFeedError as e:
            if snapshot is None:
                raise
            logger.warning(
                "Quote refresh failed, serving snapshot from %.0fs ago: %s",
                snapshot.age(self._clock()),
                e,
            )
            return snapshot.quotes

        # Single reference swap; concurrent readers keep whichever snapshot they already hold
        self._snapshot = QuoteSnapshot(
            quotes=MappingProxyType(quotes),
            symbols=wanted,
            fetched_at=self._clock(),
        )
        return self._snapshot.quotes

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "CoinMarketCapClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
