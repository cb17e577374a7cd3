"""Mark holdings to market and add the implied cash position."""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Iterable, Mapping

from ..pricing.client import Quote
from ..pricing.resolver import PriceResolver
from .cash import CASH_TOKEN
from .holdings import Holding


@dataclass
class EnrichedHolding:
    """A holding with price, market value, P&L and portfolio weight."""

    token: str
    total_units: float
    cost_basis: float
    price: float
    market_value: float
    pnl: float
    weight: float  # percent of total_value

    name: str | None = None
    percent_change_24h: float | None = None
    percent_change_7d: float | None = None
    percent_change_30d: float | None = None
    percent_change_60d: float | None = None
    has_live_quote: bool = False
    is_manual: bool = False
    is_cash: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Valuation:
    """Portfolio valued at current prices."""

    total_value: float
    total_cost_basis: float
    total_pnl: float
    usdc_balance: float
    holdings: list[EnrichedHolding] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_value": self.total_value,
            "total_cost_basis": self.total_cost_basis,
            "total_pnl": self.total_pnl,
            "usdc_balance": self.usdc_balance,
            "holdings": [h.to_dict() for h in self.holdings],
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


def _as_resolver(prices: PriceResolver | Mapping[str, Quote]) -> PriceResolver:
    if isinstance(prices, PriceResolver):
        return prices
    live = {k: q for k, q in prices.items() if not q.is_manual}
    manual = {k: q.price for k, q in prices.items() if q.is_manual}
    return PriceResolver(live, manual)


def valuate(
    holdings: Iterable[Holding],
    prices: PriceResolver | Mapping[str, Quote],
    usdc_balance: float,
) -> Valuation:
    """
    Value holdings at resolved prices and append cash.

    A token without any price is valued at 0 and keeps its full cost basis as a
    loss. Percent changes are only reported for live quotes. Cash appears as a
    synthetic USDC holding priced at 1 when the balance is non-zero; USDC rows in
    the trade ledger are ignored here since cash is the derived residual.
    """
    resolver = _as_resolver(prices)

    enriched: list[EnrichedHolding] = []
    for holding in holdings:
        token = holding.token.strip().upper()
        if token == CASH_TOKEN:
            continue

        quote = resolver.quote(token)
        live = resolver.has_live_quote(token)
        price = quote.price if quote is not None else 0.0
        market_value = holding.total_units * price

        enriched.append(
            EnrichedHolding(
                token=token,
                total_units=holding.total_units,
                cost_basis=holding.cost_basis,
                price=price,
                market_value=market_value,
                pnl=market_value - holding.cost_basis,
                weight=0.0,
                name=quote.name if quote is not None else None,
                percent_change_24h=quote.percent_change_24h if live else None,
                percent_change_7d=quote.percent_change_7d if live else None,
                percent_change_30d=quote.percent_change_30d if live else None,
                percent_change_60d=quote.percent_change_60d if live else None,
                has_live_quote=live,
                is_manual=quote is not None and quote.is_manual,
            )
        )

    enriched.sort(key=lambda h: (-h.market_value, h.token))

    if usdc_balance != 0:
        enriched.append(
            EnrichedHolding(
                token=CASH_TOKEN,
                total_units=usdc_balance,
                cost_basis=usdc_balance,
                price=1.0,
                market_value=usdc_balance,
                pnl=0.0,
                weight=0.0,
                name="USD Coin",
                is_cash=True,
            )
        )

    total_value = math.fsum(h.market_value for h in enriched)
    for h in enriched:
        h.weight = h.market_value / total_value * 100 if total_value > 0 else 0.0

    total_cost_basis = math.fsum(h.cost_basis for h in enriched)
    return Valuation(
        total_value=total_value,
        total_cost_basis=total_cost_basis,
        total_pnl=math.fsum(h.pnl for h in enriched),
        usdc_balance=usdc_balance,
        holdings=enriched,
    )
