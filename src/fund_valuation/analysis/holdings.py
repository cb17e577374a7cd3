"""Reduce the trade ledger to per-token positions."""

import math
from dataclasses import asdict, dataclass
from typing import Iterable

from ..storage.models import TradeRecord

DUST_THRESHOLD = 1e-4


@dataclass
class Holding:
    """Net position in one token."""

    token: str
    total_units: float
    cost_basis: float

    def to_dict(self) -> dict:
        return asdict(self)


def aggregate_holdings(
    trades: Iterable[TradeRecord],
    dust_threshold: float = DUST_THRESHOLD,
    include_dust: bool = False,
) -> list[Holding]:
    """
    Group trades by token into net units and cost basis.

    Buys and Income add units, Sells remove them. Cost basis is Buy totals
    minus Sell totals; Income units carry no cost. Positions whose absolute
    unit count is below ``dust_threshold`` are dropped unless ``include_dust``.

    Sums use math.fsum so the result does not depend on trade order.
    """
    units: dict[str, list[float]] = {}
    costs: dict[str, list[float]] = {}
    for trade in trades:
        token = trade.token.strip().upper()
        units.setdefault(token, []).append(trade.signed_units())
        costs.setdefault(token, []).append(trade.signed_cost())

    holdings = []
    for token in units:
        total_units = math.fsum(units[token])
        if not include_dust and abs(total_units) < dust_threshold:
            continue
        holdings.append(
            Holding(token=token, total_units=total_units, cost_basis=math.fsum(costs[token]))
        )

    holdings.sort(key=lambda h: (-h.cost_basis, h.token))
    return holdings
