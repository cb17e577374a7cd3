"""Implied USDC cash balance."""

import math
from dataclasses import asdict, dataclass
from typing import Iterable

from ..storage.models import (
    ExitRecord,
    InvestorFlowRecord,
    MonthlyPerformanceRecord,
    TradeRecord,
)

CASH_TOKEN = "USDC"


@dataclass
class CashBalance:
    total_subscriptions: float
    total_cost_basis: float
    total_expenses: float
    exits_cost_basis: float
    usdc_balance: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_cash_balance(
    flows: Iterable[InvestorFlowRecord],
    trades: Iterable[TradeRecord],
    perf_records: Iterable[MonthlyPerformanceRecord],
    exits: Iterable[ExitRecord],
) -> CashBalance:
    """
    Derive cash as what is left of investor capital.

    usdc_balance = subscriptions - cost basis of non-USDC trades
                   - expenses - exit cost basis

    The fund records no cash movements, so this is recomputed from the full
    ledger every time. A negative balance is returned as is.
    """
    total_subscriptions = math.fsum(f.amount for f in flows)
    total_cost_basis = math.fsum(
        t.signed_cost() for t in trades if t.token.strip().upper() != CASH_TOKEN
    )
    total_expenses = math.fsum(r.expenses for r in perf_records)
    exits_cost_basis = math.fsum(e.cost_basis for e in exits)

    return CashBalance(
        total_subscriptions=total_subscriptions,
        total_cost_basis=total_cost_basis,
        total_expenses=total_expenses,
        exits_cost_basis=exits_cost_basis,
        usdc_balance=total_subscriptions - total_cost_basis - total_expenses - exits_cost_basis,
    )
