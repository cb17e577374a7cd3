"""Reconciliation view: re-derive every aggregate from raw ledger rows and flag anomalies."""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Iterable

from ..pricing.resolver import PriceResolver
from ..storage.models import (
    ExitRecord,
    InvestorFlowRecord,
    MonthlyPerformanceRecord,
    TradeRecord,
)
from .cash import CASH_TOKEN
from .holdings import DUST_THRESHOLD, aggregate_holdings

# Relative tolerance when comparing two independently summed cost bases
MISMATCH_TOLERANCE = 1e-6


@dataclass
class TokenBreakdown:
    """Per-token totals rebuilt from individual trades."""

    token: str
    buy_units: float = 0.0
    sell_units: float = 0.0
    income_units: float = 0.0
    net_units: float = 0.0
    buy_total: float = 0.0
    sell_total: float = 0.0
    cost_basis: float = 0.0
    trade_count: int = 0
    has_price: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Reconciliation:
    """Everything needed to trace valuation numbers back to the ledger."""

    holdings: list[TokenBreakdown]
    investors: dict[str, float]
    expenses: dict[str, float]
    exits_cost_basis: float
    calculations: dict[str, float]
    flags: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "holdings": [h.to_dict() for h in self.holdings],
            "investors": dict(self.investors),
            "expenses": dict(self.expenses),
            "exits_cost_basis": self.exits_cost_basis,
            "calculations": dict(self.calculations),
            "flags": [dict(f) for f in self.flags],
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


def _breakdown(token: str, trades: list[TradeRecord]) -> TokenBreakdown:
    buy_units, sell_units, income_units = [], [], []
    buy_total, sell_total = [], []
    for t in trades:
        if t.kind == "Buy":
            buy_units.append(t.units)
            buy_total.append(t.total or 0.0)
        elif t.kind == "Sell":
            sell_units.append(t.units)
            sell_total.append(t.total or 0.0)
        elif t.kind == "Income":
            income_units.append(t.units)

    b = TokenBreakdown(
        token=token,
        buy_units=math.fsum(buy_units),
        sell_units=math.fsum(sell_units),
        income_units=math.fsum(income_units),
        buy_total=math.fsum(buy_total),
        sell_total=math.fsum(sell_total),
        trade_count=len(trades),
    )
    b.net_units = math.fsum([*buy_units, *income_units, *(-u for u in sell_units)])
    b.cost_basis = math.fsum([*buy_total, *(-x for x in sell_total)])
    return b


def _group_by_token(trades: Iterable[TradeRecord]) -> dict[str, list[TradeRecord]]:
    grouped: dict[str, list[TradeRecord]] = {}
    for t in trades:
        grouped.setdefault(t.token.strip().upper(), []).append(t)
    return grouped


def reconcile(
    trades: Iterable[TradeRecord],
    flows: Iterable[InvestorFlowRecord],
    perf_records: Iterable[MonthlyPerformanceRecord],
    exits: Iterable[ExitRecord],
    resolver: PriceResolver,
    dust_threshold: float = DUST_THRESHOLD,
) -> Reconciliation:
    """
    Rebuild holdings, subscriptions, expenses and cash from raw rows.

    Flags are advisory and never stop the report:
    negative_holding, missing_price, negative_cash, no_subscriptions and
    calculation_mismatch (the holdings aggregator disagrees with this rebuild).
    Net units within ``dust_threshold`` of zero count as closed and raise no
    holding flag.
    """
    trades = list(trades)
    flows = list(flows)
    perf_records = list(perf_records)
    exits = list(exits)

    holdings = []
    for token, token_trades in _group_by_token(trades).items():
        b = _breakdown(token, token_trades)
        b.has_price = resolver.has_price(token)
        holdings.append(b)
    holdings.sort(key=lambda b: (-b.cost_basis, b.token))

    gp_total = math.fsum(f.amount for f in flows if f.kind == "GP")
    lp_total = math.fsum(f.amount for f in flows if f.kind == "LP")
    total_subscriptions = math.fsum(f.amount for f in flows)
    investors = {
        "gp_total": gp_total,
        "lp_total": lp_total,
        "total_subscriptions": total_subscriptions,
    }

    fund_expenses = math.fsum(r.fund_expenses for r in perf_records)
    mgmt_fees = math.fsum(r.mgmt_fees for r in perf_records)
    setup_costs = math.fsum(r.setup_costs for r in perf_records)
    total_expenses = fund_expenses + mgmt_fees + setup_costs
    expenses = {
        "fund_expenses": fund_expenses,
        "mgmt_fees": mgmt_fees,
        "setup_costs": setup_costs,
        "total": total_expenses,
    }

    exits_cost_basis = math.fsum(e.cost_basis for e in exits)
    total_cost_basis = math.fsum(b.cost_basis for b in holdings if b.token != CASH_TOKEN)
    usdc_balance = total_subscriptions - total_cost_basis - total_expenses - exits_cost_basis
    calculations = {
        "total_subscriptions": total_subscriptions,
        "total_cost_basis": total_cost_basis,
        "total_expenses": total_expenses,
        "exits_cost_basis": exits_cost_basis,
        "usdc_balance": usdc_balance,
    }

    flags: list[dict] = []
    for b in holdings:
        if b.net_units < -dust_threshold:
            flags.append(
                {
                    "type": "negative_holding",
                    "severity": "error",
                    "message": f"{b.token} has negative net units ({b.net_units:,.6f})",
                    "token": b.token,
                }
            )
        elif b.net_units > dust_threshold and not b.has_price and b.token != CASH_TOKEN:
            flags.append(
                {
                    "type": "missing_price",
                    "severity": "warning",
                    "message": f"{b.token} has no live or manual price and is valued at 0",
                    "token": b.token,
                }
            )

    if usdc_balance < 0:
        flags.append(
            {
                "type": "negative_cash",
                "severity": "error",
                "message": f"Implied USDC balance is negative (${usdc_balance:,.2f})",
            }
        )

    if total_subscriptions == 0:
        flags.append(
            {
                "type": "no_subscriptions",
                "severity": "warning",
                "message": "No investor subscriptions recorded",
            }
        )

    aggregated_cost = math.fsum(
        h.cost_basis for h in aggregate_holdings(trades, include_dust=True) if h.token != CASH_TOKEN
    )
    if abs(aggregated_cost - total_cost_basis) > MISMATCH_TOLERANCE * max(1.0, abs(total_cost_basis)):
        flags.append(
            {
                "type": "calculation_mismatch",
                "severity": "error",
                "message": (
                    f"Holdings cost basis ${aggregated_cost:,.2f} does not match "
                    f"ledger cost basis ${total_cost_basis:,.2f}"
                ),
            }
        )

    return Reconciliation(
        holdings=holdings,
        investors=investors,
        expenses=expenses,
        exits_cost_basis=exits_cost_basis,
        calculations=calculations,
        flags=flags,
    )


def token_detail(token: str, trades: Iterable[TradeRecord]) -> dict:
    """Every trade for one token in date order, with running units and the token totals."""
    symbol = token.strip().upper()
    rows = sorted(
        (t for t in trades if t.token.strip().upper() == symbol),
        key=lambda t: (t.date, t.id or 0),
    )

    running = 0.0
    detail_rows = []
    for t in rows:
        running += t.signed_units()
        row = t.to_dict()
        row["running_units"] = running
        detail_rows.append(row)

    summary = _breakdown(symbol, rows).to_dict()
    del summary["has_price"]
    summary["trades"] = detail_rows
    return summary
