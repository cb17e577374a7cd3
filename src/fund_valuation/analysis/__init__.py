"""Analysis: holdings, cash, valuation, returns, reconciliation and performance."""

from .cash import CashBalance, compute_cash_balance
from .checker import Reconciliation, TokenBreakdown, reconcile, token_detail
from .holdings import Holding, aggregate_holdings
from .performance import MonthlyPerformance, build_performance_table
from .returns import Returns, compute_returns
from .summary import FundSummary, summarize_fund
from .valuation import EnrichedHolding, Valuation, valuate

__all__ = [
    "aggregate_holdings",
    "build_performance_table",
    "compute_cash_balance",
    "compute_returns",
    "reconcile",
    "summarize_fund",
    "token_detail",
    "valuate",
    "CashBalance",
    "EnrichedHolding",
    "FundSummary",
    "Holding",
    "MonthlyPerformance",
    "Reconciliation",
    "Returns",
    "TokenBreakdown",
    "Valuation",
]
