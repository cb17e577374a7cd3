"""Data models for storage."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

TRADE_KINDS = ("Buy", "Sell", "Income")
INVESTOR_KINDS = ("GP", "LP")

# Benchmark return columns carried on every monthly record (percentages)
BENCHMARK_FIELDS = (
    "fund_return",
    "btc_return",
    "eth_return",
    "cci30_return",
    "sp_ex_mega_return",
    "spx_return",
    "qqq_return",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TradeRecord:
    """A Buy, Sell or Income transaction."""

    id: int | None
    date: str  # YYYY-MM-DD
    token: str
    units: float  # always stored positive; kind carries the sign
    avg_price: float | None
    total: float | None
    kind: str  # "Buy", "Sell" or "Income"
    notes: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def signed_units(self) -> float:
        """Units with the direction applied (Sell negative)."""
        return -self.units if self.kind == "Sell" else self.units

    def signed_cost(self) -> float:
        """Contribution to cost basis. Income carries no cost."""
        total = self.total or 0.0
        if self.kind == "Buy":
            return total
        if self.kind == "Sell":
            return -total
        return 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InvestorFlowRecord:
    """A subscription (positive) or redemption (negative) by a GP or LP."""

    id: int | None
    month: str  # YYYY-MM
    client: str
    kind: str  # "GP" or "LP"
    amount: float
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExitRecord:
    """Cost of a position fully liquidated outside the trade ledger."""

    id: int | None
    token: str
    cost_basis: float
    exit_date: str | None = None
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonthlyPerformanceRecord:
    """One row of the monthly performance tracker, unique per month."""

    id: int | None
    month: str  # YYYY-MM
    gp_subs: float = 0.0
    lp_subs: float = 0.0
    initial_value: float = 0.0
    ending_value: float = 0.0
    fund_return: float = 0.0
    btc_return: float = 0.0
    eth_return: float = 0.0
    cci30_return: float = 0.0
    sp_ex_mega_return: float = 0.0
    spx_return: float = 0.0
    qqq_return: float = 0.0
    fund_expenses: float = 0.0
    mgmt_fees: float = 0.0
    setup_costs: float = 0.0
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @property
    def expenses(self) -> float:
        return self.fund_expenses + self.mgmt_fees + self.setup_costs

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ManualPrice:
    """Operator-entered price used when no live quote exists."""

    token: str
    price: float
    updated_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LedgerSnapshot:
    """Every ledger table read at the start of a request."""

    trades: list[TradeRecord]
    flows: list[InvestorFlowRecord]
    perf_records: list[MonthlyPerformanceRecord]
    exits: list[ExitRecord]
    manual_prices: dict[str, float]
