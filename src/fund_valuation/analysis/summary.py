"""Fund-level summary: subscriptions, expenses and the latest monthly record."""

import math
from dataclasses import dataclass
from typing import Iterable

from ..storage.models import InvestorFlowRecord, MonthlyPerformanceRecord


@dataclass
class FundSummary:
    gp_total: float
    lp_total: float
    total_subscriptions: float
    fund_expenses: float
    mgmt_fees: float
    setup_costs: float
    latest_record: MonthlyPerformanceRecord | None

    @property
    def total_expenses(self) -> float:
        return self.fund_expenses + self.mgmt_fees + self.setup_costs

    def to_dict(self) -> dict:
        return {
            "subscriptions": {
                "gp_total": self.gp_total,
                "lp_total": self.lp_total,
                "total": self.total_subscriptions,
            },
            "expenses": {
                "fund_expenses": self.fund_expenses,
                "mgmt_fees": self.mgmt_fees,
                "setup_costs": self.setup_costs,
                "total": self.total_expenses,
            },
            "latest_perf": self.latest_record.to_dict() if self.latest_record else None,
        }


def summarize_fund(
    flows: Iterable[InvestorFlowRecord],
    perf_records: Iterable[MonthlyPerformanceRecord],
) -> FundSummary:
    flows = list(flows)
    records = sorted(perf_records, key=lambda r: r.month)
    return FundSummary(
        gp_total=math.fsum(f.amount for f in flows if f.kind == "GP"),
        lp_total=math.fsum(f.amount for f in flows if f.kind == "LP"),
        total_subscriptions=math.fsum(f.amount for f in flows),
        fund_expenses=math.fsum(r.fund_expenses for r in records),
        mgmt_fees=math.fsum(r.mgmt_fees for r in records),
        setup_costs=math.fsum(r.setup_costs for r in records),
        latest_record=records[-1] if records else None,
    )
