"""Month-by-month performance table."""

import math
from dataclasses import asdict, dataclass
from typing import Iterable

from ..storage.models import InvestorFlowRecord, MonthlyPerformanceRecord


@dataclass
class MonthlyPerformance:
    """One derived row of the performance table."""

    id: int | None
    month: str
    gp_subs: float  # from that month's investor flows
    lp_subs: float
    expenses: float
    initial_value: float  # previous ending + subscriptions - expenses
    ending_value: float
    month_return: float
    cumulative_return: float  # compounded month returns
    fund_return: float
    btc_return: float
    eth_return: float
    cci30_return: float
    sp_ex_mega_return: float
    spx_return: float
    qqq_return: float
    fund_expenses: float
    mgmt_fees: float
    setup_costs: float
    recorded_gp_subs: float
    recorded_lp_subs: float
    recorded_initial_value: float

    def to_dict(self) -> dict:
        return asdict(self)


def build_performance_table(
    perf_records: Iterable[MonthlyPerformanceRecord],
    flows: Iterable[InvestorFlowRecord],
) -> list[MonthlyPerformance]:
    """
    Derive monthly returns from the tracker records and investor flows.

    For each month in ascending order, subscriptions are summed from the
    investor flows booked to that month, and
        initial_value = previous ending_value + gp + lp - expenses
        month_return  = (ending_value / initial_value - 1) * 100
    with month_return 0 when initial_value is not positive. The cumulative
    return compounds the monthly ones.
    """
    subs: dict[tuple[str, str], list[float]] = {}
    for f in flows:
        subs.setdefault((f.month, f.kind), []).append(f.amount)

    rows = []
    prev_ending = 0.0
    growth = 1.0
    for record in sorted(perf_records, key=lambda r: r.month):
        gp = math.fsum(subs.get((record.month, "GP"), []))
        lp = math.fsum(subs.get((record.month, "LP"), []))
        expenses = record.expenses
        initial_value = prev_ending + gp + lp - expenses
        month_return = (record.ending_value / initial_value - 1) * 100 if initial_value > 0 else 0.0
        growth *= 1 + month_return / 100

        rows.append(
            MonthlyPerformance(
                id=record.id,
                month=record.month,
                gp_subs=gp,
                lp_subs=lp,
                expenses=expenses,
                initial_value=initial_value,
                ending_value=record.ending_value,
                month_return=month_return,
                cumulative_return=(growth - 1) * 100,
                fund_return=record.fund_return,
                btc_return=record.btc_return,
                eth_return=record.eth_return,
                cci30_return=record.cci30_return,
                sp_ex_mega_return=record.sp_ex_mega_return,
                spx_return=record.spx_return,
                qqq_return=record.qqq_return,
                fund_expenses=record.fund_expenses,
                mgmt_fees=record.mgmt_fees,
                setup_costs=record.setup_costs,
                recorded_gp_subs=record.gp_subs,
                recorded_lp_subs=record.lp_subs,
                recorded_initial_value=record.initial_value,
            )
        )
        prev_ending = record.ending_value

    return rows
