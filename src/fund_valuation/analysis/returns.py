"""MTD, YTD and since-inception returns."""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Iterable

from ..storage.models import MonthlyPerformanceRecord


@dataclass
class Returns:
    """Return percentages and the reference values they were computed from."""

    mtd: float
    ytd: float
    since_inception: float
    current_value: float
    beginning_of_month_value: float
    year_start_value: float
    initial_value: float

    def to_dict(self) -> dict:
        return asdict(self)


def _pct_change(current: float, base: float) -> float:
    if base <= 0:
        return 0.0
    return (current / base - 1) * 100


def compute_returns(
    perf_records: Iterable[MonthlyPerformanceRecord],
    current_total_value: float,
    total_subscriptions: float,
    as_of: date | None = None,
) -> Returns:
    """
    Compute returns of the current portfolio value against monthly records.

    - Month start: ending value of the last record before the current month,
      else total subscriptions.
    - Year start: ending value of the last record in the prior calendar year,
      else the month-start value.
    - Inception: GP + LP subscriptions of the first record, else total
      subscriptions.

    A zero ending value counts as missing. A non-positive base gives 0.0.
    """
    as_of = as_of or date.today()
    current_month = f"{as_of.year:04d}-{as_of.month:02d}"
    prior_year = f"{as_of.year - 1:04d}"

    records = sorted(perf_records, key=lambda r: r.month)

    before = [r for r in records if r.month < current_month]
    beginning_of_month_value = (before[-1].ending_value if before else 0.0) or total_subscriptions

    last_year = [r for r in records if r.month.startswith(prior_year)]
    year_start_value = (
        last_year[-1].ending_value if last_year else 0.0
    ) or beginning_of_month_value

    if records:
        initial_value = records[0].gp_subs + records[0].lp_subs
    else:
        initial_value = total_subscriptions

    return Returns(
        mtd=_pct_change(current_total_value, beginning_of_month_value),
        ytd=_pct_change(current_total_value, year_start_value),
        since_inception=_pct_change(current_total_value, initial_value),
        current_value=current_total_value,
        beginning_of_month_value=beginning_of_month_value,
        year_start_value=year_start_value,
        initial_value=initial_value,
    )
