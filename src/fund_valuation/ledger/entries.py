"""Validated construction of ledger records from manual entry (forms, CLI, API)."""

from ..storage.models import (
    BENCHMARK_FIELDS,
    ExitRecord,
    InvestorFlowRecord,
    MonthlyPerformanceRecord,
    TradeRecord,
)
from .normalize import (
    derive_trade_amounts,
    is_blank,
    normalize_token,
    parse_date,
    parse_month,
    parse_number,
    validate_investor_kind,
    validate_trade_kind,
)

MONTHLY_INPUT_FIELDS = (
    "gp_subs",
    "lp_subs",
    "initial_value",
    "ending_value",
    *BENCHMARK_FIELDS,
    "fund_expenses",
    "mgmt_fees",
    "setup_costs",
)


def build_trade(
    token,
    units,
    kind="Buy",
    date=None,
    avg_price=None,
    total=None,
    notes: str | None = None,
    trade_id: int | None = None,
) -> TradeRecord:
    """
    Build a TradeRecord from manual input.

    Raises ValueError for a missing token, non-numeric or zero units, an unknown
    kind, or when neither avg_price nor total is given for a Buy or Sell.
    """
    symbol = normalize_token(token)
    parsed_units = parse_number(units)
    if parsed_units is None or parsed_units == 0:
        raise ValueError("units must be a non-zero number")
    trade_kind = validate_trade_kind(kind)

    parsed_price = parse_number(avg_price)
    parsed_total = parse_number(total)
    if parsed_price is None and parsed_total is None and trade_kind != "Income":
        raise ValueError("one of avg_price or total is required")
    parsed_price, parsed_total = derive_trade_amounts(parsed_units, parsed_price, parsed_total)

    return TradeRecord(
        id=trade_id,
        date=parse_date(date),
        token=symbol,
        units=abs(parsed_units),
        avg_price=parsed_price,
        total=abs(parsed_total) if parsed_total is not None else None,
        kind=trade_kind,
        notes=None if is_blank(notes) else str(notes).strip(),
    )


def build_investor_flow(month, client, kind, amount, flow_id: int | None = None) -> InvestorFlowRecord:
    """Build an InvestorFlowRecord; amount keeps its sign (negative is a redemption)."""
    if is_blank(client):
        raise ValueError("client is required")
    parsed_amount = parse_number(amount)
    if parsed_amount is None:
        raise ValueError("amount is required")
    return InvestorFlowRecord(
        id=flow_id,
        month=parse_month(month),
        client=str(client).strip(),
        kind=validate_investor_kind(kind),
        amount=parsed_amount,
    )


def build_exit(token, cost_basis, exit_date=None, exit_id: int | None = None) -> ExitRecord:
    parsed_cost = parse_number(cost_basis)
    if parsed_cost is None:
        raise ValueError("cost_basis is required")
    return ExitRecord(
        id=exit_id,
        token=normalize_token(token),
        cost_basis=parsed_cost,
        exit_date=None if is_blank(exit_date) else parse_date(exit_date),
    )


def build_monthly_record(month, **values) -> MonthlyPerformanceRecord:
    """Build a monthly record; omitted or blank numeric fields are stored as 0."""
    unknown = set(values) - set(MONTHLY_INPUT_FIELDS)
    if unknown:
        raise ValueError(f"unknown monthly fields: {', '.join(sorted(unknown))}")
    numbers = {}
    for name in MONTHLY_INPUT_FIELDS:
        parsed = parse_number(values.get(name))
        numbers[name] = parsed if parsed is not None else 0.0
    return MonthlyPerformanceRecord(id=None, month=parse_month(month), **numbers)
