"""Portfolio report generator."""

from datetime import date, datetime

from ..analysis.checker import Reconciliation
from ..analysis.performance import MonthlyPerformance
from ..service import FundService, PortfolioView


def _format_value(value: float) -> str:
    """Format a USD value for display."""
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value >= 1_000_000_000:
        return f"{sign}${value / 1_000_000_000:.2f}B"
    elif value >= 1_000_000:
        return f"{sign}${value / 1_000_000:.2f}M"
    elif value >= 1_000:
        return f"{sign}${value / 1_000:.1f}K"
    else:
        return f"{sign}${value:.2f}"


def _format_pct(pct: float | None) -> str:
    """Format a percentage with sign."""
    if pct is None:
        return "N/A"
    return f"{pct:+.2f}%"


def _format_units(units: float) -> str:
    if abs(units) >= 1:
        return f"{units:,.2f}"
    return f"{units:.6f}"


def _returns_section(view: PortfolioView) -> list[str]:
    r = view.returns
    lines = ["## Returns", ""]
    lines.append("| Period | Return | Base Value |")
    lines.append("|--------|--------|------------|")
    lines.append(f"| MTD | {_format_pct(r.mtd)} | {_format_value(r.beginning_of_month_value)} |")
    lines.append(f"| YTD | {_format_pct(r.ytd)} | {_format_value(r.year_start_value)} |")
    lines.append(
        f"| Since Inception | {_format_pct(r.since_inception)} | {_format_value(r.initial_value)} |"
    )
    lines.append("")
    return lines


def _holdings_section(view: PortfolioView) -> list[str]:
    lines = ["## Holdings", ""]
    if not view.valuation.holdings:
        lines.append("No open positions.")
        lines.append("")
        return lines

    lines.append("| Token | Units | Price | Value | Cost Basis | P&L | Weight | 24h |")
    lines.append("|-------|-------|-------|-------|------------|-----|--------|-----|")
    for h in view.valuation.holdings:
        token = h.token
        if h.is_manual:
            token += " (manual)"
        elif not h.has_live_quote and not h.is_cash:
            token += " (no price)"
        lines.append(
            f"| {token} | {_format_units(h.total_units)} | ${h.price:,.4f} | "
            f"{_format_value(h.market_value)} | {_format_value(h.cost_basis)} | "
            f"{_format_value(h.pnl)} | {h.weight:.2f}% | {_format_pct(h.percent_change_24h)} |"
        )
    lines.append("")
    return lines


def _cash_section(view: PortfolioView) -> list[str]:
    c = view.cash
    lines = ["## Implied Cash (USDC)", ""]
    lines.append(f"- Total subscriptions: {_format_value(c.total_subscriptions)}")
    lines.append(f"- Less cost basis of holdings: {_format_value(c.total_cost_basis)}")
    lines.append(f"- Less expenses: {_format_value(c.total_expenses)}")
    lines.append(f"- Less exits cost basis: {_format_value(c.exits_cost_basis)}")
    lines.append(f"- **USDC balance: {_format_value(c.usdc_balance)}**")
    lines.append("")
    return lines


def _performance_section(table: list[MonthlyPerformance], limit: int = 12) -> list[str]:
    lines = ["## Monthly Performance", ""]
    if not table:
        lines.append("No monthly records.")
        lines.append("")
        return lines

    lines.append("| Month | Initial | Ending | Return | Cumulative | BTC | ETH |")
    lines.append("|-------|---------|--------|--------|------------|-----|-----|")
    for row in table[-limit:]:
        lines.append(
            f"| {row.month} | {_format_value(row.initial_value)} | "
            f"{_format_value(row.ending_value)} | {_format_pct(row.month_return)} | "
            f"{_format_pct(row.cumulative_return)} | {_format_pct(row.btc_return)} | "
            f"{_format_pct(row.eth_return)} |"
        )
    lines.append("")
    return lines


def _flags_section(recon: Reconciliation) -> list[str]:
    lines = ["## Reconciliation Flags", ""]
    if not recon.flags:
        lines.append("No issues found.")
    for flag in recon.flags:
        lines.append(f"- **{flag['severity'].upper()}** `{flag['type']}`: {flag['message']}")
    lines.append("")
    return lines


def generate_portfolio_report(service: FundService, as_of: date | None = None) -> str:
    """
    Generate a markdown report of the current portfolio.

    Args:
        service: FundService bound to the ledger and price client
        as_of: Date used for MTD/YTD (default: today)

    Returns:
        Markdown report as string
    """
    view = service.portfolio(as_of=as_of)
    recon = service.reconciliation()
    table = service.performance_table()

    lines: list[str] = []
    lines.append("# Portfolio Valuation")
    lines.append("")
    lines.append(f"**As of:** {(as_of or date.today()).isoformat()}")
    lines.append(f"**Total Value:** {_format_value(view.valuation.total_value)}")
    lines.append(f"**Total Cost Basis:** {_format_value(view.valuation.total_cost_basis)}")
    lines.append(f"**Total P&L:** {_format_value(view.valuation.total_pnl)}")
    lines.append("")

    lines.extend(_returns_section(view))
    lines.extend(_holdings_section(view))
    lines.extend(_cash_section(view))
    lines.extend(_performance_section(table))
    lines.extend(_flags_section(recon))

    lines.append("---")
    lines.append(f"*Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}*")
    return "\n".join(lines)
