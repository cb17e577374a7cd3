"""Fund valuation CLI."""

import json
import logging
import os
from pathlib import Path

import click

from .analysis.checker import Reconciliation
from .config import Config, TrackedToken, get_config, load_tokens, save_tokens
from .ledger.entries import build_exit, build_investor_flow, build_monthly_record, build_trade
from .ledger.importer import ImportFileError, ImportReport, import_investor_flows, import_trades
from .pricing.client import CoinMarketCapClient
from .reports.portfolio_report import generate_portfolio_report
from .service import FundService
from .storage.database import Database
from .storage.exports import EXPORT_TABLES, export_to_csv, export_to_parquet


# =============================================================================
# Helpers
# =============================================================================


def validate_output_path(output: str, config: Config) -> Path:
    """
    Validate that an output path is safe (no path traversal).

    Raises:
        click.ClickException: If path is outside allowed directories
    """
    output_path = Path(output).resolve()

    allowed_bases = [
        config.base_dir.resolve(),
        config.artifacts_dir.resolve(),
        Path.cwd().resolve(),
        Path.home().resolve(),
    ]

    for base in allowed_bases:
        try:
            output_path.relative_to(base)
            return output_path
        except ValueError:
            continue

    raise click.ClickException(
        f"Output path must be within the project directory, artifacts, "
        f"current directory, or home directory. Got: {output_path}"
    )


def _log_level(verbose: bool) -> str:
    """Level from --verbose or FUNDVAL_LOG_LEVEL; unknown names fall back to WARNING."""
    if verbose:
        return "DEBUG"
    level = os.environ.get("FUNDVAL_LOG_LEVEL", "WARNING").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        return "WARNING"
    return level


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=_log_level(verbose),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def _print_markdown(content: str) -> None:
    """Print markdown content with rich formatting."""
    from rich.console import Console
    from rich.markdown import Markdown
    console = Console()
    console.print(Markdown(content))


def _money(value: float | None) -> str:
    if value is None:
        return "-"
    return f"${value:,.2f}"


def _pct(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:+.2f}%"


def _invalid(e: ValueError) -> click.ClickException:
    return click.ClickException(str(e))


def _open(config: Config, symbols=()) -> tuple[CoinMarketCapClient, Database]:
    """Quote client and database for commands that need live prices."""
    return CoinMarketCapClient(config, symbols), Database(config)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Fund Valuation - crypto fund ledger, valuation and reconciliation."""
    ctx.ensure_object(dict)
    _setup_logging(verbose)
    ctx.obj["config"] = get_config()


# =============================================================================
# Ledger entry
# =============================================================================


@cli.command("add-trade")
@click.option("--token", required=True, help="Token symbol")
@click.option("--units", required=True, type=float, help="Number of units")
@click.option("--type", "kind", type=click.Choice(["Buy", "Sell", "Income"], case_sensitive=False), default="Buy")
@click.option("--date", "trade_date", help="Trade date YYYY-MM-DD (default: today)")
@click.option("--price", "avg_price", type=float, help="Average price per unit")
@click.option("--total", type=float, help="Total cost or proceeds")
@click.option("--notes", help="Free-text notes")
@click.pass_context
def add_trade(
    ctx: click.Context,
    token: str,
    units: float,
    kind: str,
    trade_date: str | None,
    avg_price: float | None,
    total: float | None,
    notes: str | None,
) -> None:
    """Record a Buy, Sell or Income trade."""
    config = ctx.obj["config"]
    try:
        trade = build_trade(token, units, kind, trade_date, avg_price, total, notes)
    except ValueError as e:
        raise _invalid(e)

    with Database(config) as db:
        stored = db.insert_trade(trade)

    click.echo(
        f"Added trade #{stored.id}: {stored.kind} {stored.units:g} {stored.token} "
        f"for {_money(stored.total)} on {stored.date}"
    )


@cli.command("list-trades")
@click.option("--token", help="Only trades for this token")
@click.option("--limit", default=50, help="Maximum rows to show (default: 50)")
@click.pass_context
def list_trades(ctx: click.Context, token: str | None, limit: int) -> None:
    """List trades, newest first."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    with Database(config) as db:
        trades = db.get_trades_for_token(token)[::-1] if token else db.get_all_trades()

    if not trades:
        click.echo("No trades recorded. Use 'add-trade' or 'import-trades'.")
        return

    table = Table(title=f"Trades ({len(trades)})")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Token", style="cyan")
    table.add_column("Type")
    table.add_column("Units", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("Total", justify="right")

    for t in trades[:limit]:
        table.add_row(
            str(t.id),
            t.date,
            t.token,
            t.kind,
            f"{t.units:,.6g}",
            _money(t.avg_price),
            _money(t.total),
        )

    Console().print(table)


@cli.command("delete-trade")
@click.argument("trade_id", type=int)
@click.pass_context
def delete_trade(ctx: click.Context, trade_id: int) -> None:
    """Delete a trade by ID."""
    config = ctx.obj["config"]
    with Database(config) as db:
        if not db.delete_trade(trade_id):
            raise click.ClickException(f"Trade {trade_id} not found")
    click.echo(f"Deleted trade #{trade_id}")


@cli.command("clear-trades")
@click.confirmation_option(prompt="Delete every trade?")
@click.pass_context
def clear_trades(ctx: click.Context) -> None:
    """Delete all trades (before a re-import)."""
    config = ctx.obj["config"]
    with Database(config) as db:
        deleted = db.clear_trades()
    click.echo(f"Deleted {deleted} trade(s)")


@cli.command("add-investor")
@click.option("--month", required=True, help="Month, e.g. 2024-06 or Jun-24")
@click.option("--client", "client_name", required=True, help="Investor name")
@click.option("--type", "kind", type=click.Choice(["GP", "LP"], case_sensitive=False), required=True)
@click.option("--amount", required=True, type=float, help="Subscription (negative for redemption)")
@click.pass_context
def add_investor(ctx: click.Context, month: str, client_name: str, kind: str, amount: float) -> None:
    """Record an investor subscription or redemption."""
    config = ctx.obj["config"]
    try:
        flow = build_investor_flow(month, client_name, kind, amount)
    except ValueError as e:
        raise _invalid(e)

    with Database(config) as db:
        stored = db.insert_investor_flow(flow)
    click.echo(f"Added {stored.kind} flow #{stored.id}: {stored.client} {_money(stored.amount)} ({stored.month})")


@cli.command("list-investors")
@click.pass_context
def list_investors(ctx: click.Context) -> None:
    """List investor flows, newest month first."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    with Database(config) as db:
        flows = db.get_all_investor_flows()

    if not flows:
        click.echo("No investor flows recorded.")
        return

    table = Table(title="Investor Flows")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Month")
    table.add_column("Client", style="cyan")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    for f in flows:
        style = "red" if f.amount < 0 else None
        table.add_row(str(f.id), f.month, f.client, f.kind, _money(f.amount), style=style)

    Console().print(table)


@cli.command("add-exit")
@click.option("--token", required=True, help="Token symbol")
@click.option("--cost-basis", required=True, type=float, help="Cost basis removed from cash")
@click.option("--date", "exit_date", help="Exit date YYYY-MM-DD")
@click.pass_context
def add_exit(ctx: click.Context, token: str, cost_basis: float, exit_date: str | None) -> None:
    """Record a fully exited position."""
    config = ctx.obj["config"]
    try:
        record = build_exit(token, cost_basis, exit_date)
    except ValueError as e:
        raise _invalid(e)

    with Database(config) as db:
        stored = db.insert_exit(record)
    click.echo(f"Added exit #{stored.id}: {stored.token} {_money(stored.cost_basis)}")


@cli.command("list-exits")
@click.pass_context
def list_exits(ctx: click.Context) -> None:
    """List exited positions."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    with Database(config) as db:
        exits = db.get_all_exits()

    if not exits:
        click.echo("No exits recorded.")
        return

    table = Table(title="Exits")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Token", style="cyan")
    table.add_column("Cost Basis", justify="right")
    table.add_column("Exit Date")
    for e in exits:
        table.add_row(str(e.id), e.token, _money(e.cost_basis), e.exit_date or "-")
    table.add_row("", "Total", _money(sum(e.cost_basis for e in exits)), "", style="bold")

    Console().print(table)


@cli.command("set-month")
@click.argument("month")
@click.option("--ending-value", type=float, help="Portfolio value at month end")
@click.option("--gp-subs", type=float)
@click.option("--lp-subs", type=float)
@click.option("--initial-value", type=float)
@click.option("--fund-return", type=float, help="Fund return for the month (%)")
@click.option("--btc", "btc_return", type=float, help="BTC return (%)")
@click.option("--eth", "eth_return", type=float, help="ETH return (%)")
@click.option("--cci30", "cci30_return", type=float, help="CCi30 return (%)")
@click.option("--sp-ex-mega", "sp_ex_mega_return", type=float, help="S&P ex mega-cap return (%)")
@click.option("--spx", "spx_return", type=float, help="S&P 500 return (%)")
@click.option("--qqq", "qqq_return", type=float, help="QQQ return (%)")
@click.option("--fund-expenses", type=float)
@click.option("--mgmt-fees", type=float)
@click.option("--setup-costs", type=float)
@click.pass_context
def set_month(ctx: click.Context, month: str, **values) -> None:
    """Create or overwrite the performance record for MONTH."""
    config = ctx.obj["config"]
    try:
        record = build_monthly_record(month, **values)
    except ValueError as e:
        raise _invalid(e)

    with Database(config) as db:
        stored = db.upsert_monthly_record(record)
    click.echo(f"Saved {stored.month}: ending value {_money(stored.ending_value)}")


@cli.command("perf")
@click.pass_context
def perf(ctx: click.Context) -> None:
    """Show the monthly performance table."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    with Database(config) as db:
        rows = FundService(db, None, config).performance_table()

    if not rows:
        click.echo("No monthly records. Use 'set-month' to add one.")
        return

    table = Table(title="Monthly Performance")
    table.add_column("Month")
    table.add_column("GP Subs", justify="right")
    table.add_column("LP Subs", justify="right")
    table.add_column("Expenses", justify="right")
    table.add_column("Initial", justify="right")
    table.add_column("Ending", justify="right")
    table.add_column("Return", justify="right")
    table.add_column("Cumulative", justify="right")
    table.add_column("BTC", justify="right")
    table.add_column("ETH", justify="right")
    for r in rows:
        table.add_row(
            r.month,
            _money(r.gp_subs),
            _money(r.lp_subs),
            _money(r.expenses),
            _money(r.initial_value),
            _money(r.ending_value),
            _pct(r.month_return),
            _pct(r.cumulative_return),
            _pct(r.btc_return),
            _pct(r.eth_return),
        )

    Console().print(table)


@cli.command("set-price")
@click.argument("token")
@click.argument("price", type=float)
@click.pass_context
def set_price(ctx: click.Context, token: str, price: float) -> None:
    """Set a manual price for a token without a live quote."""
    config = ctx.obj["config"]
    if price < 0:
        raise click.ClickException("Price cannot be negative")
    with Database(config) as db:
        stored = db.upsert_manual_price(token, price)
    click.echo(f"Manual price for {stored.token}: {_money(stored.price)}")


# =============================================================================
# Valuation
# =============================================================================


@cli.command("holdings")
@click.pass_context
def holdings(ctx: click.Context) -> None:
    """Show net positions and cost basis from the trade ledger."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    with Database(config) as db:
        rows = FundService(db, None, config).holdings()

    if not rows:
        click.echo("No open positions.")
        return

    table = Table(title="Holdings")
    table.add_column("Token", style="cyan")
    table.add_column("Units", justify="right")
    table.add_column("Cost Basis", justify="right")
    for h in rows:
        table.add_row(h.token, f"{h.total_units:,.6g}", _money(h.cost_basis))

    Console().print(table)


@cli.command("cash")
@click.pass_context
def cash(ctx: click.Context) -> None:
    """Show how the implied USDC balance is derived."""
    config = ctx.obj["config"]
    with Database(config) as db:
        balance = FundService(db, None, config).cash_balance()

    click.echo(f"Total subscriptions:   {_money(balance.total_subscriptions)}")
    click.echo(f"- Cost basis (ex USDC): {_money(balance.total_cost_basis)}")
    click.echo(f"- Expenses:             {_money(balance.total_expenses)}")
    click.echo(f"- Exits cost basis:     {_money(balance.exits_cost_basis)}")
    click.echo(f"= USDC balance:         {_money(balance.usdc_balance)}")


@cli.command("quotes")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def quotes(ctx: click.Context, as_json: bool) -> None:
    """Show prices for held tokens (live, else manual)."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    client, database = _open(config)
    with client, database as db:
        result = FundService(db, client, config).quotes()

    if as_json:
        click.echo(json.dumps({k: q.to_dict() for k, q in result.items()}, indent=2))
        return

    if not result:
        click.echo("No quotes available.")
        return

    table = Table(title="Quotes")
    table.add_column("Token", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("7d", justify="right")
    table.add_column("Source")
    for token, q in result.items():
        table.add_row(
            token,
            f"${q.price:,.6g}",
            _pct(q.percent_change_24h),
            _pct(q.percent_change_7d),
            "manual" if q.is_manual else "live",
        )

    Console().print(table)


@cli.command("value")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def value(ctx: click.Context, as_json: bool) -> None:
    """Value the portfolio at current prices and show returns."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    client, database = _open(config)
    with client, database as db:
        view = FundService(db, client, config).portfolio()

    if as_json:
        click.echo(json.dumps(view.to_dict(), indent=2))
        return

    v = view.valuation
    table = Table(title=f"Portfolio Value {_money(v.total_value)}")
    table.add_column("Token", style="cyan")
    table.add_column("Units", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Cost Basis", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("24h", justify="right")
    for h in v.holdings:
        label = h.token + (" *" if h.is_manual else "")
        table.add_row(
            label,
            f"{h.total_units:,.6g}",
            f"${h.price:,.6g}",
            _money(h.market_value),
            _money(h.cost_basis),
            _money(h.pnl),
            f"{h.weight:.2f}%",
            _pct(h.percent_change_24h),
            style="red" if not h.has_live_quote and not h.is_manual and not h.is_cash else None,
        )

    console = Console()
    console.print(table)
    r = view.returns
    console.print(
        f"Cost basis {_money(v.total_cost_basis)}  P&L {_money(v.total_pnl)}  "
        f"MTD {_pct(r.mtd)}  YTD {_pct(r.ytd)}  Since inception {_pct(r.since_inception)}"
    )
    if any(h.is_manual for h in v.holdings):
        console.print("[dim]* manual price[/dim]")


def _print_reconciliation(recon: Reconciliation) -> None:
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title="Reconciliation by Token")
    table.add_column("Token", style="cyan")
    table.add_column("Bought", justify="right")
    table.add_column("Sold", justify="right")
    table.add_column("Income", justify="right")
    table.add_column("Net Units", justify="right")
    table.add_column("Buy Total", justify="right")
    table.add_column("Sell Total", justify="right")
    table.add_column("Cost Basis", justify="right")
    table.add_column("Trades", justify="right")
    for b in recon.holdings:
        table.add_row(
            b.token,
            f"{b.buy_units:,.6g}",
            f"{b.sell_units:,.6g}",
            f"{b.income_units:,.6g}",
            f"{b.net_units:,.6g}",
            _money(b.buy_total),
            _money(b.sell_total),
            _money(b.cost_basis),
            str(b.trade_count),
        )
    console.print(table)

    calc = recon.calculations
    console.print(
        f"Subscriptions {_money(calc['total_subscriptions'])} "
        f"(GP {_money(recon.investors['gp_total'])}, LP {_money(recon.investors['lp_total'])})"
    )
    console.print(
        f"Expenses {_money(recon.expenses['total'])} "
        f"(fund {_money(recon.expenses['fund_expenses'])}, mgmt {_money(recon.expenses['mgmt_fees'])}, "
        f"setup {_money(recon.expenses['setup_costs'])})"
    )
    console.print(f"Exits cost basis {_money(recon.exits_cost_basis)}")
    console.print(f"USDC balance {_money(calc['usdc_balance'])}")

    if not recon.flags:
        console.print("[green]No issues found.[/green]")
    for flag in recon.flags:
        color = "red" if flag["severity"] == "error" else "yellow"
        console.print(f"[{color}]{flag['severity'].upper()}[/{color}] {flag['type']}: {flag['message']}")


@cli.command("check")
@click.option("--token", help="Drill down into one token's trades")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def check(ctx: click.Context, token: str | None, as_json: bool) -> None:
    """Reconcile every number back to the ledger and flag anomalies."""
    config = ctx.obj["config"]
    client, database = _open(config)
    with client, database as db:
        service = FundService(db, client, config)
        if token:
            detail = service.token_detail(token)
        else:
            recon = service.reconciliation()

    if token:
        if as_json:
            click.echo(json.dumps(detail, indent=2))
            return
        _print_token_detail(detail)
        return

    if as_json:
        click.echo(recon.to_json())
        return
    _print_reconciliation(recon)


def _print_token_detail(detail: dict) -> None:
    from rich.console import Console
    from rich.table import Table

    if not detail["trades"]:
        click.echo(f"No trades for {detail['token']}.")
        return

    table = Table(title=f"{detail['token']} trades")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Units", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Running Units", justify="right")
    for t in detail["trades"]:
        table.add_row(t["date"], t["kind"], f"{t['units']:,.6g}", _money(t["total"]), f"{t['running_units']:,.6g}")

    console = Console()
    console.print(table)
    console.print(
        f"Net units {detail['net_units']:,.6g}  Cost basis {_money(detail['cost_basis'])}  "
        f"Trades {detail['trade_count']}"
    )


@cli.command("report")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.pass_context
def report(ctx: click.Context, output: str | None) -> None:
    """Generate a markdown portfolio report."""
    config = ctx.obj["config"]
    client, database = _open(config)
    with client, database as db:
        report_md = generate_portfolio_report(FundService(db, client, config))

    if output:
        output_path = validate_output_path(output, config)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report_md)
        click.echo(f"Report saved to: {output_path}")
    else:
        _print_markdown(report_md)


@cli.command("summary")
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Show subscriptions, expenses and the latest monthly record."""
    config = ctx.obj["config"]
    with Database(config) as db:
        s = FundService(db, None, config).summary()

    click.echo(f"GP subscriptions:  {_money(s.gp_total)}")
    click.echo(f"LP subscriptions:  {_money(s.lp_total)}")
    click.echo(f"Total:             {_money(s.total_subscriptions)}")
    click.echo(f"Fund expenses:     {_money(s.fund_expenses)}")
    click.echo(f"Management fees:   {_money(s.mgmt_fees)}")
    click.echo(f"Setup costs:       {_money(s.setup_costs)}")
    if s.latest_record:
        click.echo(f"Latest month:      {s.latest_record.month} (ending {_money(s.latest_record.ending_value)})")


# =============================================================================
# Import / export
# =============================================================================


def _echo_import_report(report: ImportReport) -> None:
    click.echo(f"Imported {report.imported} of {report.total} rows ({report.skipped} skipped)")
    for reason, count in sorted(report.skip_reasons.items()):
        click.echo(f"  {reason}: {count}")
    for skipped in report.to_dict()["skipped_rows"]:
        label = next((v for k, v in skipped.items() if k not in ("row", "reason")), None)
        suffix = f" ({label})" if label else ""
        click.echo(f"  Row {skipped['row']}: {skipped['reason']}{suffix}")
    for error in report.to_dict()["errors"]:
        click.echo(f"  {error}")


@cli.command("import-trades")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_trades_cmd(ctx: click.Context, file: str) -> None:
    """Import trades from an Excel or CSV file."""
    config = ctx.obj["config"]
    with Database(config) as db:
        try:
            report = import_trades(db, Path(file))
        except ImportFileError as e:
            raise click.ClickException(str(e))
    _echo_import_report(report)


@cli.command("import-investors")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_investors_cmd(ctx: click.Context, file: str) -> None:
    """Import investor flows from an Excel or CSV file."""
    config = ctx.obj["config"]
    with Database(config) as db:
        try:
            report = import_investor_flows(db, Path(file))
        except ImportFileError as e:
            raise click.ClickException(str(e))
    _echo_import_report(report)


@cli.command("stats")
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show ledger row counts and trade date range."""
    config = ctx.obj["config"]
    with Database(config) as db:
        s = db.ledger_stats()
    click.echo(f"Trades:    {s['trades']}")
    click.echo(f"Investors: {s['investors']}")
    click.echo(f"Oldest:    {s['oldest_trade'] or '-'}")
    click.echo(f"Newest:    {s['newest_trade'] or '-'}")


@cli.command("export")
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet"]), default="csv")
@click.option("--table", "tables", multiple=True, type=click.Choice(EXPORT_TABLES), help="Table(s) to export (default: all)")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def export(ctx: click.Context, fmt: str, tables: tuple[str, ...], output: str | None) -> None:
    """Export ledger tables to CSV or Parquet."""
    config = ctx.obj["config"]

    if output:
        output_path = validate_output_path(output, config)
    else:
        output_path = config.artifacts_dir / "exports"
    output_path.mkdir(parents=True, exist_ok=True)

    with Database(config) as db:
        for table in tables or EXPORT_TABLES:
            if fmt == "csv":
                path = export_to_csv(db, table, output_path)
            else:
                path = export_to_parquet(db, table, output_path)
            click.echo(f"Exported: {path}")


# =============================================================================
# Tracked tokens
# =============================================================================


@cli.command("add-token")
@click.argument("symbol")
@click.option("--sector", default=None, help="Sector label")
@click.pass_context
def add_token(ctx: click.Context, symbol: str, sector: str | None) -> None:
    """Add a token to the tracked (sector watch) list."""
    config = ctx.obj["config"]
    tokens = load_tokens(config)
    symbol = symbol.strip().upper()
    if not symbol:
        raise click.ClickException("Symbol is required")

    for t in tokens:
        if t.symbol == symbol:
            if sector:
                t.sector = sector
                save_tokens(config, tokens)
                click.echo(f"Updated {symbol} sector: {sector}")
            else:
                click.echo(f"Token '{symbol}' already tracked.")
            return

    token = TrackedToken(symbol=symbol, sector=sector) if sector else TrackedToken(symbol=symbol)
    tokens.append(token)
    save_tokens(config, tokens)
    click.echo(f"Tracking {symbol} ({token.sector})")


@cli.command("list-tokens")
@click.option("--prices", is_flag=True, help="Include quotes, sorted by market cap")
@click.pass_context
def list_tokens(ctx: click.Context, prices: bool) -> None:
    """List tracked tokens."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    tokens = load_tokens(config)
    if not tokens:
        click.echo("No tracked tokens. Use 'add-token' to add one.")
        return

    console = Console()
    if not prices:
        table = Table(title="Tracked Tokens")
        table.add_column("Symbol", style="cyan")
        table.add_column("Sector")
        for t in sorted(tokens, key=lambda t: (t.sector, t.symbol)):
            table.add_row(t.symbol, t.sector)
        console.print(table)
        return

    client, database = _open(config, [t.symbol for t in tokens])
    with client, database as db:
        watched = FundService(db, client, config).sector_watch(tokens)

    table = Table(title="Sector Watch")
    table.add_column("Symbol", style="cyan")
    table.add_column("Sector")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("7d", justify="right")
    table.add_column("30d", justify="right")
    table.add_column("Market Cap", justify="right")
    for w in watched:
        q = w.quote
        table.add_row(
            w.symbol,
            w.sector,
            f"${q.price:,.6g}" if q else "-",
            _pct(q.percent_change_24h) if q else "-",
            _pct(q.percent_change_7d) if q else "-",
            _pct(q.percent_change_30d) if q else "-",
            _money(q.market_cap) if q and q.market_cap else "-",
        )
    console.print(table)


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the JSON API."""
    import uvicorn

    from .api import create_app

    config = ctx.obj["config"]
    uvicorn.run(create_app(config), host=host, port=port)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
