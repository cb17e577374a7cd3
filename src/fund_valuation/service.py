"""Request-scoped orchestration of the valuation pipeline."""

import logging
from dataclasses import dataclass
from datetime import date

from .analysis.cash import CashBalance, compute_cash_balance
from .analysis.checker import Reconciliation, reconcile, token_detail
from .analysis.holdings import DUST_THRESHOLD, Holding, aggregate_holdings
from .analysis.performance import MonthlyPerformance, build_performance_table
from .analysis.returns import Returns, compute_returns
from .analysis.summary import FundSummary, summarize_fund
from .analysis.valuation import Valuation, valuate
from .config import Config, TrackedToken, load_tokens
from .pricing.client import CoinMarketCapClient, Quote
from .pricing.resolver import PriceResolver
from .storage.database import Database
from .storage.models import LedgerSnapshot

logger = logging.getLogger(__name__)


@dataclass
class PortfolioView:
    """Valuation, cash and returns computed from one ledger snapshot."""

    valuation: Valuation
    cash: CashBalance
    returns: Returns

    def to_dict(self) -> dict:
        data = self.valuation.to_dict()
        data["cash"] = self.cash.to_dict()
        data["returns"] = self.returns.to_dict()
        return data


@dataclass
class WatchedToken:
    symbol: str
    sector: str
    quote: Quote | None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "sector": self.sector,
            **(self.quote.to_dict() if self.quote else {"price": None}),
        }


class FundService:
    """
    Wires the ledger store and price client to the pure analysis functions.

    Every call reads a fresh ledger snapshot; nothing derived is cached between
    calls. The only shared state is the price client's quote snapshot.
    """

    def __init__(
        self,
        db: Database,
        price_client: CoinMarketCapClient | None = None,
        config: Config | None = None,
    ) -> None:
        self.db = db
        self.price_client = price_client
        self.config = config or db.config

    @property
    def dust_threshold(self) -> float:
        return self.config.dust_threshold if self.config else DUST_THRESHOLD

    def snapshot(self) -> LedgerSnapshot:
        return self.db.snapshot()

    def resolver(self, snapshot: LedgerSnapshot, extra_symbols=()) -> PriceResolver:
        """Build a price resolver for every token in the ledger."""
        symbols = {t.token for t in snapshot.trades} | set(extra_symbols)
        return PriceResolver.from_client(self.price_client, snapshot.manual_prices, symbols)

    def holdings(self) -> list[Holding]:
        return aggregate_holdings(self.db.get_all_trades(), self.dust_threshold)

    def cash_balance(self) -> CashBalance:
        s = self.snapshot()
        return compute_cash_balance(s.flows, s.trades, s.perf_records, s.exits)

    def quotes(self) -> dict[str, Quote]:
        """Live and manual quotes keyed by token; unpriced tokens are absent."""
        return self.resolver(self.snapshot()).quotes()

    def portfolio(self, as_of: date | None = None) -> PortfolioView:
        """Value the portfolio and compute MTD/YTD/since-inception returns."""
        s = self.snapshot()
        holdings = aggregate_holdings(s.trades, self.dust_threshold)
        cash = compute_cash_balance(s.flows, s.trades, s.perf_records, s.exits)
        valuation = valuate(holdings, self.resolver(s), cash.usdc_balance)
        returns = compute_returns(
            s.perf_records, valuation.total_value, cash.total_subscriptions, as_of=as_of
        )
        logger.debug(
            "Valued %d holdings at %.2f (usdc %.2f)",
            len(valuation.holdings),
            valuation.total_value,
            cash.usdc_balance,
        )
        return PortfolioView(valuation=valuation, cash=cash, returns=returns)

    def reconciliation(self) -> Reconciliation:
        s = self.snapshot()
        return reconcile(
            s.trades, s.flows, s.perf_records, s.exits, self.resolver(s), self.dust_threshold
        )

    def token_detail(self, token: str) -> dict:
        return token_detail(token, self.db.get_trades_for_token(token))

    def performance_table(self) -> list[MonthlyPerformance]:
        return build_performance_table(
            self.db.get_all_monthly_records(), self.db.get_all_investor_flows()
        )

    def summary(self) -> FundSummary:
        return summarize_fund(self.db.get_all_investor_flows(), self.db.get_all_monthly_records())

    def sector_watch(self, tokens: list[TrackedToken] | None = None) -> list[WatchedToken]:
        """Tracked tokens with their quotes, largest market cap first."""
        if tokens is None:
            tokens = load_tokens(self.config) if self.config else []
        s = self.snapshot()
        resolver = self.resolver(s, extra_symbols=[t.symbol for t in tokens])
        watched = [WatchedToken(t.symbol, t.sector, resolver.quote(t.symbol)) for t in tokens]
        watched.sort(key=lambda w: (-(w.quote.market_cap or 0.0) if w.quote else 0.0, w.symbol))
        return watched
