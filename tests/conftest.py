"""Shared fixtures."""

import httpx
import pytest

from fund_valuation.config import Config
from fund_valuation.storage.database import Database
from fund_valuation.storage.models import (
    ExitRecord,
    InvestorFlowRecord,
    MonthlyPerformanceRecord,
    TradeRecord,
)


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("FUNDVAL_DB", raising=False)
    return Config(base_dir=tmp_path, cmc_api_key="test-key")


@pytest.fixture
def db(tmp_path):
    with Database(db_path=tmp_path / "test.db") as database:
        yield database


def trade(token, units, kind="Buy", total=None, date="2024-01-15", trade_id=None, avg_price=None):
    return TradeRecord(
        id=trade_id,
        date=date,
        token=token,
        units=units,
        avg_price=avg_price,
        total=total,
        kind=kind,
    )


def flow(amount, kind="LP", month="2024-01", client="Alice"):
    return InvestorFlowRecord(id=None, month=month, client=client, kind=kind, amount=amount)


def month_record(month, **values):
    return MonthlyPerformanceRecord(id=None, month=month, **values)


def exit_record(token, cost_basis):
    return ExitRecord(id=None, token=token, cost_basis=cost_basis)


def cmc_payload(prices: dict[str, float]) -> dict:
    """A v2 quotes/latest body with one asset per symbol."""
    return {
        "status": {"error_code": 0},
        "data": {
            symbol: [
                {
                    "name": f"{symbol} coin",
                    "quote": {
                        "USD": {
                            "price": price,
                            "percent_change_24h": 1.0,
                            "percent_change_7d": 2.0,
                            "percent_change_30d": None,
                            "percent_change_60d": 4.0,
                            "market_cap": 1000.0,
                            "volume_24h": 10.0,
                        }
                    },
                }
            ]
            for symbol, price in prices.items()
        },
    }


class Upstream:
    """Scripted upstream: returns the given prices, or fails when failing is set."""

    def __init__(self, prices: dict[str, float]) -> None:
        self.prices = prices
        self.failing = False
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failing:
            return httpx.Response(503, json={"status": {"error_message": "down"}})
        return httpx.Response(200, json=cmc_payload(self.prices))


@pytest.fixture
def upstream():
    return Upstream({"BTC": 60000.0, "ETH": 3000.0})
