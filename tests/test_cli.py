"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from fund_valuation.cli import _log_level, cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("FUNDVAL_HOME", str(tmp_path))
    monkeypatch.delenv("FUNDVAL_DB", raising=False)
    monkeypatch.delenv("COINMARKETCAP_API_KEY", raising=False)
    return CliRunner()


def invoke(runner, *args):
    result = runner.invoke(cli, list(args), obj={})
    assert result.exit_code == 0, result.output
    return result


class TestLedgerCommands:
    def test_add_trade_and_cash(self, runner):
        invoke(runner, "add-investor", "--month", "Jan-24", "--client", "Alice", "--type", "LP", "--amount", "150000")
        result = invoke(runner, "add-trade", "--token", "btc", "--units", "2", "--total", "100000", "--date", "2024-01-05")
        assert "Added trade #1: Buy 2 BTC for $100,000.00 on 2024-01-05" in result.output
        invoke(runner, "set-month", "2024-01", "--fund-expenses", "3000", "--mgmt-fees", "1500", "--setup-costs", "500")

        result = invoke(runner, "cash")
        assert "= USDC balance:         $45,000.00" in result.output

    def test_invalid_trade(self, runner):
        result = runner.invoke(cli, ["add-trade", "--token", "BTC", "--units", "0", "--total", "5"], obj={})
        assert result.exit_code == 1
        assert "units must be a non-zero number" in result.output

    def test_import_trades(self, runner, tmp_path):
        path = tmp_path / "trades.csv"
        path.write_text("Token,Units,Total Bot\nETH,2,5000\nOP,0,10\n")
        result = invoke(runner, "import-trades", str(path))
        assert "Imported 1 of 2 rows (1 skipped)" in result.output
        assert "zero_units: 1" in result.output
        assert "Row 3: zero_units (OP)" in result.output

        result = invoke(runner, "stats")
        assert "Trades:    1" in result.output


class TestReportingCommands:
    def test_check_json_without_price_feed(self, runner):
        invoke(runner, "add-trade", "--token", "XYZ", "--units", "5", "--total", "50")
        result = invoke(runner, "check", "--json")
        data = json.loads(result.output)
        assert {f["type"] for f in data["flags"]} == {"missing_price", "negative_cash", "no_subscriptions"}

    def test_manual_price_used_in_value(self, runner):
        invoke(runner, "add-investor", "--month", "2024-01", "--client", "Alice", "--type", "LP", "--amount", "100")
        invoke(runner, "add-trade", "--token", "KNTQ", "--units", "10", "--total", "50")
        invoke(runner, "set-price", "kntq", "3")

        data = json.loads(invoke(runner, "value", "--json").output)
        kntq = data["holdings"][0]
        assert kntq["token"] == "KNTQ"
        assert kntq["market_value"] == 30
        assert kntq["is_manual"] is True
        assert data["total_value"] == 80

    def test_export(self, runner, tmp_path):
        invoke(runner, "add-trade", "--token", "BTC", "--units", "1", "--total", "10")
        out = tmp_path / "exports"
        result = invoke(runner, "export", "--table", "trades", "-o", str(out))
        assert "trades.csv" in result.output
        assert (out / "trades.csv").exists()


class TestLogging:
    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("FUNDVAL_LOG_LEVEL", "info")
        assert _log_level(False) == "INFO"
        assert _log_level(True) == "DEBUG"

    def test_unknown_log_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("FUNDVAL_LOG_LEVEL", "foo")
        assert _log_level(False) == "WARNING"

    def test_command_runs_with_unknown_log_level(self, runner, monkeypatch):
        monkeypatch.setenv("FUNDVAL_LOG_LEVEL", "foo")
        result = invoke(runner, "stats")
        assert "Trades:    0" in result.output


class TestTrackedTokens:
    def test_add_token(self, runner):
        result = invoke(runner, "add-token", "zora", "--sector", "DeFi")
        assert "Tracking ZORA (DeFi)" in result.output
        result = invoke(runner, "add-token", "ZORA")
        assert "already tracked" in result.output
