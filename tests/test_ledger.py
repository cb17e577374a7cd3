"""Tests for value normalization, manual entry and spreadsheet import."""

from datetime import date, datetime

import pandas as pd
import pytest

from fund_valuation.ledger.entries import (
    build_exit,
    build_investor_flow,
    build_monthly_record,
    build_trade,
)
from fund_valuation.ledger.importer import (
    ImportFileError,
    import_investor_flows,
    import_trades,
    read_sheet,
    resolve_columns,
    TRADE_COLUMN_ALIASES,
)
from fund_valuation.ledger.normalize import (
    derive_trade_amounts,
    normalize_investor_kind,
    normalize_trade_kind,
    parse_date,
    parse_month,
    parse_number,
    parse_signed_amount,
)


class TestNormalize:
    def test_parse_number(self):
        assert parse_number("$1,234.50") == 1234.5
        assert parse_number(7) == 7.0
        assert parse_number("  ") is None
        assert parse_number(float("nan")) is None
        with pytest.raises(ValueError):
            parse_number("abc")

    def test_parse_signed_amount(self):
        assert parse_signed_amount("(5,000)") == -5000
        assert parse_signed_amount("-5000") == -5000
        assert parse_signed_amount("$12,000") == 12000
        assert parse_signed_amount(2500) == 2500
        with pytest.raises(ValueError):
            parse_signed_amount("n/a")

    def test_derive_trade_amounts(self):
        assert derive_trade_amounts(2, None, 5000) == (2500, 5000)
        assert derive_trade_amounts(2, 2500, None) == (2500, 5000)
        assert derive_trade_amounts(-4, None, 100) == (25, 100)
        assert derive_trade_amounts(3, None, None) == (None, None)

    def test_trade_kind(self):
        assert normalize_trade_kind("sell") == "Sell"
        assert normalize_trade_kind("INCOME") == "Income"
        assert normalize_trade_kind("swap") == "Buy"
        assert normalize_trade_kind(None) == "Buy"

    def test_investor_kind(self):
        assert normalize_investor_kind("gp") == "GP"
        assert normalize_investor_kind("GP Commit") == "GP"
        assert normalize_investor_kind("Limited") == "LP"

    def test_parse_date(self):
        assert parse_date("3/7/2024") == "2024-03-07"
        assert parse_date("2024-3-7") == "2024-03-07"
        assert parse_date(45292) == "2024-01-01"
        assert parse_date(datetime(2024, 5, 6, 12, 30)) == "2024-05-06"
        assert parse_date(None, default=date(2024, 1, 2)) == "2024-01-02"
        assert parse_date("2024-01-05 00:00:00") == "2024-01-05"
        with pytest.raises(ValueError):
            parse_date("yesterday")
        with pytest.raises(ValueError, match="unrecognized date"):
            parse_date("2024-01-05junk")
        with pytest.raises(ValueError, match="out of range"):
            parse_date(5e6)

    def test_parse_month(self):
        assert parse_month("Jun-22") == "2022-06"
        assert parse_month("June-2022") == "2022-06"
        assert parse_month("Sep 2023") == "2023-09"
        assert parse_month("2024-3") == "2024-03"
        assert parse_month("2024-06-15") == "2024-06"
        assert parse_month(date(2024, 11, 30)) == "2024-11"
        with pytest.raises(ValueError):
            parse_month("2024-13")
        with pytest.raises(ValueError, match="invalid month"):
            parse_month("2024-13-05")
        with pytest.raises(ValueError):
            parse_month("2024-02-30")
        with pytest.raises(ValueError):
            parse_month("someday")


class TestEntries:
    def test_build_trade_derives_price(self):
        t = build_trade("btc", "0.5", "buy", date="2024-01-15", total="$30,000")
        assert t.token == "BTC"
        assert t.kind == "Buy"
        assert t.avg_price == 60000
        assert t.total == 30000

    def test_sell_units_stored_positive(self):
        t = build_trade("ETH", -2, "Sell", avg_price=2500)
        assert t.units == 2
        assert t.total == 5000
        assert t.signed_units() == -2
        assert t.signed_cost() == -5000

    def test_income_needs_no_price(self):
        t = build_trade("ETH", 0.1, "Income")
        assert t.total is None
        assert t.signed_cost() == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"token": "", "units": 1, "total": 1},
            {"token": "BTC", "units": 0, "total": 1},
            {"token": "BTC", "units": "lots", "total": 1},
            {"token": "BTC", "units": 1},
            {"token": "BTC", "units": 1, "total": 1, "kind": "Swap"},
        ],
    )
    def test_build_trade_rejects(self, kwargs):
        with pytest.raises(ValueError):
            build_trade(**kwargs)

    def test_build_investor_flow(self):
        f = build_investor_flow("Jun-22", " Alice ", "lp", "-2,000")
        assert (f.month, f.client, f.kind, f.amount) == ("2022-06", "Alice", "LP", -2000)
        with pytest.raises(ValueError):
            build_investor_flow("2024-01", "Bob", "XP", 100)
        with pytest.raises(ValueError):
            build_investor_flow("2024-01", "", "GP", 100)

    def test_build_exit(self):
        e = build_exit("luna", "3,000")
        assert e.token == "LUNA"
        assert e.cost_basis == 3000
        assert e.exit_date is None

    def test_build_monthly_record(self):
        r = build_monthly_record("Jan-24", ending_value="1,000", mgmt_fees=20, setup_costs="")
        assert r.month == "2024-01"
        assert r.ending_value == 1000
        assert r.setup_costs == 0
        assert r.expenses == 20
        with pytest.raises(ValueError, match="unknown"):
            build_monthly_record("2024-01", bogus=1)


TRADES_CSV = b"""Date,Token,Units,Avg Price,Total Bot,Buy/Sell/Income
1/15/2024,btc,0.5,,"$30,000",Buy
2024-02-01,ETH,2,2500,,Sell
2024-02-10,SOL,10,,,Income
2024-03-01,,5,1,5,Buy
2024-03-01,ARB,abc,1,5,Buy
2024-03-01,OP,0,1,5,Buy
bad-date,DOGE,1,1,1,Buy
"""

INVESTORS_CSV = b"""Month,Client,GP / LP,Amount
Jun-22,Alice,LP,"10,000"
Jul-22,Bob,GP,"(5,000)"
Aug-22,,LP,100
Sep-22,Carol,LP,abc
Oct-22,Dan,LP,0
garbage,Eve,LP,100
"""


class TestImporter:
    def test_import_trades_csv(self, db):
        report = import_trades(db, TRADES_CSV, "trades.csv")

        assert report.total == 7
        assert report.imported == 3
        assert report.skipped == 4
        assert report.skip_reasons == {
            "no_token": 1,
            "invalid_units": 1,
            "zero_units": 1,
            "other": 1,
        }
        assert report.errors == ["Row 8: unrecognized date: 'bad-date'"]
        assert report.skipped_rows == [
            {"row": 5, "reason": "no_token", "token": None},
            {"row": 6, "reason": "invalid_units", "token": "ARB"},
            {"row": 7, "reason": "zero_units", "token": "OP"},
            {"row": 8, "reason": "other", "token": "DOGE"},
        ]

        by_token = {t.token: t for t in db.get_all_trades()}
        assert set(by_token) == {"BTC", "ETH", "SOL"}
        assert by_token["BTC"].date == "2024-01-15"
        assert by_token["BTC"].avg_price == 60000
        assert by_token["ETH"].kind == "Sell"
        assert by_token["ETH"].total == 5000
        assert by_token["SOL"].kind == "Income"
        assert by_token["SOL"].total is None

    def test_report_dict(self, db):
        data = import_trades(db, TRADES_CSV, "trades.csv").to_dict()
        assert data["success"] is True
        assert data["imported"] + data["skipped"] == data["total"]
        assert len(data["skipped_rows"]) == data["skipped"]

    def test_report_dict_caps_skipped_rows(self, db):
        rows = "".join(f"T{i},0,1\n" for i in range(15))
        data = import_trades(db, f"Token,Units,Total\n{rows}".encode(), "zeros.csv").to_dict()
        assert data["skipped"] == 15
        assert len(data["skipped_rows"]) == 10
        assert data["skipped_rows"][0] == {"row": 2, "reason": "zero_units", "token": "T0"}

    def test_import_investors_csv(self, db):
        report = import_investor_flows(db, INVESTORS_CSV, "investors.csv")

        assert report.imported == 2
        assert report.skip_reasons == {"no_client": 1, "invalid_amount": 2, "other": 1}
        flows = {f.client: f for f in db.get_all_investor_flows()}
        assert flows["Alice"].month == "2022-06"
        assert flows["Alice"].amount == 10000
        assert flows["Bob"].kind == "GP"
        assert flows["Bob"].amount == -5000
        assert [(s["row"], s["reason"], s["client"]) for s in report.skipped_rows] == [
            (4, "no_client", None),
            (5, "invalid_amount", "Carol"),
            (6, "invalid_amount", "Dan"),
            (7, "other", "Eve"),
        ]

    def test_import_trades_xlsx_aliases(self, db, tmp_path):
        path = tmp_path / "trades.xlsx"
        pd.DataFrame(
            {
                "Date": [datetime(2024, 4, 2), datetime(2024, 4, 3)],
                "Symbol": ["link", "LINK"],
                "Qty": [100, 40],
                "Price": [15.0, 18.0],
                "Side": ["Buy", "Sell"],
            }
        ).to_excel(path, index=False)

        report = import_trades(db, path)
        assert report.imported == 2
        trades = db.get_trades_for_token("link")
        assert [t.date for t in trades] == ["2024-04-02", "2024-04-03"]
        assert [t.total for t in trades] == [1500, 720]
        assert [t.kind for t in trades] == ["Buy", "Sell"]

    def test_out_of_range_serial_skips_row(self, db, tmp_path):
        path = tmp_path / "serials.xlsx"
        pd.DataFrame(
            {
                "Date": [45000, 5e6],
                "Token": ["BTC", "ETH"],
                "Units": [1, 2],
                "Total Bot": [30000, 5000],
            }
        ).to_excel(path, index=False)

        report = import_trades(db, path)
        assert report.imported == 1
        assert report.skip_reasons == {"other": 1}
        assert report.skipped_rows == [{"row": 3, "reason": "other", "token": "ETH"}]
        assert "out of range" in report.errors[0]
        [stored] = db.get_all_trades()
        assert stored.token == "BTC"
        assert stored.date == "2023-03-15"

    def test_resolve_columns_case_insensitive(self):
        columns = resolve_columns(["TOKEN", "qty", "total"], TRADE_COLUMN_ALIASES)
        assert columns["token"] == ["TOKEN"]
        assert columns["units"] == ["qty"]
        assert columns["total"] == ["total"]
        assert columns["date"] == []

    def test_rejects_unsupported_type(self):
        with pytest.raises(ImportFileError, match="Only Excel and CSV"):
            read_sheet(b"a,b\n1,2\n", "data.txt")

    def test_rejects_empty_sheet(self):
        with pytest.raises(ImportFileError, match="No data"):
            read_sheet(b"Token,Units\n", "empty.csv")

    def test_rejects_corrupt_workbook(self, db):
        with pytest.raises(ImportFileError):
            import_trades(db, b"definitely not a workbook", "broken.xlsx")
        assert db.get_all_trades() == []
