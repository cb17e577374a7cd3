"""Tests for the SQLite ledger store and exports."""

import sqlite3

import pandas as pd
import pytest

from fund_valuation.config import Config
from fund_valuation.ledger.entries import build_monthly_record, build_trade
from fund_valuation.storage.database import Database
from fund_valuation.storage.exports import export_all, table_to_dataframe

from conftest import exit_record, flow, trade


class TestTrades:
    def test_insert_and_get(self, db):
        stored = db.insert_trade(trade("BTC", 1, total=30000, avg_price=30000))
        assert stored.id is not None
        assert db.get_trade(stored.id).token == "BTC"
        assert db.get_trade(stored.id).kind == "Buy"

    def test_ordering(self, db):
        db.insert_trade(trade("A", 1, total=1, date="2024-01-01"))
        db.insert_trade(trade("B", 1, total=1, date="2024-03-01"))
        db.insert_trade(trade("C", 1, total=1, date="2024-03-01"))
        assert [t.token for t in db.get_all_trades()] == ["C", "B", "A"]

    def test_update_missing_returns_none(self, db):
        assert db.update_trade(999, trade("BTC", 1, total=1)) is None

    def test_update(self, db):
        stored = db.insert_trade(trade("BTC", 1, total=100))
        updated = db.update_trade(stored.id, build_trade("ETH", 2, "Sell", total=300))
        assert updated.token == "ETH"
        assert updated.kind == "Sell"
        assert updated.total == 300

    def test_delete_and_clear(self, db):
        stored = db.insert_trade(trade("BTC", 1, total=1))
        db.insert_trades([trade("ETH", 1, total=1), trade("SOL", 1, total=1)])
        assert db.delete_trade(stored.id) is True
        assert db.delete_trade(stored.id) is False
        assert db.clear_trades() == 2
        assert db.get_all_trades() == []

    def test_kind_constraint(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            db.insert_trade(trade("BTC", 1, kind="Swap", total=1))


class TestMonthlyAndPrices:
    def test_upsert_overwrites_month(self, db):
        db.upsert_monthly_record(build_monthly_record("2024-01", ending_value=100))
        first = db.get_monthly_record("2024-01")
        db.upsert_monthly_record(build_monthly_record("2024-01", ending_value=250, mgmt_fees=5))

        records = db.get_all_monthly_records()
        assert len(records) == 1
        assert records[0].id == first.id
        assert records[0].ending_value == 250
        assert records[0].mgmt_fees == 5

    def test_monthly_order_and_delete(self, db):
        later = db.upsert_monthly_record(build_monthly_record("2024-03"))
        db.upsert_monthly_record(build_monthly_record("2024-01"))
        assert [r.month for r in db.get_all_monthly_records()] == ["2024-01", "2024-03"]
        assert db.delete_monthly_record(later.id) is True
        assert db.get_monthly_record_by_id(later.id) is None

    def test_manual_price_upsert(self, db):
        db.upsert_manual_price("kntq", 0.5)
        db.upsert_manual_price("KNTQ", 0.75)
        assert db.get_manual_prices() == {"KNTQ": 0.75}
        assert db.delete_manual_price("kntq") is True
        assert db.get_manual_prices() == {}


class TestFlowsAndStats:
    def test_flows_and_exits(self, db):
        db.insert_investor_flow(flow(1000, month="2024-01"))
        db.insert_investor_flow(flow(-200, month="2024-02", client="Bob"))
        assert [f.month for f in db.get_all_investor_flows()] == ["2024-02", "2024-01"]
        assert db.clear_investor_flows() == 2

        stored = db.insert_exit(exit_record("LUNA", 3000))
        assert db.get_all_exits()[0].cost_basis == 3000
        assert db.delete_exit(stored.id) is True

    def test_ledger_stats(self, db):
        db.insert_trades(
            [trade("A", 1, total=1, date="2023-05-01"), trade("B", 1, total=1, date="2024-02-01")]
        )
        db.insert_investor_flows([flow(100)])
        assert db.ledger_stats() == {
            "trades": 2,
            "investors": 1,
            "oldest_trade": "2023-05-01",
            "newest_trade": "2024-02-01",
        }

    def test_snapshot(self, db):
        db.insert_trade(trade("BTC", 1, total=100))
        db.insert_investor_flow(flow(500))
        db.upsert_manual_price("KNTQ", 0.5)
        snap = db.snapshot()
        assert [t.token for t in snap.trades] == ["BTC"]
        assert [f.amount for f in snap.flows] == [500]
        assert snap.manual_prices == {"KNTQ": 0.5}
        assert db.conn.in_transaction is False

    def test_snapshot_blocks_writes_between_reads(self, db, monkeypatch):
        db.insert_trade(trade("BTC", 1, total=100))
        writer = sqlite3.connect(db.db_path, timeout=0)
        blocked = []
        read_flows = db.get_all_investor_flows

        def flows_after_concurrent_write():
            try:
                writer.execute(
                    "INSERT INTO investors (month, client, type, amount, created_at, updated_at) "
                    "VALUES ('2024-01', 'Late', 'LP', 1000, '', '')"
                )
                writer.commit()
            except sqlite3.OperationalError:
                writer.rollback()
                blocked.append(True)
            return read_flows()

        monkeypatch.setattr(db, "get_all_investor_flows", flows_after_concurrent_write)
        snap = db.snapshot()
        writer.close()

        assert blocked == [True]
        assert snap.flows == []
        assert db.conn.in_transaction is False
        # The connection is free for writes once the snapshot is taken
        db.insert_investor_flow(flow(200))
        assert len(db.get_all_investor_flows()) == 1

    def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "ledger.db"
        with Database(db_path=path) as db:
            db.insert_trade(trade("BTC", 1, total=1))
        with Database(db_path=path) as db:
            assert len(db.get_all_trades()) == 1

    def test_requires_path_or_config(self):
        with pytest.raises(ValueError):
            Database()


class TestExports:
    def test_holdings_frame(self, db):
        db.insert_trades([trade("BTC", 1, total=100), trade("ETH", 2, total=50)])
        df = table_to_dataframe(db, "holdings")
        assert list(df["token"]) == ["BTC", "ETH"]

    def test_holdings_frame_uses_configured_dust(self, tmp_path):
        config = Config(base_dir=tmp_path, cmc_api_key=None, dust_threshold=1.0)
        with Database(config, db_path=tmp_path / "dust.db") as db:
            db.insert_trades([trade("BTC", 2, total=100), trade("ETH", 0.5, total=50)])
            df = table_to_dataframe(db, "holdings")
        assert list(df["token"]) == ["BTC"]

    def test_unknown_table(self, db):
        with pytest.raises(ValueError):
            table_to_dataframe(db, "sqlite_master")

    def test_export_all_csv(self, db, tmp_path):
        db.insert_trade(trade("BTC", 1, total=100))
        out = tmp_path / "out"
        export_all(db, out, "csv")
        frame = pd.read_csv(out / "trades.csv")
        assert frame.loc[0, "token"] == "BTC"
