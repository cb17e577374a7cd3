"""SQLite database management."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from ..config import Config
from .models import (
    BENCHMARK_FIELDS,
    ExitRecord,
    InvestorFlowRecord,
    LedgerSnapshot,
    ManualPrice,
    MonthlyPerformanceRecord,
    TradeRecord,
)

SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Buy/Sell/Income transactions
CREATE TABLE IF NOT EXISTS trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    token TEXT NOT NULL,
    units REAL NOT NULL,
    avg_price REAL,
    total REAL,
    type TEXT NOT NULL CHECK(type IN ('Buy', 'Sell', 'Income')),
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- GP and LP subscriptions/redemptions
CREATE TABLE IF NOT EXISTS investors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    month TEXT NOT NULL,
    client TEXT NOT NULL,
    type TEXT NOT NULL CHECK(type IN ('GP', 'LP')),
    amount REAL NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Monthly performance tracking
CREATE TABLE IF NOT EXISTS perf_tracker (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    month TEXT UNIQUE NOT NULL,
    gp_subs REAL DEFAULT 0,
    lp_subs REAL DEFAULT 0,
    initial_value REAL DEFAULT 0,
    ending_value REAL DEFAULT 0,
    fund_return REAL DEFAULT 0,
    btc_return REAL DEFAULT 0,
    eth_return REAL DEFAULT 0,
    cci30_return REAL DEFAULT 0,
    sp_ex_mega_return REAL DEFAULT 0,
    spx_return REAL DEFAULT 0,
    qqq_return REAL DEFAULT 0,
    fund_expenses REAL DEFAULT 0,
    mgmt_fees REAL DEFAULT 0,
    setup_costs REAL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Manual prices for tokens without a live quote
CREATE TABLE IF NOT EXISTS manual_prices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    token TEXT UNIQUE NOT NULL,
    price REAL NOT NULL,
    updated_at TEXT NOT NULL
);

-- Fully exited positions
CREATE TABLE IF NOT EXISTS exits (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    token TEXT NOT NULL,
    cost_basis REAL NOT NULL,
    exit_date TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_trades_token ON trades(token);
CREATE INDEX IF NOT EXISTS idx_trades_date ON trades(date);
CREATE INDEX IF NOT EXISTS idx_investors_month ON investors(month);
"""

_PERF_NUMERIC_FIELDS = (
    "gp_subs",
    "lp_subs",
    "initial_value",
    "ending_value",
    *BENCHMARK_FIELDS,
    "fund_expenses",
    "mgmt_fees",
    "setup_costs",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _trade_from_row(row: sqlite3.Row) -> TradeRecord:
    return TradeRecord(
        id=row["id"],
        date=row["date"],
        token=row["token"],
        units=row["units"],
        avg_price=row["avg_price"],
        total=row["total"],
        kind=row["type"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _flow_from_row(row: sqlite3.Row) -> InvestorFlowRecord:
    return InvestorFlowRecord(
        id=row["id"],
        month=row["month"],
        client=row["client"],
        kind=row["type"],
        amount=row["amount"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _exit_from_row(row: sqlite3.Row) -> ExitRecord:
    return ExitRecord(
        id=row["id"],
        token=row["token"],
        cost_basis=row["cost_basis"],
        exit_date=row["exit_date"],
        created_at=row["created_at"],
    )


def _perf_from_row(row: sqlite3.Row) -> MonthlyPerformanceRecord:
    return MonthlyPerformanceRecord(
        id=row["id"],
        month=row["month"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        **{name: row[name] or 0.0 for name in _PERF_NUMERIC_FIELDS},
    )


class Database:
    """SQLite ledger store."""

    def __init__(self, config: Config | None = None, db_path: Path | str | None = None) -> None:
        self.config = config
        if db_path is None:
            if config is None:
                raise ValueError("Database needs a config or an explicit db_path")
            db_path = config.db_path
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._migrate()

    def _migrate(self) -> None:
        """Run schema migrations."""
        cursor = self._conn.cursor()

        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if not cursor.fetchone():
            # Fresh database - create all tables
            cursor.executescript(SCHEMA)
            cursor.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            self._conn.commit()
            return

        cursor.execute("SELECT MAX(version) FROM schema_version")
        current_version = cursor.fetchone()[0] or 0

        if current_version < SCHEMA_VERSION:
            cursor.executescript(SCHEMA)
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            self._conn.commit()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Trade operations

    def insert_trade(self, trade: TradeRecord) -> TradeRecord:
        """Insert a trade and return it with its new ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO trades (date, token, units, avg_price, total, type, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                trade.date,
                trade.token,
                trade.units,
                trade.avg_price,
                trade.total,
                trade.kind,
                trade.notes,
                trade.created_at,
                trade.updated_at,
            ),
        )
        trade_id = cursor.fetchone()[0]
        self.conn.commit()
        return self.get_trade(trade_id)

    def insert_trades(self, trades: list[TradeRecord]) -> int:
        """Insert a batch of trades in one transaction, returning count inserted."""
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO trades (date, token, units, avg_price, total, type, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        t.date,
                        t.token,
                        t.units,
                        t.avg_price,
                        t.total,
                        t.kind,
                        t.notes,
                        t.created_at,
                        t.updated_at,
                    )
                    for t in trades
                ],
            )
        return len(trades)

    def get_trade(self, trade_id: int) -> TradeRecord | None:
        """Get a trade by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM trades WHERE id = ?", (trade_id,))
        row = cursor.fetchone()
        return _trade_from_row(row) if row else None

    def update_trade(self, trade_id: int, trade: TradeRecord) -> TradeRecord | None:
        """Overwrite a trade, returning the stored row or None if it does not exist."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE trades
            SET date = ?, token = ?, units = ?, avg_price = ?, total = ?, type = ?, notes = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                trade.date,
                trade.token,
                trade.units,
                trade.avg_price,
                trade.total,
                trade.kind,
                trade.notes,
                _now(),
                trade_id,
            ),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            return None
        return self.get_trade(trade_id)

    def delete_trade(self, trade_id: int) -> bool:
        """Delete a trade."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM trades WHERE id = ?", (trade_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def clear_trades(self) -> int:
        """Delete every trade, returning the number removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM trades")
        self.conn.commit()
        return cursor.rowcount

    def get_all_trades(self) -> list[TradeRecord]:
        """Get all trades, newest first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM trades ORDER BY date DESC, id DESC")
        return [_trade_from_row(row) for row in cursor.fetchall()]

    def get_trades_for_token(self, token: str) -> list[TradeRecord]:
        """Get all trades for one token, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM trades WHERE UPPER(token) = ? ORDER BY date ASC, id ASC",
            (token.strip().upper(),),
        )
        return [_trade_from_row(row) for row in cursor.fetchall()]

    # Investor flow operations

    def insert_investor_flow(self, flow: InvestorFlowRecord) -> InvestorFlowRecord:
        """Insert an investor flow and return it with its new ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO investors (month, client, type, amount, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (flow.month, flow.client, flow.kind, flow.amount, flow.created_at, flow.updated_at),
        )
        flow_id = cursor.fetchone()[0]
        self.conn.commit()
        return self.get_investor_flow(flow_id)

    def insert_investor_flows(self, flows: list[InvestorFlowRecord]) -> int:
        """Insert a batch of investor flows in one transaction."""
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO investors (month, client, type, amount, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (f.month, f.client, f.kind, f.amount, f.created_at, f.updated_at)
                    for f in flows
                ],
            )
        return len(flows)

    def get_investor_flow(self, flow_id: int) -> InvestorFlowRecord | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM investors WHERE id = ?", (flow_id,))
        row = cursor.fetchone()
        return _flow_from_row(row) if row else None

    def update_investor_flow(
        self, flow_id: int, flow: InvestorFlowRecord
    ) -> InvestorFlowRecord | None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE investors
            SET month = ?, client = ?, type = ?, amount = ?, updated_at = ?
            WHERE id = ?
            """,
            (flow.month, flow.client, flow.kind, flow.amount, _now(), flow_id),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            return None
        return self.get_investor_flow(flow_id)

    def delete_investor_flow(self, flow_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM investors WHERE id = ?", (flow_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def clear_investor_flows(self) -> int:
        """Delete every investor flow, returning the number removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM investors")
        self.conn.commit()
        return cursor.rowcount

    def get_all_investor_flows(self) -> list[InvestorFlowRecord]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM investors ORDER BY month DESC, id DESC")
        return [_flow_from_row(row) for row in cursor.fetchall()]

    # Exit operations

    def insert_exit(self, exit_record: ExitRecord) -> ExitRecord:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO exits (token, cost_basis, exit_date, created_at)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            (
                exit_record.token,
                exit_record.cost_basis,
                exit_record.exit_date,
                exit_record.created_at,
            ),
        )
        exit_id = cursor.fetchone()[0]
        self.conn.commit()
        return self.get_exit(exit_id)

    def get_exit(self, exit_id: int) -> ExitRecord | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM exits WHERE id = ?", (exit_id,))
        row = cursor.fetchone()
        return _exit_from_row(row) if row else None

    def update_exit(self, exit_id: int, exit_record: ExitRecord) -> ExitRecord | None:
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE exits SET token = ?, cost_basis = ?, exit_date = ? WHERE id = ?",
            (exit_record.token, exit_record.cost_basis, exit_record.exit_date, exit_id),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            return None
        return self.get_exit(exit_id)

    def delete_exit(self, exit_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM exits WHERE id = ?", (exit_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def clear_exits(self) -> int:
        """Delete every exit, returning the number removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM exits")
        self.conn.commit()
        return cursor.rowcount

    def get_all_exits(self) -> list[ExitRecord]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM exits ORDER BY exit_date DESC, id DESC")
        return [_exit_from_row(row) for row in cursor.fetchall()]

    # Monthly performance operations

    def upsert_monthly_record(self, record: MonthlyPerformanceRecord) -> MonthlyPerformanceRecord:
        """Insert or overwrite the record for a month."""
        columns = ", ".join(_PERF_NUMERIC_FIELDS)
        placeholders = ", ".join("?" for _ in _PERF_NUMERIC_FIELDS)
        updates = ",\n                ".join(
            f"{name} = excluded.{name}" for name in _PERF_NUMERIC_FIELDS
        )
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            INSERT INTO perf_tracker (month, {columns}, created_at, updated_at)
            VALUES (?, {placeholders}, ?, ?)
            ON CONFLICT(month) DO UPDATE SET
                {updates},
                updated_at = excluded.updated_at
            """,
            (
                record.month,
                *(float(getattr(record, name) or 0.0) for name in _PERF_NUMERIC_FIELDS),
                record.created_at,
                _now(),
            ),
        )
        self.conn.commit()
        return self.get_monthly_record(record.month)

    def get_monthly_record(self, month: str) -> MonthlyPerformanceRecord | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM perf_tracker WHERE month = ?", (month,))
        row = cursor.fetchone()
        return _perf_from_row(row) if row else None

    def get_monthly_record_by_id(self, record_id: int) -> MonthlyPerformanceRecord | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM perf_tracker WHERE id = ?", (record_id,))
        row = cursor.fetchone()
        return _perf_from_row(row) if row else None

    def delete_monthly_record(self, record_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM perf_tracker WHERE id = ?", (record_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def get_all_monthly_records(self) -> list[MonthlyPerformanceRecord]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM perf_tracker ORDER BY month ASC")
        return [_perf_from_row(row) for row in cursor.fetchall()]

    # Manual price operations

    def upsert_manual_price(self, token: str, price: float) -> ManualPrice:
        """Insert or update the manual price for a token."""
        token = token.strip().upper()
        updated_at = _now()
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO manual_prices (token, price, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(token) DO UPDATE SET
                price = excluded.price,
                updated_at = excluded.updated_at
            """,
            (token, float(price), updated_at),
        )
        self.conn.commit()
        return ManualPrice(token=token, price=float(price), updated_at=updated_at)

    def delete_manual_price(self, token: str) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM manual_prices WHERE token = ?", (token.strip().upper(),))
        self.conn.commit()
        return cursor.rowcount > 0

    def get_manual_prices(self) -> dict[str, float]:
        """Get all manual prices keyed by token."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT token, price FROM manual_prices ORDER BY token")
        return {row["token"]: row["price"] for row in cursor.fetchall()}

    # Query helpers

    def snapshot(self) -> LedgerSnapshot:
        """Read every ledger table for one request inside a single read transaction."""
        started = not self.conn.in_transaction
        if started:
            self.conn.execute("BEGIN")
        try:
            return LedgerSnapshot(
                trades=self.get_all_trades(),
                flows=self.get_all_investor_flows(),
                perf_records=self.get_all_monthly_records(),
                exits=self.get_all_exits(),
                manual_prices=self.get_manual_prices(),
            )
        finally:
            if started:
                self.conn.commit()

    def ledger_stats(self) -> dict:
        """Row counts and trade date range, shown after uploads."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*), MIN(date), MAX(date) FROM trades")
        trade_count, oldest, newest = cursor.fetchone()
        cursor.execute("SELECT COUNT(*) FROM investors")
        investor_count = cursor.fetchone()[0]
        return {
            "trades": trade_count,
            "investors": investor_count,
            "oldest_trade": oldest,
            "newest_trade": newest,
        }
