"""Export ledger tables and holdings to CSV and Parquet formats."""

from pathlib import Path

import pandas as pd

from .database import Database

EXPORT_TABLES = ("trades", "investors", "exits", "perf_tracker", "holdings")


def table_to_dataframe(db: Database, table: str) -> pd.DataFrame:
    """Convert one ledger table (or the derived holdings list) to a DataFrame."""
    if table == "trades":
        rows = [t.to_dict() for t in db.get_all_trades()]
    elif table == "investors":
        rows = [f.to_dict() for f in db.get_all_investor_flows()]
    elif table == "exits":
        rows = [e.to_dict() for e in db.get_all_exits()]
    elif table == "perf_tracker":
        rows = [r.to_dict() for r in db.get_all_monthly_records()]
    elif table == "holdings":
        from ..analysis.holdings import DUST_THRESHOLD, aggregate_holdings

        threshold = db.config.dust_threshold if db.config else DUST_THRESHOLD
        rows = [h.to_dict() for h in aggregate_holdings(db.get_all_trades(), threshold)]
    else:
        raise ValueError(f"Unknown table {table!r}; expected one of {', '.join(EXPORT_TABLES)}")

    return pd.DataFrame(rows)


def export_to_csv(db: Database, table: str, output_path: Path) -> Path:
    """
    Export a ledger table to CSV.

    Args:
        db: Database instance
        table: One of EXPORT_TABLES
        output_path: Directory to write the CSV file

    Returns:
        Path to the created CSV file
    """
    df = table_to_dataframe(db, table)
    output_path.mkdir(parents=True, exist_ok=True)

    csv_path = output_path / f"{table}.csv"
    df.to_csv(csv_path, index=False)
    return csv_path


def export_to_parquet(db: Database, table: str, output_path: Path) -> Path:
    """
    Export a ledger table to Parquet.

    Args:
        db: Database instance
        table: One of EXPORT_TABLES
        output_path: Directory to write the Parquet file

    Returns:
        Path to the created Parquet file
    """
    df = table_to_dataframe(db, table)
    output_path.mkdir(parents=True, exist_ok=True)

    parquet_path = output_path / f"{table}.parquet"
    df.to_parquet(parquet_path, index=False)
    return parquet_path


def export_all(db: Database, output_path: Path, fmt: str = "csv") -> list[Path]:
    """Export every table in the given format ("csv" or "parquet")."""
    exporter = export_to_parquet if fmt == "parquet" else export_to_csv
    return [exporter(db, table, output_path) for table in EXPORT_TABLES]
