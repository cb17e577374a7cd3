"""SQLite storage and data export."""

from .database import Database
from .exports import export_all, export_to_csv, export_to_parquet
from .models import (
    ExitRecord,
    InvestorFlowRecord,
    LedgerSnapshot,
    ManualPrice,
    MonthlyPerformanceRecord,
    TradeRecord,
)

__all__ = [
    "Database",
    "export_all",
    "export_to_csv",
    "export_to_parquet",
    "ExitRecord",
    "InvestorFlowRecord",
    "LedgerSnapshot",
    "ManualPrice",
    "MonthlyPerformanceRecord",
    "TradeRecord",
]
