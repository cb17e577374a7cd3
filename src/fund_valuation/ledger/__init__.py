"""Ledger input: manual entry validation and spreadsheet import."""

from .entries import build_exit, build_investor_flow, build_monthly_record, build_trade
from .importer import ImportFileError, ImportReport, import_investor_flows, import_trades

__all__ = [
    "build_exit",
    "build_investor_flow",
    "build_monthly_record",
    "build_trade",
    "ImportFileError",
    "ImportReport",
    "import_investor_flows",
    "import_trades",
]
