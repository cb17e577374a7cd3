"""Spreadsheet ingestion for trades and investor flows."""

import io
import logging
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from ..storage.database import Database
from ..storage.models import InvestorFlowRecord, TradeRecord
from .normalize import (
    derive_trade_amounts,
    is_blank,
    normalize_investor_kind,
    normalize_token,
    normalize_trade_kind,
    parse_date,
    parse_month,
    parse_number,
    parse_signed_amount,
)

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")
SUPPORTED_SUFFIXES = (*EXCEL_SUFFIXES, ".csv")

# Only the first few row errors and skipped rows are reported back
MAX_REPORTED_ERRORS = 10

# Canonical field -> column headers tried in order (matched case-insensitively)
TRADE_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "token": ("Token", "Symbol"),
    "date": ("Date",),
    "units": ("Units", "Quantity", "Qty"),
    "avg_price": ("Avg Price", "Avg. Price", "avg_price", "Price", "AvgPrice"),
    "total": ("Total Bot", "Total", "Amount", "TotalBot"),
    "kind": ("Buy/Sell/Income", "Type", "Side", "Action"),
}

INVESTOR_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "month": ("Month",),
    "client": ("Client",),
    "kind": ("GP / LP", "GP/LP", "Type"),
    "amount": ("Amount",),
}


class ImportFileError(Exception):
    """The uploaded file could not be read or holds no rows."""


@dataclass
class ImportReport:
    """Outcome of a bulk import."""

    imported: int = 0
    skipped: int = 0
    total: int = 0
    skip_reasons: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    # One {"row", "reason", <label>} entry per skipped row, in sheet order
    skipped_rows: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "imported": self.imported,
            "skipped": self.skipped,
            "total": self.total,
            "skip_reasons": dict(self.skip_reasons),
            "errors": self.errors[:MAX_REPORTED_ERRORS],
            "skipped_rows": self.skipped_rows[:MAX_REPORTED_ERRORS],
        }


class _RowSkipped(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def read_sheet(source: Path | str | bytes, filename: str | None = None) -> pd.DataFrame:
    """
    Read the first sheet of an Excel workbook, or a CSV file, into a DataFrame.

    Args:
        source: A file path, or the raw bytes of an upload
        filename: Original filename, used to pick the reader for raw bytes

    Raises:
        ImportFileError: The file type is unsupported, unreadable, or has no rows
    """
    if isinstance(source, (bytes, bytearray)):
        name = filename or ""
        handle = io.BytesIO(source)
    else:
        name = str(source)
        handle = source

    suffix = Path(name).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ImportFileError("Only Excel and CSV files are allowed")

    try:
        if suffix == ".csv":
            df = pd.read_csv(handle, dtype=str, skipinitialspace=True)
        else:
            df = pd.read_excel(handle, sheet_name=0)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ImportFileError(f"Could not read {name or 'upload'}: {e}") from e

    df = df.dropna(how="all")
    if df.empty:
        raise ImportFileError("No data found in the file")

    logger.debug("Read %d rows from %s (columns: %s)", len(df), name, list(df.columns))
    return df


def resolve_columns(columns, aliases: dict[str, tuple[str, ...]]) -> dict[str, list[str]]:
    """Map each canonical field to the sheet columns that can supply it, in preference order."""
    by_key = {}
    for column in columns:
        by_key.setdefault(str(column).strip().lower(), []).append(column)

    resolved: dict[str, list[str]] = {}
    for canonical, names in aliases.items():
        matches: list[str] = []
        for name in names:
            for column in by_key.get(name.strip().lower(), []):
                if column not in matches:
                    matches.append(column)
        resolved[canonical] = matches
    return resolved


def _pick(row: pd.Series, columns: list[str]):
    """First non-blank value among the candidate columns."""
    for column in columns:
        value = row[column]
        if not is_blank(value):
            return value
    return None


def _trade_from_row(row: pd.Series, columns: dict[str, list[str]]) -> TradeRecord:
    token = _pick(row, columns["token"])
    if is_blank(token):
        raise _RowSkipped("no_token")

    try:
        units = parse_number(_pick(row, columns["units"]))
    except ValueError:
        raise _RowSkipped("invalid_units") from None
    if units is None:
        raise _RowSkipped("invalid_units")
    if units == 0:
        raise _RowSkipped("zero_units")

    avg_price = parse_number(_pick(row, columns["avg_price"]))
    total = parse_number(_pick(row, columns["total"]))
    avg_price, total = derive_trade_amounts(units, avg_price, total)

    return TradeRecord(
        id=None,
        date=parse_date(_pick(row, columns["date"])),
        token=normalize_token(token),
        units=abs(units),
        avg_price=avg_price,
        total=abs(total) if total else None,
        kind=normalize_trade_kind(_pick(row, columns["kind"])),
    )


def _flow_from_row(row: pd.Series, columns: dict[str, list[str]]) -> InvestorFlowRecord:
    client = _pick(row, columns["client"])
    if is_blank(client):
        raise _RowSkipped("no_client")

    raw_amount = _pick(row, columns["amount"])
    try:
        amount = parse_signed_amount(raw_amount)
    except ValueError:
        raise _RowSkipped("invalid_amount") from None
    if amount == 0:
        raise _RowSkipped("invalid_amount")

    return InvestorFlowRecord(
        id=None,
        month=parse_month(_pick(row, columns["month"])),
        client=str(client).strip(),
        kind=normalize_investor_kind(_pick(row, columns["kind"])),
        amount=amount,
    )


def _convert_rows(
    df: pd.DataFrame, aliases: dict, convert, label: str
) -> tuple[list, ImportReport]:
    """Convert sheet rows into records; `label` names the field echoed for skipped rows."""
    columns = resolve_columns(df.columns, aliases)
    report = ImportReport(total=len(df))
    reasons: Counter = Counter()
    records = []

    # Row numbers in messages are spreadsheet rows: header is row 1
    for index, row in df.iterrows():
        row_number = int(index) + 2
        try:
            records.append(convert(row, columns))
        except _RowSkipped as skip:
            reason = skip.reason
            logger.debug("Row %d skipped: %s", row_number, reason)
        except (ValueError, OverflowError) as e:
            reason = "other"
            report.errors.append(f"Row {row_number}: {e}")
            logger.debug("Row %d skipped: %s", row_number, e)
        else:
            continue

        reasons[reason] += 1
        value = _pick(row, columns[label])
        if value is not None:
            value = str(value).strip()
        report.skipped_rows.append({"row": row_number, "reason": reason, label: value})

    report.skipped = sum(reasons.values())
    report.skip_reasons = dict(reasons)
    return records, report


def import_trades(
    db: Database, source: Path | str | bytes, filename: str | None = None
) -> ImportReport:
    """
    Import trades from a spreadsheet.

    Bad rows are skipped with a reason code (no_token, zero_units,
    invalid_units, other); the rest are inserted in one transaction.
    """
    df = read_sheet(source, filename)
    trades, report = _convert_rows(df, TRADE_COLUMN_ALIASES, _trade_from_row, "token")
    report.imported = db.insert_trades(trades)
    logger.info(
        "Trade import complete: %d imported, %d skipped of %d",
        report.imported,
        report.skipped,
        report.total,
    )
    return report


def import_investor_flows(
    db: Database, source: Path | str | bytes, filename: str | None = None
) -> ImportReport:
    """
    Import investor subscriptions and redemptions from a spreadsheet.

    Expected columns: Month, Client, GP / LP, Amount. Skip reasons are
    no_client, invalid_amount and other.
    """
    df = read_sheet(source, filename)
    flows, report = _convert_rows(df, INVESTOR_COLUMN_ALIASES, _flow_from_row, "client")
    report.imported = db.insert_investor_flows(flows)
    logger.info(
        "Investor import complete: %d imported, %d skipped of %d",
        report.imported,
        report.skipped,
        report.total,
    )
    return report
