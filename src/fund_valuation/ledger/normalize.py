"""Normalization of raw ledger values (tokens, dates, months, amounts)."""

import math
import numbers
import re
from datetime import date, datetime, timedelta

import pandas as pd

from ..storage.models import INVESTOR_KINDS, TRADE_KINDS

# Excel stores dates as days since 1899-12-30
EXCEL_EPOCH = date(1899, 12, 30)

_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
# Optional time part as written by spreadsheets ("2024-01-05 00:00:00")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?$")
_NAMED_MONTH = re.compile(r"^([A-Za-z]+)[-\s](\d{2}|\d{4})$")
_ISO_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")

_MONTH_NAMES = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


def is_blank(value) -> bool:
    """True for None, NaN and empty/whitespace strings."""
    if value is None:
        return True
    # NaN and NaT from pandas-read sheets
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def normalize_token(value) -> str:
    """Uppercase and strip a token symbol. Raises ValueError when empty."""
    if is_blank(value):
        raise ValueError("token is required")
    return str(value).strip().upper()


def normalize_trade_kind(value) -> str:
    """Map a free-text side to Buy, Sell or Income; anything unrecognized is a Buy."""
    if is_blank(value):
        return "Buy"
    lowered = str(value).strip().lower()
    for kind in TRADE_KINDS:
        if lowered == kind.lower():
            return kind
    return "Buy"


def normalize_investor_kind(value) -> str:
    """GP when the text mentions GP, otherwise LP."""
    if is_blank(value):
        return "LP"
    return "GP" if "GP" in str(value).upper() else "LP"


def parse_number(value) -> float | None:
    """
    Parse a spreadsheet or form number.

    Strips currency symbols and thousands separators. Blank values return None;
    text that is not a number raises ValueError.
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, numbers.Real):
        return float(value)
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        raise ValueError(f"not a number: {value!r}") from None
    if math.isnan(number):
        return None
    return number


def parse_signed_amount(value) -> float:
    """
    Parse an investor amount where parentheses or a minus sign mean a redemption.

    "(5,000)" and "-5000" both give -5000.0.
    """
    if is_blank(value):
        raise ValueError("amount is required")
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if math.isnan(value):
            raise ValueError("amount is required")
        return float(value)
    text = str(value)
    cleaned = re.sub(r"[$,()]", "", text).strip()
    try:
        number = float(cleaned)
    except ValueError:
        raise ValueError(f"not a number: {value!r}") from None
    if math.isnan(number):
        raise ValueError(f"not a number: {value!r}")
    if "(" in text or "-" in text:
        return -abs(number)
    return number


def derive_trade_amounts(
    units: float, avg_price: float | None, total: float | None
) -> tuple[float | None, float | None]:
    """
    Fill in whichever of avg_price/total is missing.

    Returns (avg_price, total). A zero value counts as missing, so a row with
    only a total gets avg_price = |total / units| and a row with only a price
    gets total = avg_price * units.
    """
    if not avg_price and total and units:
        avg_price = abs(total / units)
    elif not total and avg_price and units:
        total = avg_price * units
    return avg_price, total


def excel_serial_to_date(serial: float) -> date:
    """Convert an Excel serial day number to a date."""
    try:
        return EXCEL_EPOCH + timedelta(days=int(serial))
    except OverflowError as e:
        raise ValueError(f"date serial out of range: {serial!r}") from e


def parse_date(value, default: date | None = None) -> str:
    """
    Parse a trade date into YYYY-MM-DD.

    Accepts date/datetime objects (including pandas Timestamps), Excel serial
    numbers, "M/D/YYYY" and "YYYY-M-D" strings. Blank values fall back to
    ``default`` (today when not given). Raises ValueError for text that matches
    none of these.
    """
    if is_blank(value):
        return (default or date.today()).isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return excel_serial_to_date(value).isoformat()

    text = str(value).strip()
    match = _SLASH_DATE.match(text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        return date(year, month, day).isoformat()
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return date(year, month, day).isoformat()
    raise ValueError(f"unrecognized date: {value!r}")


def parse_month(value) -> str:
    """
    Parse a month into YYYY-MM.

    Accepts "YYYY-MM", "Jun-22", "June-2022", "Jun 2022" and date objects.
    Two-digit years are taken as 20xx.
    """
    if is_blank(value):
        raise ValueError("month is required")
    if isinstance(value, (datetime, date)):
        return f"{value.year:04d}-{value.month:02d}"

    text = str(value).strip()
    match = _ISO_MONTH.match(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return f"{year:04d}-{month:02d}"
        raise ValueError(f"invalid month: {value!r}")

    # Full ISO dates keep only their month
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            date(year, month, day)
        except ValueError as e:
            raise ValueError(f"invalid month: {value!r}") from e
        return f"{year:04d}-{month:02d}"

    match = _NAMED_MONTH.match(text)
    if match:
        name, year_text = match.groups()
        name = name.lower()
        for index, prefix in enumerate(_MONTH_NAMES):
            if name.startswith(prefix):
                year = int(year_text)
                if len(year_text) == 2:
                    year += 2000
                return f"{year:04d}-{index + 1:02d}"
    raise ValueError(f"unrecognized month: {value!r}")


def validate_investor_kind(value: str) -> str:
    """Strict check for manual entry: kind must be GP or LP."""
    kind = str(value).strip().upper()
    if kind not in INVESTOR_KINDS:
        raise ValueError(f"investor type must be GP or LP, got {value!r}")
    return kind


def validate_trade_kind(value: str) -> str:
    """Strict check for manual entry: kind must be Buy, Sell or Income."""
    lowered = str(value).strip().lower()
    for kind in TRADE_KINDS:
        if lowered == kind.lower():
            return kind
    raise ValueError(f"trade type must be Buy, Sell or Income, got {value!r}")
