"""
Transform Layer - Row normalization.

Turns one raw row plus the file's ColumnMapping into a NormalizedTransaction:
ISO date, trimmed description, signed amount (negative = money out). Rows
that cannot be normalized raise RowError carrying the reason shown to users.

The date and amount helpers are also used by the PDF parser so that text
extracted from statements follows the same rules as tabular cells.
"""
import math
import numbers
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

from .dedupe import dedupe_hash
from .errors import RowError
from .models import ColumnMapping, ColumnId
from .schema import NormalizedTransaction, RawRow


# ─────────────────────────────────────────────────────────────
# Dates
# ─────────────────────────────────────────────────────────────

ISO_DATE = re.compile(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})')
NUMERIC_DATE = re.compile(r'^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})(?=$|[\sT])')
COMPACT_DATE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
SERIAL_DATE = re.compile(r'^\d{5}(\.\d+)?$')

TEXT_DATE_FORMATS = (
    "%d %b %Y", "%d %B %Y", "%d-%b-%Y", "%d-%b-%y", "%d %b %y",
    "%d/%b/%Y", "%b %d, %Y", "%B %d, %Y", "%b %d %Y",
)

# Spreadsheet serials count days from 1899-12-30
SERIAL_ORIGIN = "1899-12-30"
MAX_SERIAL = 2958465


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def serial_to_date(serial: float) -> Optional[str]:
    """Spreadsheet serial day number -> ISO date."""
    if not 0 < serial <= MAX_SERIAL:
        return None
    try:
        return pd.to_datetime(serial, unit="D", origin=SERIAL_ORIGIN).date().isoformat()
    except (ValueError, OverflowError):
        return None


def _expand_year(year: str) -> Optional[int]:
    if len(year) == 4:
        return int(year)
    if len(year) == 2:
        century = date.today().year // 100 * 100
        return century + int(year)
    return None


def _build_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a raw date cell to ISO YYYY-MM-DD.

    Accepts ISO strings (time suffix ignored), DD/MM/YYYY and DD-MM-YYYY,
    MM/DD/YYYY when the middle part cannot be a month, 2-digit years,
    compact YYYYMMDD, textual months and spreadsheet serial numbers.
    Ambiguous numeric dates such as 01/02/2024 are read day-first.

    Returns:
        ISO date string, or None when the value is not a usable date
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, numbers.Real):
        return serial_to_date(float(value))

    text = str(value).strip()

    match = ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day)

    match = NUMERIC_DATE.match(text)
    if match:
        day, month = int(match.group(1)), int(match.group(2))
        year = _expand_year(match.group(3))
        if year is None:
            return None
        if month > 12 and day <= 12:
            day, month = month, day
        return _build_date(year, month, day)

    match = COMPACT_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day)

    if SERIAL_DATE.match(text):
        return serial_to_date(float(text))

    for fmt in TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


# ─────────────────────────────────────────────────────────────
# Amounts
# ─────────────────────────────────────────────────────────────

CURRENCY_SYMBOLS = re.compile(r'[₹$€£¥]')
CURRENCY_CODES = re.compile(r'^(?:rs\.?|inr|usd|eur|gbp)\s*|\s*(?:inr|usd|eur|gbp)$', re.I)
DR_CR_MARKER = re.compile(r'\s*(dr|cr)\.?$', re.I)
DECIMAL_COMMA = re.compile(r'^\d+,\d{2}$')
PLAIN_NUMBER = re.compile(r'^\d*\.?\d+$')


def normalize_amount(value: Any) -> Optional[float]:
    """
    Parse a raw amount cell into a signed float.

    Strips currency symbols and codes, thousands separators and whitespace.
    Parentheses, a leading or trailing "-" and a trailing "Dr" mark a
    negative value. "12,50" is read as a decimal comma.

    Returns:
        float, or None when nothing numeric is left
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    negative = False

    marker = DR_CR_MARKER.search(text)
    if marker:
        negative = marker.group(1).lower() == "dr"
        text = text[:marker.start()]

    text = CURRENCY_CODES.sub("", text.strip())
    text = CURRENCY_SYMBOLS.sub("", text)
    text = re.sub(r'\s+', "", text)

    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if text.startswith("-") or text.endswith("-"):
        negative = True
        text = text.strip("-")
    elif text.startswith("+"):
        text = text[1:]

    if DECIMAL_COMMA.match(text):
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")

    if not PLAIN_NUMBER.match(text):
        return None
    number = float(text)
    return -number if negative and number else number


def normalize_rate(value: Any) -> Optional[float]:
    """GST/tax cell ("18", "18%", 18.0) -> non-negative percentage."""
    if isinstance(value, str):
        value = value.replace("%", "")
    rate = normalize_amount(value)
    return abs(rate) if rate is not None else None


def clean_text(value: Any) -> str:
    if is_blank(value):
        return ""
    return str(value).strip()


# ─────────────────────────────────────────────────────────────
# Merchant extraction (free-text descriptions)
# ─────────────────────────────────────────────────────────────

BANKING_TERMS = re.compile(r'\b(payment|transfer|withdrawal|deposit|fee|charge|ref|txn)\b', re.I)


def extract_merchant(description: str) -> Optional[str]:
    """Best-effort merchant: first three meaningful words of a description."""
    cleaned = BANKING_TERMS.sub(" ", description or "")
    words = [w for w in cleaned.split() if len(w) > 2]
    return " ".join(words[:3]) or None


# ─────────────────────────────────────────────────────────────
# Row normalization
# ─────────────────────────────────────────────────────────────

class RowNormalizer:
    """
    Normalizes raw rows of one file against its column mapping.

    Usage:
        normalizer = RowNormalizer(mapping, user_id="u1")
        tx = normalizer.normalize({"Date": "15/01/2024", ...})
    """

    def __init__(self, mapping: ColumnMapping, user_id: str = ""):
        self.mapping = mapping
        self.user_id = user_id

    def normalize(self, row: RawRow) -> NormalizedTransaction:
        """
        Raises:
            RowError: the row has no usable date, description or amount
        """
        m = self.mapping

        tx_date = normalize_date(self._get(row, m.date))
        if not tx_date:
            raise RowError("Invalid or missing date")

        description = clean_text(self._get(row, m.description))
        if not description:
            raise RowError("Missing description")

        amount = self._resolve_amount(row)

        tx: NormalizedTransaction = {
            "date": tx_date,
            "description": description,
            "amount": amount,
            "is_income": amount > 0,
        }

        merchant = clean_text(self._get(row, m.merchant))
        if merchant:
            tx["merchant"] = merchant

        source_category = clean_text(self._get(row, m.category))
        if source_category:
            tx["source_category"] = source_category

        rate = normalize_rate(self._get(row, m.gst))
        if rate:
            tx["gst_rate"] = rate

        tx["dedupe_hash"] = dedupe_hash(self.user_id, tx_date, description, amount)
        tx["raw"] = row
        return tx

    def _resolve_amount(self, row: RawRow) -> float:
        m = self.mapping
        if m.amount is not None:
            amount = normalize_amount(self._get(row, m.amount))
            if amount is None:
                raise RowError("Invalid or missing amount")
            return amount

        if m.has_debit_credit:
            # Empty or non-numeric debit/credit cells mean "not present"
            debit = normalize_amount(self._get(row, m.debit)) or 0.0
            credit = normalize_amount(self._get(row, m.credit)) or 0.0
            if debit:
                return -abs(debit)
            if credit:
                return abs(credit)
            raise RowError("No amount found in debit or credit columns")

        raise RowError("No amount column found")

    @staticmethod
    def _get(row: RawRow, column: Optional[ColumnId]) -> Any:
        return None if column is None else row.get(column)
