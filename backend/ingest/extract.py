"""
Extract Layer - CSV, XLSX and PDF parsers.

Every parser turns raw bytes into a ParseResult of loosely typed rows. Row
level problems are recorded in `errors` and never abort the file; a file
that cannot be opened at all comes back as ParseResult.failure(...).
"""
import csv
import hashlib
import io
import logging
import numbers
import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional, Tuple

import pandas as pd
import pdfplumber

from .config import Config
from .detect import OLE2_MAGIC
from .models import ParseResult
from .schema import RawRow
from .transform import is_blank, normalize_date, normalize_amount, extract_merchant

logger = logging.getLogger(__name__)


class BaseParser(ABC):
    @abstractmethod
    def parse(self, content: bytes) -> ParseResult:
        pass

    def get_content_hash(self, content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()

    def _unique_headers(self, raw_headers: List[str]) -> List[str]:
        """Blank headers become column_N; repeats get a numeric suffix."""
        headers = []
        for idx, header in enumerate(raw_headers):
            name = header.strip() or f"column_{idx + 1}"
            candidate, n = name, 1
            while candidate in headers:
                candidate = f"{name}_{n}"
                n += 1
            headers.append(candidate)
        return headers


# ─────────────────────────────────────────────────────────────
# CSV
# ─────────────────────────────────────────────────────────────

class CSVParser(BaseParser):
    """
    Comma-separated text with a header row.

    Quoted fields may contain commas. Blank lines are ignored. A row whose
    field count differs from the header is reported and skipped.
    """

    def parse(self, content: bytes) -> ParseResult:
        logger.info(f"Extracting CSV ({len(content)} bytes)")
        meta = {"document_hash": self.get_content_hash(content), "delimiter": ","}

        text = self._decode(content)
        if text is None:
            return ParseResult.failure("CSV parsing failed: file is not valid text", meta)

        try:
            rows = [r for r in csv.reader(io.StringIO(text, newline="")) if any(c.strip() for c in r)]
        except csv.Error as e:
            return ParseResult.failure(f"CSV parsing failed: {e}", meta)

        if not rows:
            meta["fields"] = []
            return ParseResult(errors=["CSV file is empty or has no valid data rows"], meta=meta)

        headers = self._unique_headers(rows[0])
        meta["fields"] = headers
        result = ParseResult(meta=meta)

        for row_number, values in enumerate(rows[1:], start=1):
            if len(values) != len(headers):
                result.reject_row(
                    row_number,
                    f"Column count mismatch (expected {len(headers)} fields, found {len(values)})",
                )
                continue
            result.add_row({h: v.strip() for h, v in zip(headers, values)}, row_number)

        if not result.data and not result.errors:
            result.errors.append("CSV file is empty or has no valid data rows")
        return result

    def _decode(self, content: bytes) -> Optional[str]:
        for encoding in Config.CSV_ENCODINGS:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue
        return None



# ─────────────────────────────────────────────────────────────
# XLSX / XLS
# ─────────────────────────────────────────────────────────────

class XLSXParser(BaseParser):
    """
    First worksheet of an Excel workbook.

    Row 0 is the header; blank headers are dropped and repeated ones get a
    numeric suffix as in CSV. Numeric cells under a header containing "date"
    are spreadsheet serials and become ISO dates.
    Entirely blank rows are omitted without counting as failures.
    """

    def parse(self, content: bytes) -> ParseResult:
        logger.info(f"Extracting spreadsheet ({len(content)} bytes)")
        meta = {"document_hash": self.get_content_hash(content)}
        engine = "xlrd" if content[:4] == OLE2_MAGIC else "openpyxl"

        try:
            workbook = pd.ExcelFile(io.BytesIO(content), engine=engine)
        except Exception as e:
            logger.warning(f"Spreadsheet could not be opened: {e}")
            return ParseResult.failure(f"Excel parsing failed: {e}", meta)

        with workbook:
            sheet_names = workbook.sheet_names
            meta["total_sheets"] = len(sheet_names)
            if not sheet_names:
                return ParseResult(errors=["Excel file contains no sheets"], meta=meta)

            sheet_name = sheet_names[0]
            meta["sheet_name"] = sheet_name
            try:
                frame = workbook.parse(sheet_name, header=None, dtype=object)
            except KeyError:
                return ParseResult(errors=[f'Sheet "{sheet_name}" not found'], meta=meta)

        grid = [list(r) for r in frame.itertuples(index=False, name=None)]
        if not any(not is_blank(v) for r in grid for v in r):
            return ParseResult(errors=[f'Sheet "{sheet_name}" is empty'], meta=meta)

        positions = [idx for idx, h in enumerate(grid[0]) if not is_blank(h)]
        names = self._unique_headers([str(grid[0][idx]) for idx in positions])
        columns = list(zip(positions, names))
        meta["fields"] = names
        if not columns:
            return ParseResult(errors=[f'Sheet "{sheet_name}" has no valid headers'], meta=meta)

        result = ParseResult(meta=meta)
        row_number = 0
        for cells in grid[1:]:
            row: RawRow = {}
            for idx, header in columns:
                value = cells[idx] if idx < len(cells) else None
                row[header] = self._cell_value(header, value)
            if all(v == "" for v in row.values()):
                continue
            row_number += 1
            result.add_row(row, row_number)

        if not result.data:
            result.errors.append(f'Sheet "{sheet_name}" has no data rows')
        return result

    def _cell_value(self, header: str, value):
        if is_blank(value):
            return ""
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, (datetime, date)):
            return normalize_date(value)
        if "date" in header.lower() and isinstance(value, numbers.Real):
            return normalize_date(value) or value
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


# ─────────────────────────────────────────────────────────────
# PDF
# ─────────────────────────────────────────────────────────────

_DATE = r'(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})'
_AMOUNT = r'([+-]?(?:\d{1,3}(?:,\d{3})+|\d+)[.,]\d{2})'

# Tried in this order; the first template that matches a line wins.
LINE_TEMPLATES: List[Tuple[re.Pattern, Tuple[str, str, str]]] = [
    (re.compile(rf'{_DATE}\s+{_AMOUNT}\s+(.+)'), ("date", "amount", "description")),
    (re.compile(rf'{_DATE}\s+(.+?)\s+{_AMOUNT}$'), ("date", "description", "amount")),
    (re.compile(rf'^(.+?)\s+{_DATE}\s+{_AMOUNT}$'), ("description", "date", "amount")),
]


def match_statement_line(line: str) -> Optional[RawRow]:
    """Recover one transaction from a line of statement text, or None."""
    for pattern, fields in LINE_TEMPLATES:
        match = pattern.search(line)
        if not match:
            continue
        parts = dict(zip(fields, match.groups()))
        tx_date = normalize_date(parts["date"])
        amount = normalize_amount(parts["amount"])
        description = parts["description"].strip()
        if tx_date and amount is not None and description:
            return {
                "Date": tx_date,
                "Description": description,
                "Amount": amount,
                "Merchant": extract_merchant(description) or "",
            }
        return None
    return None


class PDFParser(BaseParser):
    """
    Text-based statements. Extraction is best effort: lines that match none
    of the LINE_TEMPLATES are skipped silently.
    """

    def parse(self, content: bytes) -> ParseResult:
        logger.info(f"Extracting PDF ({len(content)} bytes)")
        meta = {"document_hash": self.get_content_hash(content)}
        pages_text = []

        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                meta["pages"] = len(pdf.pages)
                meta["title"] = (pdf.metadata or {}).get("Title")
                for page in pdf.pages:
                    text = page.extract_text()
                    if text:
                        pages_text.append(text)
        except Exception as e:
            logger.warning(f"PDF could not be opened: {e}")
            return ParseResult.failure(f"PDF parsing failed: {e}", meta)

        raw_text = "\n".join(pages_text)
        meta["text"] = raw_text[:Config.PDF_TEXT_PREVIEW_CHARS]
        meta["fields"] = ["Date", "Description", "Amount", "Merchant"]
        if not raw_text.strip():
            return ParseResult(errors=["PDF contains no extractable text"], meta=meta)

        result = ParseResult(meta=meta)
        for line in raw_text.split("\n"):
            line = line.strip()
            if not line:
                continue
            row = match_statement_line(line)
            if row:
                result.add_row(row, len(result.data) + 1)

        if not result.data:
            result.errors.append("No transaction data found in PDF")
        return result


def validate_parsed_rows(result: ParseResult) -> List[str]:
    """Structural problems with a parse result, for callers showing a preview."""
    problems = []
    if not result.data:
        problems.append("File contains no data rows")
    elif not result.headers:
        problems.append("File has no columns")
    return problems


class ParserFactory:
    @staticmethod
    def get_parser(file_type: str) -> BaseParser:
        ft = file_type.lower()
        if ft == "csv":
            return CSVParser()
        if ft in ("xlsx", "xls"):
            return XLSXParser()
        if ft == "pdf":
            return PDFParser()
        raise ValueError(f"Unsupported file type: {file_type}")
