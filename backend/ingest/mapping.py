"""
Column Mapper - infers which source column holds each canonical field.

Pass 1 walks the trimmed lower-cased headers in file order; the first header
matching any alias of a field is locked in for that field.
Pass 2 applies looser substring tests to fields that are still unmapped.
"""
import logging
import re
from typing import Dict, List, Optional, Sequence

from .models import ColumnMapping, ColumnId

logger = logging.getLogger(__name__)

_SEP = r'[\s_-]*'

# Field -> alias patterns
FIELD_ALIASES: Dict[str, List[str]] = {
    "date": [
        r'^date$', rf'^txn{_SEP}date$', rf'^posting({_SEP}date)?$',
        rf'^transaction{_SEP}date$', rf'^value{_SEP}date$', rf'^trans{_SEP}date$',
    ],
    "description": [
        r'^description$', r'^narration$', r'^details$', r'^particulars$',
        rf'^transaction{_SEP}details$', r'^reference$', r'^remarks?$', r'^memo$',
    ],
    "amount": [r'^amount$', r'^value$', r'^sum$', r'^total$', rf'^transaction{_SEP}amount$'],
    "debit": [r'^debits?$', r'^dr$', r'^withdrawals?$', r'^outgoing$', r'^paid$'],
    "credit": [r'^credits?$', r'^cr$', r'^deposits?$', r'^incoming$', r'^received$'],
    "merchant": [r'^merchant$', r'^vendor$', r'^payee$', r'^counterparty$', r'^party$', r'^beneficiary$'],
    "category": [r'^category$', r'^classification$', r'^tag$'],
    "gst": [r'^gst$', r'^tax$', r'^vat$', r'^cgst$', r'^sgst$', r'^igst$', rf'^tax{_SEP}rate$'],
}

FUZZY_PATTERNS: Dict[str, str] = {
    "date": r'date',
    "description": r'desc|narr|part|detail',
    "amount": r'amount|debit|credit|value|sum',
}

_COMPILED_ALIASES = {
    name: [re.compile(p, re.I) for p in patterns] for name, patterns in FIELD_ALIASES.items()
}
_COMPILED_FUZZY = {name: re.compile(p, re.I) for name, p in FUZZY_PATTERNS.items()}

EXPECTED_HEADERS = {
    "date": "Date, Transaction Date, Posting Date",
    "description": "Description, Narration, Details, Particulars",
    "amount": "Amount, or separate Debit/Credit columns",
}


def _normalize_header(header: ColumnId) -> str:
    return str(header).strip().lower()


def detect_column_mapping(headers: Sequence[ColumnId]) -> ColumnMapping:
    """
    Infer a ColumnMapping from a header row.

    Args:
        headers: Column identifiers exactly as they key the parsed rows

    Returns:
        ColumnMapping with the original header values as column ids
    """
    normalized = [(h, _normalize_header(h)) for h in headers]
    found: Dict[str, ColumnId] = {}

    for field_name, patterns in _COMPILED_ALIASES.items():
        match = next(
            (h for h, text in normalized if any(p.match(text) for p in patterns)), None
        )
        if match is not None:
            found[field_name] = match

    used = set(found.values())
    for field_name, pattern in _COMPILED_FUZZY.items():
        if field_name in found:
            continue
        if field_name == "amount" and ("debit" in found or "credit" in found):
            continue
        match = next(
            (h for h, text in normalized if h not in used and pattern.search(text)), None
        )
        if match is not None:
            logger.debug(f"Fuzzy header match: {field_name} -> {match!r}")
            found[field_name] = match
            used.add(match)

    mapping = ColumnMapping(**found)
    logger.debug(f"Column mapping: {mapping.to_dict()}")
    return mapping


def validate_mapping(mapping: ColumnMapping) -> List[str]:
    """Human-readable warnings for required fields that were not found."""
    warnings = []
    if mapping.date is None:
        warnings.append(f"No date column detected. Expected headers like: {EXPECTED_HEADERS['date']}")
    if mapping.description is None:
        warnings.append(
            f"No description column detected. Expected headers like: {EXPECTED_HEADERS['description']}"
        )
    if not mapping.has_amount_source:
        warnings.append(f"No amount column detected. Expected headers like: {EXPECTED_HEADERS['amount']}")
    return warnings


def describe_mapping(mapping: ColumnMapping) -> Optional[str]:
    parts = [f"{name}={column}" for name, column in mapping.to_dict().items()]
    return ", ".join(parts) or None
