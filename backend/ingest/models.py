"""
Domain models for the ingestion pipeline.
"""
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Tuple, Union

from .schema import RawRow

ColumnId = Union[str, int]


@dataclass(frozen=True)
class DetectionResult:
    kind: str          # 'csv' | 'xlsx' | 'pdf'
    ext: str
    mime: str
    detected_by: str   # 'mime' | 'extension' | 'content'


@dataclass
class ParseResult:
    """
    Output of a format parser.

    `row_numbers` runs parallel to `data` and holds the 1-based data row each
    entry came from, so rows the parser rejected keep their place in the
    numbering. `rejections` pairs each rejected row number with its message
    and `rejected_rows` counts them. A `fatal` result means the file could
    not be opened at all; `data` is then empty and `errors` holds the single
    reason.
    """
    data: List[RawRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    row_numbers: List[int] = field(default_factory=list)
    rejections: List[Tuple[int, str]] = field(default_factory=list)
    rejected_rows: int = 0
    fatal: bool = False

    @classmethod
    def failure(cls, message: str, meta: Optional[Dict[str, Any]] = None) -> 'ParseResult':
        return cls(errors=[message], meta=meta or {}, fatal=True)

    def add_row(self, row: RawRow, row_number: int) -> None:
        self.data.append(row)
        self.row_numbers.append(row_number)

    def reject_row(self, row_number: int, reason: str) -> None:
        message = f"Row {row_number}: {reason}"
        self.errors.append(message)
        self.rejections.append((row_number, message))
        self.rejected_rows += 1

    @property
    def file_errors(self) -> List[str]:
        """Errors not tied to a single row."""
        rejected = {message for _, message in self.rejections}
        return [e for e in self.errors if e not in rejected]

    @property
    def headers(self) -> List[ColumnId]:
        fields = self.meta.get("fields")
        if fields:
            return list(fields)
        return list(self.data[0].keys()) if self.data else []


@dataclass(frozen=True)
class ColumnMapping:
    """Canonical field -> source column, fixed once per file."""
    date: Optional[ColumnId] = None
    description: Optional[ColumnId] = None
    amount: Optional[ColumnId] = None
    debit: Optional[ColumnId] = None
    credit: Optional[ColumnId] = None
    merchant: Optional[ColumnId] = None
    category: Optional[ColumnId] = None
    gst: Optional[ColumnId] = None

    @property
    def has_debit_credit(self) -> bool:
        return self.debit is not None or self.credit is not None

    @property
    def has_amount_source(self) -> bool:
        return self.amount is not None or self.has_debit_credit

    def to_dict(self) -> Dict[str, Optional[ColumnId]]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class Rule:
    """
    A user-authored categorization directive.

    `conditions` is either the line DSL (``contains: a|b``, ``regex: ...`` or
    bare text, one per line) or a structured dict condition.
    """
    id: Optional[str]
    conditions: Union[str, Dict[str, Any]]
    target_category: str
    gst_rate: float = 0.0
    active: bool = True
    priority: int = 0
    name: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Rule':
        """Build a Rule from a stored row or an API payload."""
        actions = record.get("actions") or {}
        category = record.get("target_category") or actions.get("category") or ""
        gst_rate = record.get("gst_rate", actions.get("gst_rate", 0))
        active = record.get("active", record.get("enabled", True))
        return cls(
            id=str(record["id"]) if record.get("id") is not None else None,
            conditions=record.get("conditions") or "",
            target_category=category,
            gst_rate=float(gst_rate or 0),
            active=bool(active),
            priority=int(record.get("priority") or 0),
            name=record.get("name") or "",
        )
