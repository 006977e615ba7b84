"""
Transaction Schema - TypedDict shapes handed between pipeline stages.

NormalizedTransaction is the pipeline's unit of output. The sign of `amount`
is final once the normalizer has produced it: negative is money out,
positive is money in, and `is_income` always equals `amount > 0`.
"""
from typing import TypedDict, Dict, Any, Optional, List, Union

RawValue = Union[str, int, float, None]
RawRow = Dict[Union[str, int], Any]


class CategoryResult(TypedDict, total=False):
    category: str
    gst_rate: float
    confidence: float             # 0.0 - 1.0
    matched_by: str               # 'rule' | 'keyword'
    rule_id: Optional[str]


class NormalizedTransaction(TypedDict, total=False):
    date: str                     # ISO 8601 YYYY-MM-DD
    description: str              # Non-empty, trimmed
    amount: float                 # Signed: negative = expense
    is_income: bool
    merchant: str                 # Optional, best effort
    source_category: str          # Category column from the file, audit only
    gst_rate: float
    category: str                 # Filled by the categorizer
    category_confidence: float
    matched_by: str
    rule_id: str
    dedupe_hash: str              # sha1(user|date|description|abs(amount))
    raw: RawRow


class IngestStats(TypedDict):
    total_rows: int
    successful: int
    failed: int
    duplicates: int


class IngestResult(TypedDict):
    """Final output of one pipeline run"""
    transactions: List[NormalizedTransaction]
    errors: List[str]
    stats: IngestStats
    meta: Dict[str, Any]          # detection, parser meta, mapping, timings
