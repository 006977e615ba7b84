"""
Ingest Package - Bank statement ingestion, normalization and categorization

Modules:
- detect: File kind detection and filename validation
- extract: CSV/XLSX/PDF parsing with per-row error capture
- mapping: Heuristic column mapping
- transform: Date/amount normalization into NormalizedTransaction
- dedupe: Content-hash deduplication
- rules: User rule engine
- categorize: Rules-then-keywords categorization
- pipeline: Main orchestrator
- schema: TypedDict definitions
"""
from .pipeline import IngestPipeline
from .errors import IngestError, UnsupportedFileTypeError, CorruptFileError
from .models import Rule, ColumnMapping
from .schema import NormalizedTransaction, CategoryResult, IngestResult

__all__ = [
    'IngestPipeline', 'IngestError', 'UnsupportedFileTypeError', 'CorruptFileError',
    'Rule', 'ColumnMapping', 'NormalizedTransaction', 'CategoryResult', 'IngestResult',
]
