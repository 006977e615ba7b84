"""
Ingestion errors.

Whole-file problems raise an IngestError subclass. Per-row problems raise
RowError, which the pipeline always catches and turns into a "Row N: ..."
entry in the result's error list.
"""
from .config import Config


class IngestError(ValueError):
    """No rows can be produced from this file."""


class UnsupportedFileTypeError(IngestError):
    def __init__(self, file_type: str):
        self.file_type = file_type or "unknown"
        allowed = ", ".join(f".{ext}" for ext in Config.ALLOWED_EXTENSIONS)
        super().__init__(f"Unsupported file type: {self.file_type} (allowed: {allowed})")


class CorruptFileError(IngestError):
    """The bytes could not be opened as the detected file kind."""


class RowError(ValueError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
