"""
Format Detector - classifies an upload as CSV, XLSX or PDF.

Precedence: declared MIME type, then filename extension, then (only when the
name has no extension and bytes are available) magic-byte sniffing.
"""
import logging
from typing import Optional, Tuple

from .config import Config
from .errors import UnsupportedFileTypeError
from .models import DetectionResult

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME = "application/vnd.ms-excel"

# (mime substring, kind, ext) checked in order
MIME_KINDS = [
    ("text/csv", "csv", "csv"),
    ("application/csv", "csv", "csv"),
    (XLSX_MIME, "xlsx", "xlsx"),
    (XLS_MIME, "xlsx", "xls"),
    ("application/pdf", "pdf", "pdf"),
]

EXTENSION_KINDS = {
    "csv": ("csv", "text/csv"),
    "xlsx": ("xlsx", XLSX_MIME),
    "xls": ("xlsx", XLS_MIME),
    "pdf": ("pdf", "application/pdf"),
}

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0"


def get_file_extension(filename: Optional[str]) -> Optional[str]:
    """Lower-cased suffix after the last dot, or None."""
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[-1].strip().lower()
    return ext or None


def validate_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Cheap pre-upload check against the same allow-list the detector uses.

    Returns:
        (is_valid, error_message)
    """
    if not filename or not filename.strip():
        return False, "Invalid filename: (unnamed)"
    ext = get_file_extension(filename)
    if ext not in Config.ALLOWED_EXTENSIONS:
        return False, str(UnsupportedFileTypeError(ext or "(no extension)"))
    return True, None


def sniff_content(content: bytes) -> Tuple[str, str]:
    """Guess (kind, ext) from leading bytes; anything unrecognised is CSV."""
    head = content[:8] if content else b""
    if head.startswith(PDF_MAGIC):
        return "pdf", "pdf"
    if head.startswith(ZIP_MAGIC):
        return "xlsx", "xlsx"
    if head.startswith(OLE2_MAGIC):
        return "xlsx", "xls"
    return "csv", "csv"


def detect_file_type(filename: Optional[str], mime_type: Optional[str] = None,
                     content: Optional[bytes] = None) -> DetectionResult:
    """
    Classify an upload.

    Args:
        filename: Declared filename (may be empty)
        mime_type: Declared content type, e.g. from a multipart upload
        content: Raw bytes, enables sniffing for extension-less names

    Returns:
        DetectionResult(kind, ext, mime, detected_by)

    Raises:
        UnsupportedFileTypeError: nothing identified an allowed kind
    """
    declared = (mime_type or "").lower()
    for needle, kind, ext in MIME_KINDS:
        if needle in declared:
            logger.debug(f"Detected {kind} from MIME type {mime_type}")
            return DetectionResult(kind=kind, ext=ext, mime=mime_type, detected_by="mime")

    ext = get_file_extension(filename)
    if ext in EXTENSION_KINDS:
        kind, mime = EXTENSION_KINDS[ext]
        logger.debug(f"Detected {kind} from extension .{ext}")
        return DetectionResult(kind=kind, ext=ext, mime=mime, detected_by="extension")

    if ext is None and content:
        kind, sniffed_ext = sniff_content(content)
        logger.debug(f"Detected {kind} from file content")
        return DetectionResult(
            kind=kind, ext=sniffed_ext, mime=EXTENSION_KINDS[sniffed_ext][1], detected_by="content"
        )

    raise UnsupportedFileTypeError(ext or mime_type or "unknown")
