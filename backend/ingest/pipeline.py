"""
Ingestion Pipeline Orchestrator.

Flow: Detect → Parse → Map columns → Normalize → Dedupe → Categorize

Per-row problems end up in `errors` and `stats.failed`; only whole-file
problems (unsupported type, unreadable bytes) raise IngestError.
"""
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .categorize import CategoryMapper
from .dedupe import Deduplicator
from .detect import detect_file_type
from .errors import CorruptFileError, IngestError, RowError
from .extract import ParserFactory
from .mapping import describe_mapping, detect_column_mapping, validate_mapping
from .models import DetectionResult, ParseResult, Rule
from .schema import CategoryResult, IngestResult, NormalizedTransaction
from .transform import RowNormalizer

logger = logging.getLogger(__name__)

RuleInput = Union[Rule, Dict[str, Any]]


class IngestPipeline:
    """
    Stateless between files: everything per-file (rules, user id, known
    hashes) is passed into each call, so one instance can serve many users.
    """

    def __init__(self, category_mapper: Optional[CategoryMapper] = None):
        self.category_mapper = category_mapper or CategoryMapper()

    def ingest(self, content: bytes, filename: str, mime_type: Optional[str] = None,
               user_id: str = "", rules: Iterable[RuleInput] = (),
               known_hashes: Optional[Iterable[str]] = None) -> IngestResult:
        """
        Run one file through the whole pipeline.

        Args:
            content: Raw file bytes
            filename: Declared filename
            mime_type: Declared content type
            user_id: Opaque id folded into every dedupe hash
            rules: Active rules, already in evaluation order
            known_hashes: Hashes the caller has already stored

        Returns:
            IngestResult with transactions, errors, stats and meta

        Raises:
            UnsupportedFileTypeError: the file kind is not accepted
            CorruptFileError: the file could not be opened
        """
        start_time = time.time()
        detection, parsed = self._read(content, filename, mime_type)
        return self._build_result(filename, detection, parsed, user_id, rules, known_hashes, start_time)

    def process(self, content: bytes, filename: str, mime_type: Optional[str] = None,
                user_id: str = "", rules: Iterable[RuleInput] = (),
                known_hashes: Optional[Iterable[str]] = None):
        """
        Same as ingest(), reporting progress.
        Yields (percentage, message, result_dict); result_dict is set only on the last item.
        """
        start_time = time.time()

        try:
            # ─── 1. Detect & Parse (0-40%) ───
            yield 5, "Detecting file type...", None
            detection, parsed = self._read(content, filename, mime_type)
            yield 40, f"Read {len(parsed.data)} rows from {detection.kind.upper()}.", None

            # ─── 2. Normalize, Dedupe, Categorize (40-95%) ───
            yield 45, "Normalizing and categorizing transactions...", None
            result = self._build_result(filename, detection, parsed, user_id, rules, known_hashes, start_time)
            yield 95, "Finalizing...", None

            yield 100, "Done", {"success": True, **result}

        except IngestError as e:
            logger.warning(f"Ingestion rejected {filename!r}: {e}")
            yield 0, f"Error: {e}", {"success": False, "error": str(e), "stats": {}}
        except Exception as e:
            logger.exception("PIPELINE_ERROR")
            yield 0, f"Error: {e}", {"success": False, "error": str(e), "stats": {}}

    # ─────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────

    def _read(self, content: bytes, filename: str,
              mime_type: Optional[str]) -> Tuple[DetectionResult, ParseResult]:
        detection = detect_file_type(filename, mime_type, content)
        logger.info(f"Processing {filename!r} as {detection.kind} (by {detection.detected_by})")

        parsed = ParserFactory.get_parser(detection.kind).parse(content)
        if parsed.fatal:
            raise CorruptFileError(parsed.errors[0] if parsed.errors else "File could not be read")
        return detection, parsed

    def _build_result(self, filename: str, detection: DetectionResult, parsed: ParseResult,
                      user_id: str, rules: Iterable[RuleInput],
                      known_hashes: Optional[Iterable[str]], start_time: float) -> IngestResult:
        active_rules = self._coerce_rules(rules)
        mapping = detect_column_mapping(parsed.headers)
        warnings = validate_mapping(mapping) if parsed.data else []
        for warning in warnings:
            logger.warning(f"{filename!r}: {warning}")

        normalizer = RowNormalizer(mapping, user_id)
        deduplicator = Deduplicator(known_hashes)
        transactions: List[NormalizedTransaction] = []
        row_errors: List[Tuple[int, str]] = list(parsed.rejections)
        failed = parsed.rejected_rows

        for row_number, row in zip(parsed.row_numbers, parsed.data):
            try:
                tx = normalizer.normalize(row)
            except RowError as e:
                row_errors.append((row_number, f"Row {row_number}: {e.reason}"))
                failed += 1
                continue
            except Exception as e:
                logger.exception(f"Unexpected error normalizing row {row_number} of {filename!r}")
                row_errors.append((row_number, f"Row {row_number}: {e}"))
                failed += 1
                continue

            if deduplicator.is_duplicate(tx["dedupe_hash"], row_number):
                continue

            category = self.category_mapper.categorize(
                tx["description"], tx.get("merchant"), tx.get("gst_rate"), active_rules
            )
            transactions.append(self._merge_category(tx, category))

        # Stable sort keeps a row's own messages in the order they were raised
        row_errors.sort(key=lambda item: item[0])
        errors = parsed.file_errors + [message for _, message in row_errors]

        stats = {
            "total_rows": len(parsed.data) + parsed.rejected_rows,
            "successful": len(transactions),
            "failed": failed,
            "duplicates": deduplicator.duplicate_count,
        }
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Ingested {filename!r}: {stats['successful']}/{stats['total_rows']} rows, "
            f"{stats['failed']} failed, {stats['duplicates']} duplicates in {duration_ms:.0f}ms"
        )

        return {
            "transactions": transactions,
            "errors": errors,
            "stats": stats,
            "meta": {
                "filename": filename,
                "kind": detection.kind,
                "ext": detection.ext,
                "mime": detection.mime,
                "detected_by": detection.detected_by,
                "parser": parsed.meta,
                "mapping": mapping.to_dict(),
                "mapping_summary": describe_mapping(mapping),
                "mapping_warnings": warnings,
                "categories": self.category_mapper.get_category_stats(transactions),
                "duplicate_of": dict(deduplicator.duplicate_of),
                "duration_ms": duration_ms,
            },
        }

    @staticmethod
    def _coerce_rules(rules: Iterable[RuleInput]) -> List[Rule]:
        coerced = []
        for record in rules or ():
            if isinstance(record, Rule):
                coerced.append(record)
                continue
            try:
                coerced.append(Rule.from_record(record))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable rule {record!r}: {e}")
        return coerced

    @staticmethod
    def _merge_category(tx: NormalizedTransaction, category: CategoryResult) -> NormalizedTransaction:
        tx["category"] = category["category"]
        tx["gst_rate"] = category["gst_rate"]
        tx["category_confidence"] = category["confidence"]
        tx["matched_by"] = category["matched_by"]
        if category.get("rule_id") is not None:
            tx["rule_id"] = category["rule_id"]
        return tx
