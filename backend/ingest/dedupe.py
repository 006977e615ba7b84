"""
Deduplicator - content-addressed transaction fingerprints.

The same `dedupe_hash` is stored verbatim at the persistence boundary, so
in-batch and cross-batch duplicate detection share one canonicalization:
ISO date, trimmed description and the amount's magnitude to two decimals.
"""
import hashlib
from typing import Dict, Iterable, Optional


def dedupe_hash(user_id: str, date: str, description: str, amount: float) -> str:
    """sha1 hex digest of user|date|description|abs(amount)"""
    content = f"{user_id or ''}|{date}|{description}|{abs(float(amount)):.2f}"
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


class Deduplicator:
    """
    Running set of seen hashes for one batch. First occurrence wins.

    `known_hashes` lets a caller seed the set with hashes it has already
    persisted, so a re-imported file is reported as all duplicates.
    """

    def __init__(self, known_hashes: Optional[Iterable[str]] = None):
        self.seen: Dict[str, Optional[int]] = {h: None for h in (known_hashes or ())}
        self.duplicate_of: Dict[int, Optional[int]] = {}

    def is_duplicate(self, tx_hash: str, row_number: int) -> bool:
        if tx_hash in self.seen:
            # None means it came from a previous import
            self.duplicate_of[row_number] = self.seen[tx_hash]
            return True
        self.seen[tx_hash] = row_number
        return False

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicate_of)
