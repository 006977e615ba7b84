"""
Supabase Storage Client - persists ingested transactions and reads user rules.

The pipeline's `dedupe_hash` is written verbatim and the transactions table
upserts on it, so re-importing a statement never creates duplicate rows.
Designed to fail gracefully if keys are not provided.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from supabase import create_client, Client

from backend.ingest.config import Config
from backend.ingest.models import Rule

logger = logging.getLogger(__name__)

HASH_LOOKUP_CHUNK = 200


class TransactionStore:
    """
    Storage sink for the ingestion pipeline.
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None,
                 client: Optional[Client] = None):
        self.url = url or Config.SUPABASE_URL
        self.key = key or Config.SUPABASE_SERVICE_ROLE_KEY or Config.SUPABASE_KEY
        self.client = client

        if self.client is None and self.url and self.key:
            try:
                self.client = create_client(self.url, self.key)
                logger.info("Supabase client initialized.")
            except Exception as e:
                logger.warning(f"Failed to initialize Supabase client: {e}")

    @property
    def configured(self) -> bool:
        return self.client is not None

    def get_active_rules(self, user_id: str) -> List[Rule]:
        """Active rules of a user, highest priority first."""
        if not self.client or not user_id:
            return []
        try:
            res = (
                self.client.table(Config.RULES_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("active", True)
                .order("priority", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch rules for {user_id}: {e}")
            return []
        return [Rule.from_record(r) for r in res.data or []]

    def get_existing_hashes(self, user_id: str, hashes: Iterable[str]) -> Set[str]:
        """Which of `hashes` are already stored for this user."""
        hashes = list(dict.fromkeys(hashes))
        if not self.client or not hashes:
            return set()

        found: Set[str] = set()
        for i in range(0, len(hashes), HASH_LOOKUP_CHUNK):
            chunk = hashes[i:i + HASH_LOOKUP_CHUNK]
            try:
                res = (
                    self.client.table(Config.TRANSACTIONS_TABLE)
                    .select("dedupe_hash")
                    .eq("user_id", user_id)
                    .in_("dedupe_hash", chunk)
                    .execute()
                )
            except Exception as e:
                # The upsert still ignores stored hashes; only the report gets less precise
                logger.error(f"Failed to look up stored hashes for {user_id}: {e}")
                break
            found.update(r["dedupe_hash"] for r in res.data or [])
        return found

    def insert_transactions(self, user_id: str, transactions: List[Dict[str, Any]],
                            file_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Upsert a batch, ignoring rows whose dedupe_hash is already stored.

        Returns:
            {"inserted": n, "skipped": m, "persisted": bool}
        """
        if not self.client:
            logger.info("Supabase not configured. Skipping persistence.")
            return {"inserted": 0, "skipped": 0, "persisted": False}
        if not transactions:
            return {"inserted": 0, "skipped": 0, "persisted": True}

        records = [self._to_record(user_id, tx, file_id) for tx in transactions]
        try:
            res = (
                self.client.table(Config.TRANSACTIONS_TABLE)
                .upsert(records, on_conflict="dedupe_hash", ignore_duplicates=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to store {len(records)} transactions for {user_id}: {e}")
            return {"inserted": 0, "skipped": 0, "persisted": False, "error": str(e)}

        inserted = len(res.data or [])
        logger.info(f"Stored {inserted} transactions for {user_id} ({len(records) - inserted} already present)")
        return {"inserted": inserted, "skipped": len(records) - inserted, "persisted": True}

    @staticmethod
    def _to_record(user_id: str, tx: Dict[str, Any], file_id: Optional[str]) -> Dict[str, Any]:
        """Persisted form: magnitude plus is_income flag."""
        return {
            "user_id": user_id,
            "file_id": file_id,
            "date": tx["date"],
            "description": tx["description"],
            "merchant": tx.get("merchant"),
            "amount": abs(tx["amount"]),
            "is_income": tx["is_income"],
            "category": tx.get("category"),
            "gst_rate": tx.get("gst_rate", 0),
            "confidence": tx.get("category_confidence"),
            "matched_by": tx.get("matched_by"),
            "rule_id": tx.get("rule_id"),
            "dedupe_hash": tx["dedupe_hash"],
            "raw": tx.get("raw"),
        }
