"""
CategoryMapper - Two-tier transaction categorization.

Tier 1: the user's own rules, first firing rule wins (confidence 1.0).
Tier 2: keyword/pattern scoring against the curated table in keywords.py;
the best category at or above MIN_CONFIDENCE wins, otherwise "Misc".

No AI/ML dependencies - pure pattern matching for full auditability.
"""
from typing import Dict, Iterable, List, Optional

from .config import Config
from .keywords import KEYWORD_CATEGORIES, DEFAULT_GST_RATES, compile_table
from .models import Rule
from .rules import apply_rules, search_text
from .schema import CategoryResult


class CategoryMapper:
    """
    Deterministic transaction categorizer.

    Usage:
        mapper = CategoryMapper()
        result = mapper.categorize("SWIGGY ORDER 1234", rules=user_rules)
        # {'category': 'Meals & Entertainment', 'gst_rate': 5, ...}
    """

    def __init__(self, categories: Optional[dict] = None,
                 gst_rates: Optional[Dict[str, float]] = None,
                 min_confidence: float = Config.MIN_CONFIDENCE):
        """
        Args:
            categories: Optional table overriding KEYWORD_CATEGORIES
            gst_rates: Optional default rates overriding DEFAULT_GST_RATES
            min_confidence: Lowest keyword score accepted before falling back
        """
        self.categories = categories if categories is not None else KEYWORD_CATEGORIES
        self.gst_rates = gst_rates if gst_rates is not None else DEFAULT_GST_RATES
        self.min_confidence = min_confidence
        self.matchers = compile_table(self.categories)

    def categorize(self, description: str, merchant: Optional[str] = None,
                   gst_rate: Optional[float] = None,
                   rules: Iterable[Rule] = ()) -> CategoryResult:
        """
        Categorize one transaction. Never returns None.

        Args:
            description: Transaction description text
            merchant: Optional merchant name
            gst_rate: Rate already present on the row, kept over table defaults
            rules: Active user rules in evaluation order

        Returns:
            CategoryResult
        """
        result = apply_rules(rules, description, merchant)
        if result:
            return result
        return self.categorize_by_keywords(description, merchant, gst_rate)

    def categorize_by_keywords(self, description: str, merchant: Optional[str] = None,
                               gst_rate: Optional[float] = None) -> CategoryResult:
        best_category, best_score = self._best_match(self._text(description, merchant))

        if best_category and best_score >= self.min_confidence:
            return {
                "category": best_category,
                "gst_rate": gst_rate if gst_rate else self.gst_rates.get(best_category, 0),
                "confidence": best_score,
                "matched_by": "keyword",
            }

        return {
            "category": Config.FALLBACK_CATEGORY,
            "gst_rate": gst_rate or 0,
            "confidence": Config.FALLBACK_CONFIDENCE,
            "matched_by": "keyword",
        }

    def score(self, description: str, merchant: Optional[str] = None) -> Dict[str, float]:
        """Keyword score of every category, in table order."""
        text = self._text(description, merchant)
        return {m.name: m.score(text) for m in self.matchers}

    def suggest(self, description: str, merchant: Optional[str] = None, limit: int = 3) -> List[str]:
        """Up to `limit` plausible categories, best first."""
        scores = self.score(description, merchant)
        ranked = sorted(
            (item for item in scores.items() if item[1] > Config.SUGGESTION_MIN_SCORE),
            key=lambda item: item[1],
            reverse=True,
        )
        return [name for name, _ in ranked[:limit]]

    def explain(self, description: str, merchant: Optional[str] = None) -> dict:
        """Why the keyword tier picked its category, for display next to a result."""
        text = self._text(description, merchant)
        result = self.categorize_by_keywords(description, merchant)
        reasons = []

        matcher = next((m for m in self.matchers if m.name == result["category"]), None)
        if matcher:
            keywords = matcher.matched_keywords(text)
            if keywords:
                reasons.append(f"Keywords: {', '.join(keywords[:3])}")
            pattern_hits = matcher.matched_pattern_count(text)
            if pattern_hits:
                reasons.append(f"Pattern matches: {pattern_hits}")
        if not reasons:
            reasons.append("No matching patterns found")

        return {
            "category": result["category"],
            "confidence": result["confidence"],
            "reasons": reasons,
        }

    def get_rules(self) -> dict:
        """Return the keyword table for transparency/audit."""
        return dict(self.categories)

    def get_category_stats(self, transactions: list) -> dict:
        """
        Category distribution of a batch.

        Args:
            transactions: List of NormalizedTransaction dicts

        Returns:
            Dict of category -> count, zero counts omitted
        """
        stats: Dict[str, int] = {}
        for tx in transactions:
            cat = tx.get("category") or Config.FALLBACK_CATEGORY
            stats[cat] = stats.get(cat, 0) + 1
        return stats

    def _best_match(self, text: str):
        best_category, best_score = None, 0.0
        for matcher in self.matchers:
            score = matcher.score(text)
            # Strictly greater: ties go to the category listed first
            if score > best_score:
                best_category, best_score = matcher.name, score
        return best_category, best_score

    @staticmethod
    def _text(description: Optional[str], merchant: Optional[str]) -> str:
        return search_text(description, merchant).lower()
