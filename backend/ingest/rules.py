"""
Rules Engine - user-authored categorization rules.

Conditions come in two shapes:

    contains: netflix|spotify     case-insensitive OR, "*" is a wildcard
    regex: ^amzn.*mktp            case-insensitive, invalid patterns never match
    uber                          bare text, same as contains:

one per line, first satisfied line fires the rule; or a structured dict
such as {"type": "or", "conditions": [{"type": "contains", "keywords": [...]}]}.

Rules are evaluated in the order the caller gives them. The first rule that
fires wins with confidence 1.0.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import Config
from .models import Rule
from .schema import CategoryResult

logger = logging.getLogger(__name__)

CONTAINS_PREFIX = "contains:"
REGEX_PREFIX = "regex:"

Conditions = Union[str, Dict[str, Any]]


def search_text(description: Optional[str], merchant: Optional[str] = None) -> str:
    return f"{description or ''} {merchant or ''}"


def _keyword_regex(keyword: str) -> re.Pattern:
    return re.compile(".*".join(re.escape(part) for part in keyword.split("*")), re.I)


def match_contains(text: str, keywords: Union[str, Iterable[str]]) -> bool:
    if isinstance(keywords, str):
        keywords = keywords.split("|")
    elif not isinstance(keywords, (list, tuple)):
        return False
    lowered = text.lower()
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        keyword = keyword.strip().lower()
        if not keyword:
            continue
        if "*" in keyword:
            if _keyword_regex(keyword).search(text):
                return True
        elif keyword in lowered:
            return True
    return False


def match_regex(text: str, pattern: str) -> bool:
    if not pattern or not isinstance(pattern, str):
        return False
    try:
        return re.search(pattern, text, re.I) is not None
    except re.error as e:
        logger.debug(f"Invalid rule regex {pattern!r}: {e}")
        return False


def condition_lines(conditions: str) -> List[str]:
    return [line.strip() for line in conditions.split("\n") if line.strip()]


def _split_prefix(line: str):
    lowered = line.lower()
    for prefix in (CONTAINS_PREFIX, REGEX_PREFIX):
        if lowered.startswith(prefix):
            return prefix, line[len(prefix):].strip()
    return None, line


def evaluate_conditions(conditions: Conditions, text: str) -> bool:
    """Evaluate either condition shape against the joined search text."""
    if not conditions or not isinstance(conditions, (str, dict)):
        return False

    if isinstance(conditions, str):
        for line in condition_lines(conditions):
            prefix, body = _split_prefix(line)
            if prefix == REGEX_PREFIX:
                if match_regex(text, body):
                    return True
            elif match_contains(text, body):
                return True
        return False

    kind = conditions.get("type")
    if kind == "contains":
        return match_contains(text, conditions.get("keywords") or [])
    if kind == "regex":
        return match_regex(text, conditions.get("pattern") or "")
    children = conditions.get("conditions")
    if not isinstance(children, list):
        children = []
    if kind == "and":
        return bool(children) and all(evaluate_conditions(c, text) for c in children)
    if kind == "or":
        return any(evaluate_conditions(c, text) for c in children)
    return False


def rule_matches(rule: Rule, description: Optional[str], merchant: Optional[str] = None) -> bool:
    return evaluate_conditions(rule.conditions, search_text(description, merchant))


def apply_rules(rules: Iterable[Rule], description: Optional[str],
                merchant: Optional[str] = None) -> Optional[CategoryResult]:
    """
    First active rule that fires, as a CategoryResult; None if none fires.

    Args:
        rules: Rules already in evaluation order
        description: Transaction description
        merchant: Optional merchant name
    """
    text = search_text(description, merchant)
    for rule in rules:
        if not rule.active:
            continue
        if evaluate_conditions(rule.conditions, text):
            result: CategoryResult = {
                "category": rule.target_category or Config.FALLBACK_CATEGORY,
                "gst_rate": rule.gst_rate,
                "confidence": Config.RULE_CONFIDENCE,
                "matched_by": "rule",
            }
            if rule.id is not None:
                result["rule_id"] = rule.id
            return result
    return None


def sort_rules(rules: Iterable[Rule]) -> List[Rule]:
    """Active rules, highest priority first; ties keep their given order."""
    return sorted((r for r in rules if r.active), key=lambda r: -r.priority)


def validate_rule_conditions(conditions: Conditions) -> List[str]:
    """
    Check rule conditions before they are saved.

    Returns:
        List of error strings, empty when the conditions are usable
    """
    if isinstance(conditions, dict):
        return _validate_structured(conditions)

    if not conditions or (isinstance(conditions, str) and not conditions.strip()):
        return ["Conditions cannot be empty"]
    if not isinstance(conditions, str):
        return ["Conditions must be text or a condition object"]

    errors = []
    for line_num, line in enumerate(condition_lines(conditions), start=1):
        prefix, body = _split_prefix(line)
        if prefix == REGEX_PREFIX:
            try:
                re.compile(body, re.I)
            except re.error as e:
                errors.append(f"Line {line_num}: Invalid regex pattern - {e}")
        elif prefix == CONTAINS_PREFIX:
            if not body.strip("| "):
                errors.append(f"Line {line_num}: 'contains:' requires keywords")
        elif ":" in line:
            errors.append(f"Line {line_num}: Unknown condition type. Use 'contains:' or 'regex:'")
    return errors


def _validate_structured(condition: Dict[str, Any], path: str = "conditions") -> List[str]:
    if not isinstance(condition, dict):
        return [f"{path}: Condition must be an object"]
    kind = condition.get("type")
    if kind == "contains":
        keywords = condition.get("keywords")
        if not isinstance(keywords, (list, tuple)):
            keywords = []
        if not [k for k in keywords if isinstance(k, str) and k.strip()]:
            return [f"{path}: 'contains' requires keywords"]
        return []
    if kind == "regex":
        pattern = condition.get("pattern")
        if not pattern or not isinstance(pattern, str):
            return [f"{path}: 'regex' requires a pattern"]
        try:
            re.compile(pattern, re.I)
        except re.error as e:
            return [f"{path}: Invalid regex pattern - {e}"]
        return []
    if kind in ("and", "or"):
        children = condition.get("conditions")
        if not isinstance(children, list) or not children:
            return [f"{path}: '{kind}' requires at least one condition"]
        errors = []
        for idx, child in enumerate(children):
            errors.extend(_validate_structured(child, f"{path}[{idx}]"))
        return errors
    return [f"{path}: Unknown condition type {kind!r}"]


def try_rule_on_samples(rule: Rule, samples: Iterable[str]) -> Dict[str, Any]:
    """Dry-run a rule over sample descriptions, e.g. from a rule editor."""
    results = []
    for sample in samples:
        matched = rule_matches(rule, sample)
        entry = {"text": sample, "match": matched}
        if matched:
            entry["category"] = rule.target_category
            entry["gst_rate"] = rule.gst_rate
        results.append(entry)
    return {
        "matches": sum(1 for r in results if r["match"]),
        "total": len(results),
        "results": results,
    }
