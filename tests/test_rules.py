from backend.ingest.models import Rule
from backend.ingest.rules import (
    apply_rules, evaluate_conditions, rule_matches, sort_rules, try_rule_on_samples,
    validate_rule_conditions,
)


def make_rule(conditions, category="Travel", rule_id="r1", **kwargs):
    return Rule(id=rule_id, conditions=conditions, target_category=category, **kwargs)


def test_contains_is_case_insensitive_or():
    rule = make_rule("contains: netflix|spotify", category="Subscriptions", gst_rate=18)
    result = apply_rules([rule], "SPOTIFY P0123")

    assert result == {
        "category": "Subscriptions",
        "gst_rate": 18,
        "confidence": 1.0,
        "matched_by": "rule",
        "rule_id": "r1",
    }


def test_contains_wildcard():
    rule = make_rule("contains: amzn*mktp")
    assert rule_matches(rule, "AMZN Mktp IN*2K3")
    assert not rule_matches(rule, "MKTP AMZN")


def test_contains_treats_regex_characters_literally():
    assert rule_matches(make_rule("contains: disney+"), "Disney+ Hotstar renewal")
    assert not rule_matches(make_rule("contains: disney+"), "Disneyy")


def test_regex_condition():
    assert rule_matches(make_rule(r"regex: ^uber\s+trip"), "Uber Trip 8842")
    assert not rule_matches(make_rule(r"regex: ^uber\s+trip"), "Paid Uber Trip")


def test_bare_text_is_contains():
    assert rule_matches(make_rule("zomato"), "ZOMATO ORDER #44")


def test_any_line_can_fire_the_rule():
    rule = make_rule("contains: foo\nregex: bar\\d+")
    assert rule_matches(rule, "BAR12 payment")


def test_merchant_is_part_of_the_search_text():
    assert rule_matches(make_rule("contains: starbucks"), "POS 1234", "Starbucks")


def test_invalid_regex_never_matches_and_never_raises():
    broken = make_rule("regex: (unclosed", category="Broken", rule_id="bad")
    fallback = make_rule("contains: cab", category="Travel", rule_id="ok")

    result = apply_rules([broken, fallback], "Cab ride (unclosed")
    assert result["rule_id"] == "ok"


def test_caller_order_decides_not_priority():
    low = make_rule("contains: uber", category="Travel", rule_id="low", priority=1)
    high = make_rule("contains: uber", category="Meals", rule_id="high", priority=9)
    assert apply_rules([low, high], "Uber Eats")["rule_id"] == "low"


def test_inactive_rules_are_skipped():
    inactive = make_rule("contains: uber", category="Meals", rule_id="off", active=False)
    active = make_rule("contains: uber", rule_id="on")
    assert apply_rules([inactive, active], "uber")["rule_id"] == "on"


def test_no_rule_fires():
    assert apply_rules([make_rule("contains: uber")], "Grocery store") is None
    assert apply_rules([], "anything") is None


def test_sort_rules_by_priority_keeping_ties_stable():
    a = make_rule("x", rule_id="a", priority=1)
    b = make_rule("x", rule_id="b", priority=5)
    c = make_rule("x", rule_id="c", priority=5)
    d = make_rule("x", rule_id="d", priority=9, active=False)
    assert [r.id for r in sort_rules([a, b, c, d])] == ["b", "c", "a"]


def test_structured_conditions():
    both = {"type": "and", "conditions": [
        {"type": "contains", "keywords": ["uber"]},
        {"type": "regex", "pattern": "trip"},
    ]}
    either = {"type": "or", "conditions": [
        {"type": "contains", "keywords": ["ola"]},
        {"type": "contains", "keywords": ["rapido"]},
    ]}

    assert evaluate_conditions(both, "Uber trip to airport")
    assert not evaluate_conditions(both, "Uber Eats")
    assert evaluate_conditions(either, "RAPIDO BIKE")
    assert not evaluate_conditions({"type": "nearby"}, "anything")
    assert not evaluate_conditions({"type": "and", "conditions": []}, "anything")


def test_validate_rule_conditions():
    assert validate_rule_conditions("") == ["Conditions cannot be empty"]
    assert validate_rule_conditions("contains: a|b\nregex: ^x\nuber") == []

    errors = validate_rule_conditions("contains:\nregex: (abc\nfoo: bar")
    assert errors[0] == "Line 1: 'contains:' requires keywords"
    assert errors[1].startswith("Line 2: Invalid regex pattern")
    assert errors[2] == "Line 3: Unknown condition type. Use 'contains:' or 'regex:'"


def test_validate_structured_conditions():
    assert validate_rule_conditions({"type": "contains", "keywords": ["uber"]}) == []
    assert validate_rule_conditions({"type": "or", "conditions": []}) == [
        "conditions: 'or' requires at least one condition"
    ]
    errors = validate_rule_conditions({"type": "and", "conditions": [{"type": "regex", "pattern": "("}]})
    assert errors[0].startswith("conditions[0]: Invalid regex pattern")


def test_try_rule_on_samples():
    rule = make_rule("contains: uber|ola", gst_rate=5)
    report = try_rule_on_samples(rule, ["Uber trip", "Swiggy order", "OLA cab"])

    assert report["matches"] == 2
    assert report["total"] == 3
    assert report["results"][0] == {"text": "Uber trip", "match": True, "category": "Travel", "gst_rate": 5}
    assert report["results"][1] == {"text": "Swiggy order", "match": False}


def test_rule_from_stored_record():
    rule = Rule.from_record({
        "id": 7,
        "conditions": "contains: irctc",
        "actions": {"category": "Travel", "gst_rate": 5},
        "enabled": False,
        "priority": 2,
    })
    assert rule.id == "7"
    assert rule.target_category == "Travel"
    assert rule.gst_rate == 5.0
    assert rule.active is False
    assert rule.priority == 2


def test_malformed_conditions_never_match_and_never_raise():
    assert not evaluate_conditions(["contains: rent"], "rent")
    assert not evaluate_conditions(42, "rent")
    assert not evaluate_conditions({"type": "contains", "keywords": 5}, "rent")
    assert not evaluate_conditions({"type": "regex", "pattern": 7}, "rent 7")
    assert not evaluate_conditions({"type": "or", "conditions": {"type": "contains"}}, "rent")
    assert not evaluate_conditions({"type": "and", "conditions": ["contains: rent", None]}, "rent")


def test_non_text_keywords_are_skipped():
    assert evaluate_conditions({"type": "contains", "keywords": [None, 3, "rent"]}, "Rent January")
    assert not evaluate_conditions({"type": "contains", "keywords": [None]}, "Rent January")


def test_malformed_rule_is_passed_over():
    broken = make_rule(["contains: uber"], category="Broken", rule_id="bad")
    working = make_rule("contains: uber", rule_id="ok")
    assert apply_rules([broken, working], "Uber trip")["rule_id"] == "ok"


def test_validate_malformed_conditions():
    assert validate_rule_conditions(["contains: uber"]) == ["Conditions must be text or a condition object"]
    assert validate_rule_conditions({"type": "or", "conditions": ["contains: uber"]}) == [
        "conditions[0]: Condition must be an object"
    ]
    assert validate_rule_conditions({"type": "contains", "keywords": [None]}) == [
        "conditions: 'contains' requires keywords"
    ]
    assert validate_rule_conditions({"type": "regex", "pattern": 7}) == [
        "conditions: 'regex' requires a pattern"
    ]
