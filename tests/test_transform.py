from datetime import date, datetime

import pytest

from backend.ingest.dedupe import dedupe_hash
from backend.ingest.errors import RowError
from backend.ingest.models import ColumnMapping
from backend.ingest.transform import (
    RowNormalizer, extract_merchant, normalize_amount, normalize_date, normalize_rate,
)


@pytest.mark.parametrize("raw", [
    "2024-01-15", "15/01/2024", "01/15/2024", "15-01-2024",
    "2024-01-15T10:30:00Z", "15.01.2024", "2024/01/15", "20240115",
    "15 Jan 2024", "Jan 15, 2024", "15-Jan-2024",
    45306, 45306.0, "45306",
    datetime(2024, 1, 15, 9, 30), date(2024, 1, 15),
])
def test_date_formats_normalize_to_iso(raw):
    assert normalize_date(raw) == "2024-01-15"


def test_two_digit_years_use_current_century():
    century = date.today().year // 100 * 100
    assert normalize_date("15/01/24") == f"{century + 24}-01-15"


def test_ambiguous_numeric_dates_are_day_first():
    assert normalize_date("01/02/2024") == "2024-02-01"


@pytest.mark.parametrize("raw", ["31/02/2024", "13/13/2024", "abc", "", "   ", None, True, "1/2/345"])
def test_invalid_dates(raw):
    assert normalize_date(raw) is None


@pytest.mark.parametrize("raw,expected", [
    ("₹1,234.50", 1234.50),
    ("(45.00)", -45.00),
    ("-87.32", -87.32),
    ("$ 1,000", 1000.0),
    ("€12.00", 12.0),
    ("£ 3.10", 3.10),
    ("INR 299.00", 299.0),
    ("Rs.1,50,000", 150000.0),
    ("1,234.00 Dr", -1234.0),
    ("500 Cr", 500.0),
    ("45.00-", -45.0),
    ("+10", 10.0),
    ("12,50", 12.5),
    (12.5, 12.5),
    (-3, -3.0),
])
def test_amount_parsing(raw, expected):
    assert normalize_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["abc", "", None, "--", "1.2.3", "N/A", float("nan")])
def test_unparseable_amounts(raw):
    assert normalize_amount(raw) is None


def test_normalize_rate_strips_percent():
    assert normalize_rate("18%") == 18.0
    assert normalize_rate(None) is None


def test_extract_merchant_skips_banking_terms_and_short_words():
    assert extract_merchant("UPI payment to Swiggy Bangalore ref 1234") == "UPI Swiggy Bangalore"
    assert extract_merchant("fee") is None


# ─── RowNormalizer ───

BASIC = ColumnMapping(date="Date", description="Description", amount="Amount", merchant="Merchant")
DEBIT_CREDIT = ColumnMapping(date="Date", description="Description", debit="Debit", credit="Credit")


def test_normalizes_a_row():
    row = {"Date": "15/01/2024", "Description": "  Coffee Purchase ", "Amount": "-4.50", "Merchant": "Starbucks"}
    tx = RowNormalizer(BASIC, user_id="u1").normalize(row)

    assert tx["date"] == "2024-01-15"
    assert tx["description"] == "Coffee Purchase"
    assert tx["amount"] == -4.5
    assert tx["is_income"] is False
    assert tx["merchant"] == "Starbucks"
    assert tx["dedupe_hash"] == dedupe_hash("u1", "2024-01-15", "Coffee Purchase", 4.5)
    assert tx["raw"] is row
    assert "category" not in tx


def test_optional_fields_are_omitted_when_unmapped_or_empty():
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount")
    tx = RowNormalizer(mapping).normalize({"Date": "2024-01-15", "Description": "Tea", "Amount": "2"})
    assert "merchant" not in tx
    assert "gst_rate" not in tx


def test_row_gst_and_source_category_are_kept():
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount", gst="GST", category="Category")
    tx = RowNormalizer(mapping).normalize(
        {"Date": "2024-01-15", "Description": "Laptop", "Amount": "-999", "GST": "18%", "Category": "Office"}
    )
    assert tx["gst_rate"] == 18.0
    assert tx["source_category"] == "Office"


@pytest.mark.parametrize("row,reason", [
    ({"Date": "not a date", "Description": "X", "Amount": "1"}, "Invalid or missing date"),
    ({"Date": "", "Description": "X", "Amount": "1"}, "Invalid or missing date"),
    ({"Date": "2024-01-15", "Description": "   ", "Amount": "1"}, "Missing description"),
    ({"Date": "2024-01-15", "Description": "X", "Amount": "abc"}, "Invalid or missing amount"),
    ({"Date": "2024-01-15", "Description": "X", "Amount": ""}, "Invalid or missing amount"),
])
def test_row_failures_carry_a_reason(row, reason):
    with pytest.raises(RowError) as exc:
        RowNormalizer(BASIC).normalize(row)
    assert exc.value.reason == reason


@pytest.mark.parametrize("debit,credit,expected", [
    ("2,000.00", "", -2000.0),
    ("", "5000", 5000.0),
    ("-15", "", -15.0),
    ("abc", "20", 20.0),
    ("10", "20", -10.0),
])
def test_debit_credit_columns(debit, credit, expected):
    tx = RowNormalizer(DEBIT_CREDIT).normalize(
        {"Date": "2024-01-15", "Description": "X", "Debit": debit, "Credit": credit}
    )
    assert tx["amount"] == expected
    assert tx["is_income"] == (expected > 0)


def test_debit_and_credit_both_zero_fails():
    with pytest.raises(RowError, match="No amount found in debit or credit columns"):
        RowNormalizer(DEBIT_CREDIT).normalize(
            {"Date": "2024-01-15", "Description": "X", "Debit": "0", "Credit": "0.00"}
        )


def test_single_amount_column_takes_precedence():
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount", debit="Debit", credit="Credit")
    tx = RowNormalizer(mapping).normalize(
        {"Date": "2024-01-15", "Description": "X", "Amount": "-10", "Debit": "99", "Credit": ""}
    )
    assert tx["amount"] == -10.0


def test_debit_only_statement():
    mapping = ColumnMapping(date="Date", description="Description", debit="Withdrawal")
    tx = RowNormalizer(mapping).normalize({"Date": "2024-01-15", "Description": "ATM", "Withdrawal": "50"})
    assert tx["amount"] == -50.0


def test_no_amount_mapping_fails_every_row():
    mapping = ColumnMapping(date="Date", description="Description")
    with pytest.raises(RowError, match="No amount column found"):
        RowNormalizer(mapping).normalize({"Date": "2024-01-15", "Description": "X"})


@pytest.mark.parametrize("amount", ["-4.50", "0", "0.00", "3000", "(12.00)", "1 Cr"])
def test_is_income_always_matches_sign(amount):
    tx = RowNormalizer(BASIC).normalize({"Date": "2024-01-15", "Description": "X", "Amount": amount})
    assert tx["is_income"] == (tx["amount"] > 0)
