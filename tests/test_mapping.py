import dataclasses

import pytest

from backend.ingest.mapping import detect_column_mapping, validate_mapping
from backend.ingest.models import ColumnMapping


def test_standard_headers():
    mapping = detect_column_mapping(["Date", "Description", "Amount", "Merchant", "Category"])
    assert mapping == ColumnMapping(
        date="Date", description="Description", amount="Amount",
        merchant="Merchant", category="Category",
    )


def test_aliases_tolerate_case_and_separators():
    mapping = detect_column_mapping(["TXN_DATE", "Narration", "Withdrawal", "Deposit", "Payee", "GST"])

    assert mapping.date == "TXN_DATE"
    assert mapping.description == "Narration"
    assert mapping.debit == "Withdrawal"
    assert mapping.credit == "Deposit"
    assert mapping.merchant == "Payee"
    assert mapping.gst == "GST"
    assert mapping.amount is None


def test_earliest_matching_column_wins():
    mapping = detect_column_mapping(["Value Date", "Posting Date", "Narration", "Amount"])
    assert mapping.date == "Value Date"
    assert mapping.description == "Narration"

    mapping = detect_column_mapping(["Remarks", "Description", "Value Date", "Date", "Amount"])
    assert mapping.date == "Value Date"
    assert mapping.description == "Remarks"


def test_first_matching_header_is_locked_in():
    mapping = detect_column_mapping(["Date", "Memo", "Debit", "Debits", "Credit"])
    assert mapping.debit == "Debit"
    assert mapping.description == "Memo"


def test_fuzzy_pass_for_unusual_headers():
    mapping = detect_column_mapping(["Booking Date", "Transaction Description", "Amount (INR)"])
    assert mapping.date == "Booking Date"
    assert mapping.description == "Transaction Description"
    assert mapping.amount == "Amount (INR)"


def test_fuzzy_amount_is_not_used_when_debit_or_credit_exist():
    mapping = detect_column_mapping(["Date", "Details", "Dr", "Cr", "Closing Value"])
    assert mapping.debit == "Dr"
    assert mapping.credit == "Cr"
    assert mapping.amount is None


def test_fuzzy_pass_does_not_reuse_claimed_columns():
    mapping = detect_column_mapping(["Trans Date Desc", "Amount"])
    assert mapping.date == "Trans Date Desc"
    assert mapping.description is None


def test_validate_mapping_names_missing_fields():
    warnings = validate_mapping(detect_column_mapping(["Foo", "Bar"]))
    assert len(warnings) == 3
    assert warnings[0].startswith("No date column detected. Expected headers like: Date")

    assert validate_mapping(detect_column_mapping(["Date", "Narration", "Credit"])) == []


def test_mapping_is_immutable():
    mapping = detect_column_mapping(["Date"])
    with pytest.raises(dataclasses.FrozenInstanceError):
        mapping.date = "Other"
