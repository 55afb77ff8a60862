"""
Unit tests for CSV row format detection and normalization.
"""
import pytest

from core.normalize import (
    detect_row,
    is_payment,
    make_transaction_id,
    parse_amount,
    parse_row,
    parse_rows,
)
from core.schema import BankLedgerRow, SingleColumnRow, UnrecognizedRow


def ledger_row(description="STAPLES 0042", debit="", credit="", date="01/05/2024"):
    return {"Status": "Posted", "Date": date, "Description": description, "Debit": debit, "Credit": credit}


def amount_row(description="UBER TRIP", amount="23.10", date="01/07/2024"):
    return {"Date": date, "Description": description, "Amount": amount}


@pytest.mark.parametrize("raw,expected", [
    ("12.50", 12.5),
    (" 1,234.56 ", 1234.56),
    ("-40", -40.0),
    ("", 0.0),
    (None, 0.0),
    ("abc", 0.0),
    ("$12", 0.0),
    ("nan", 0.0),
    ("inf", 0.0),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_bank_ledger_debit_is_outflow():
    """Debit rows become positive personal expenses."""
    row = ledger_row(debit="45.99")
    txn = parse_row(row, "chase", 3, ingested_at_ms=1700000000000)
    
    assert txn is not None
    assert txn.amount == 45.99
    assert txn.vendor == "STAPLES 0042"
    assert txn.date == "01/05/2024"
    assert txn.is_business is False
    assert txn.category is None
    assert txn.source == "chase"
    assert txn.raw_data == row
    assert txn.id == "chase-3-1700000000000"


def test_bank_ledger_credit_is_negative_and_dropped():
    """Credits are detected as negative amounts, which the filter drops."""
    row = ledger_row(description="REFUND AMAZON", credit="30.00")
    detected = detect_row(row)
    
    assert isinstance(detected, BankLedgerRow)
    assert detected.amount == -30.0
    assert parse_row(row, "chase", 0) is None


def test_bank_ledger_debit_wins_over_credit():
    detected = detect_row(ledger_row(debit="10", credit="5"))
    assert detected.amount == 10.0


@pytest.mark.parametrize("raw", ["23.10", "-23.10"])
def test_single_column_uses_absolute_amount(raw):
    txn = parse_row(amount_row(amount=raw), "amex", 0)
    assert txn is not None
    assert txn.amount == 23.10


def test_single_column_without_description_has_empty_vendor():
    detected = detect_row({"Date": "01/02/2024", "Amount": "9.99"})
    assert isinstance(detected, SingleColumnRow)
    assert detected.vendor == ""


def test_ledger_columns_without_values_fall_back_to_amount():
    """Blank Debit and Credit do not make a row bank-ledger."""
    row = {"Date": "01/02/2024", "Description": "ADOBE", "Debit": "", "Credit": "", "Amount": "52.99"}
    detected = detect_row(row)
    assert isinstance(detected, SingleColumnRow)
    assert detected.amount == 52.99


def test_unrecognized_row_is_dropped():
    row = {"Posting Date": "01/02/2024", "Memo": "something", "Value": "10"}
    assert isinstance(detect_row(row), UnrecognizedRow)
    assert parse_row(row, "bank", 0) is None


@pytest.mark.parametrize("vendor", ["PAYMENT THANK YOU", "Autopay Payment", "online payment - thank you"])
def test_payment_rows_are_dropped(vendor):
    assert is_payment(vendor)
    assert parse_row(ledger_row(description=vendor, debit="500.00"), "chase", 0) is None
    assert parse_row(amount_row(description=vendor, amount="-500.00"), "amex", 0) is None


@pytest.mark.parametrize("debit", ["0", "0.00", "not-a-number", "-12"])
def test_non_positive_or_malformed_amounts_are_dropped(debit):
    assert parse_row(ledger_row(debit=debit), "chase", 0) is None


def test_vendor_and_date_are_trimmed():
    txn = parse_row(amount_row(description="  GITHUB  ", date=" 02/01/2024 "), "amex", 0)
    assert txn.vendor == "GITHUB"
    assert txn.date == "02/01/2024"


def test_transaction_ids_differ_across_uploads():
    assert make_transaction_id("chase", 0, 1) != make_transaction_id("chase", 0, 2)
    assert make_transaction_id("chase", 0, 1) != make_transaction_id("amex", 0, 1)


def test_parse_rows_counts_parsed_and_total():
    """10 rows: 5 valid, 3 payments, 2 malformed."""
    rows = [ledger_row(description=f"VENDOR {i}", debit=f"{i + 1}.00") for i in range(5)]
    rows += [ledger_row(description="PAYMENT THANK YOU", debit="100.00") for _ in range(3)]
    rows += [ledger_row(debit="n/a"), {"Foo": "bar"}]
    
    result = parse_rows(rows, "chase")
    
    assert result.total == 10
    assert result.parsed == 5
    assert [t.vendor for t in result.transactions] == [f"VENDOR {i}" for i in range(5)]
    assert len({t.id for t in result.transactions}) == 5


def test_parse_rows_empty_input():
    result = parse_rows([], "chase")
    assert result.total == 0
    assert result.parsed == 0
    assert result.transactions == []
