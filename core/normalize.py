"""
Row normalization: format detection and conversion of CSV rows into
Transaction records.

Two export shapes are recognized, checked in priority order:
- bank ledger: Description, Date and Debit/Credit columns
- single column: Amount and Date (Description optional)
Anything else is unrecognized and dropped.
"""
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from core.logger import setup_logger
from core.schema import (
    BankLedgerRow,
    DetectedRow,
    ParsedCSVData,
    SingleColumnRow,
    Transaction,
    UnrecognizedRow,
)

logger = setup_logger(__name__)

PAYMENT_MARKER = "payment"


def parse_amount(value: Any) -> float:
    """
    Parse a numeric CSV cell.
    
    Whitespace and thousands separators are removed. Malformed or
    non-finite values parse to 0.0 instead of raising, so the row is
    later dropped by the amount filter.
    
    Args:
        value: Raw cell value
    
    Returns:
        Parsed float, or 0.0 if the value is not numeric
    """
    if value is None:
        return 0.0
    
    amount_str = str(value).strip().replace(",", "").replace(" ", "").replace("\xa0", "")
    if not amount_str:
        return 0.0
    
    try:
        result = float(amount_str)
    except (ValueError, TypeError):
        logger.debug(f"Non-numeric amount '{value}' parsed as 0")
        return 0.0
    
    if not math.isfinite(result):
        return 0.0
    return result


def _cell(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    return str(value)


def _has_value(row: Mapping[str, Any], key: str) -> bool:
    return bool(_cell(row, key).strip())


def detect_row(row: Mapping[str, Any]) -> DetectedRow:
    """
    Decide which export format a row belongs to from its field names.
    
    Args:
        row: Raw CSV row
    
    Returns:
        BankLedgerRow, SingleColumnRow, or UnrecognizedRow
    """
    has_description = _has_value(row, "Description")
    has_date = _has_value(row, "Date")
    
    if has_description and has_date and (_has_value(row, "Debit") or _has_value(row, "Credit")):
        return BankLedgerRow(
            vendor=_cell(row, "Description").strip(),
            date=_cell(row, "Date").strip(),
            debit=parse_amount(row.get("Debit")),
            credit=parse_amount(row.get("Credit")),
        )
    
    if _has_value(row, "Amount") and has_date:
        return SingleColumnRow(
            vendor=_cell(row, "Description").strip(),
            date=_cell(row, "Date").strip(),
            raw_amount=parse_amount(row.get("Amount")),
        )
    
    return UnrecognizedRow()


def is_payment(vendor: str) -> bool:
    """Card payments and transfers are not expenses."""
    return PAYMENT_MARKER in (vendor or "").lower()


def make_transaction_id(source: str, row_index: int, ingested_at_ms: int) -> str:
    """Build an id unique across repeated uploads of the same file."""
    return f"{source}-{row_index}-{ingested_at_ms}"


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def parse_row(
    row: Mapping[str, Any],
    source: str,
    row_index: int,
    ingested_at_ms: Optional[int] = None,
) -> Optional[Transaction]:
    """
    Convert one CSV row into a Transaction.
    
    Args:
        row: Raw CSV row
        source: Import batch label (e.g. card name)
        row_index: Zero-based position of the row in its file
        ingested_at_ms: Ingestion timestamp in milliseconds (defaults to now)
    
    Returns:
        Transaction, or None if the row is unrecognized, a payment, or
        has a non-positive amount
    """
    detected = detect_row(row)
    
    if isinstance(detected, UnrecognizedRow):
        logger.debug(f"Row {row_index}: unrecognized format {list(row.keys())}")
        return None
    
    amount = detected.amount
    if amount <= 0 or is_payment(detected.vendor):
        logger.debug(f"Row {row_index}: skipped (amount={amount}, vendor={detected.vendor!r})")
        return None
    
    if ingested_at_ms is None:
        ingested_at_ms = _now_ms()
    
    return Transaction(
        id=make_transaction_id(source, row_index, ingested_at_ms),
        vendor=detected.vendor,
        date=detected.date,
        amount=amount,
        is_business=False,
        source=source,
        raw_data=dict(row),
    )


def parse_rows(rows: Iterable[Mapping[str, Any]], source: str) -> ParsedCSVData:
    """
    Normalize every row of one file with a shared ingestion timestamp.
    
    Args:
        rows: Raw CSV rows
        source: Import batch label
    
    Returns:
        ParsedCSVData with accepted transactions and parsed/total counts
    """
    ingested_at_ms = _now_ms()
    transactions = []
    total = 0
    
    for index, row in enumerate(rows):
        total += 1
        transaction = parse_row(row, source, index, ingested_at_ms)
        if transaction is not None:
            transactions.append(transaction)
    
    logger.info(f"Normalized {len(transactions)} of {total} rows from source '{source}'")
    
    return ParsedCSVData(transactions=transactions, total=total, parsed=len(transactions))
