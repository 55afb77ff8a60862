"""
Transaction store: the persisted transaction list and deduction record.

All access goes through this object. Read-modify-write sequences hold
the store lock so at most one writer is in flight.
"""
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from core.db import Database
from core.exceptions import StorageError
from core.logger import setup_logger
from core.schema import DeductionData, Transaction

logger = setup_logger(__name__)

TRANSACTIONS_KEY = "transactions"
DEDUCTIONS_KEY = "deductions"


class TransactionStore:
    """Durable, insertion-ordered list of transactions plus deductions."""

    def __init__(self, database: Database):
        self.database = database
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator["TransactionStore"]:
        """Hold the writer lock across several store operations."""
        with self._lock:
            yield self

    def get_all(self) -> List[Transaction]:
        """Return all transactions in insertion order."""
        records = self.database.get_item(TRANSACTIONS_KEY) or []
        try:
            return [Transaction.model_validate(record) for record in records]
        except (PydanticValidationError, TypeError) as e:
            raise StorageError(
                "Stored transactions are invalid",
                details={"error": str(e)}
            )

    def save_all(self, transactions: Sequence[Transaction]) -> None:
        """Replace the stored list."""
        with self._lock:
            self.database.set_item(
                TRANSACTIONS_KEY,
                [t.model_dump(mode="json") for t in transactions]
            )

    def append(self, transactions: Sequence[Transaction]) -> None:
        with self._lock:
            existing = self.get_all()
            self.save_all(existing + list(transactions))
            logger.info(f"Appended {len(transactions)} transactions ({len(existing) + len(transactions)} stored)")

    def update_one(self, transaction_id: str, fields: Dict[str, Any]) -> bool:
        """
        Merge fields into one transaction.
        
        Returns:
            True if the transaction exists; an unknown id is a no-op
        """
        with self._lock:
            transactions = self.get_all()
            for index, transaction in enumerate(transactions):
                if transaction.id == transaction_id:
                    updated = {**transaction.model_dump(), **fields, "id": transaction.id}
                    transactions[index] = Transaction.model_validate(updated)
                    self.save_all(transactions)
                    return True
            logger.debug(f"update_one: transaction {transaction_id} not found")
            return False

    def delete_all(self) -> None:
        with self._lock:
            self.save_all([])
            logger.info("Deleted all transactions")

    def get_deductions(self) -> DeductionData:
        record = self.database.get_item(DEDUCTIONS_KEY) or {}
        try:
            return DeductionData.model_validate(record)
        except PydanticValidationError as e:
            raise StorageError("Stored deductions are invalid", details={"error": str(e)})

    def save_deductions(self, deductions: DeductionData) -> None:
        with self._lock:
            self.database.set_item(DEDUCTIONS_KEY, deductions.model_dump(mode="json", exclude_none=True))

    def has_data(self) -> bool:
        """Whether any transactions exist; read failures count as no data."""
        try:
            return len(self.get_all()) > 0
        except StorageError as e:
            logger.warning(f"Could not read transactions, treating as empty: {e.message}")
            return False
