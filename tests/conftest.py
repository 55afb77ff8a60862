"""
Shared fixtures: a temporary SQLite-backed store and a transaction factory.
"""
import pytest

from core.config import reset_settings
from core.db import Database
from core.schema import Transaction
from core.store import TransactionStore


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop the settings singleton around every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store(tmp_path):
    database = Database(str(tmp_path / "schedule_c.db"))
    database.init_db()
    return TransactionStore(database)


@pytest.fixture
def make_transaction():
    def _make(txn_id, vendor="Staples", amount=25.0, **fields):
        return Transaction(
            id=txn_id,
            vendor=vendor,
            date=fields.pop("date", "01/15/2024"),
            amount=amount,
            source=fields.pop("source", "chase"),
            **fields
        )
    return _make
