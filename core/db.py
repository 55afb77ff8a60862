"""
SQLite-backed key-value storage.
Each named record is stored as a JSON document under its key.
"""
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from core.config import get_settings
from core.exceptions import StorageError
from core.logger import setup_logger

logger = setup_logger(__name__)


class Database:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = str(db_path or get_settings().database_path)

    def get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize the key-value table."""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = self.get_connection()
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Cannot open database {self.db_path}: {e}")
            raise StorageError(
                "Storage unavailable",
                details={"db_path": self.db_path, "error": str(e)}
            )
        
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Database initialization failed: {e}")
            raise StorageError(
                "Database initialization failed",
                details={"db_path": self.db_path, "error": str(e)}
            )
        finally:
            conn.close()

    def get_item(self, key: str) -> Optional[Any]:
        """
        Read a JSON record.
        
        Returns:
            Decoded value, or None if the key has never been written
        
        Raises:
            StorageError: If the database cannot be read or the record is corrupt
        """
        try:
            conn = self.get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}'", details={"key": key, "error": str(e)})
        
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            if row is None:
                return None
            return json.loads(row["value"])
        except sqlite3.Error as e:
            logger.error(f"Failed to read {key}: {e}")
            raise StorageError(f"Failed to read '{key}'", details={"key": key, "error": str(e)})
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt record {key}: {e}")
            raise StorageError(f"Stored '{key}' record is corrupt", details={"key": key, "error": str(e)})
        finally:
            conn.close()

    def set_item(self, key: str, value: Any) -> None:
        """
        Write a JSON record, replacing any previous value.
        
        Raises:
            StorageError: If the value cannot be encoded or written
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot encode '{key}'", details={"key": key, "error": str(e)})
        
        try:
            conn = self.get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write '{key}'", details={"key": key, "error": str(e)})
        
        try:
            now = datetime.now(timezone.utc).isoformat()
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, payload, now)
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to write {key}: {e}")
            raise StorageError(f"Failed to write '{key}'", details={"key": key, "error": str(e)})
        finally:
            conn.close()
