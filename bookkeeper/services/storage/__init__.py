"""
Storage Services Package

Provides the abstract record store interface and its implementations.
SQL (SQLAlchemy) is the default backend; Google Sheets and in-memory
storage implement the same interface.

The Google Sheets backend is imported lazily so gspread is only
loaded when that backend is selected.
"""

from bookkeeper.services.storage.interface import (
    ConnectionError,
    LedgerSnapshot,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)
from bookkeeper.services.storage.memory import (
    InMemoryLedgerStorage,
    InMemoryRecordStorage,
)
from bookkeeper.services.storage.sql import (
    SqlLedgerStorage,
    SqlRecordStorage,
    create_sql_engine,
)

__all__ = [
    # Interfaces
    "LedgerSnapshot",
    "LedgerStorageInterface",
    "RecordStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryLedgerStorage",
    "InMemoryRecordStorage",
    # SQL implementation
    "SqlLedgerStorage",
    "SqlRecordStorage",
    "create_sql_engine",
]
