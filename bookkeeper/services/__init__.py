"""Services package."""

from bookkeeper.services.storage import (
    ConnectionError,
    InMemoryLedgerStorage,
    LedgerSnapshot,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
    SqlLedgerStorage,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "InMemoryLedgerStorage",
    "LedgerSnapshot",
    "LedgerStorageInterface",
    "NotFoundError",
    "RecordStorageInterface",
    "SqlLedgerStorage",
    "StorageError",
]
