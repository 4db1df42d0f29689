"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap SQL for Google Sheets (or anything else) without touching business logic
2. Use in-memory storage for testing
3. Keep validation and aggregation decoupled from persistence

The interface is intentionally small - we're not building a full ORM.
Insert, full scan, update-by-id, and a consistent two-table snapshot.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic

from pydantic import BaseModel

from bookkeeper.models.records import (
    EXPENSE,
    INVOICE,
    CreateT,
    Expense,
    ExpenseCreate,
    Invoice,
    InvoiceCreate,
    RecordKind,
    RecordT,
)


class RecordStorageInterface(ABC, Generic[RecordT, CreateT]):
    """
    Abstract interface for storing one entity kind.

    Every operation persists its changes before returning.
    """

    kind: RecordKind

    @abstractmethod
    async def insert(self, draft: CreateT) -> RecordT:
        """
        Store a new record.

        Args:
            draft: The validated create input

        Returns:
            The stored record with a fresh id and created_at

        Raises:
            StorageError: If the backend is unreachable or rejects the write
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[RecordT]:
        """
        Return every record of this kind, in id order.

        Returns:
            List of records (empty if none exist)
        """
        pass

    @abstractmethod
    async def get(self, record_id: int) -> RecordT:
        """
        Retrieve a record by its id.

        Raises:
            NotFoundError: If no record has that id
        """
        pass

    @abstractmethod
    async def update(self, record_id: int, patch: BaseModel) -> RecordT:
        """
        Apply a validated patch to an existing record.

        Only the fields explicitly set on the patch change.
        The read-merge-write happens as one unit of work.

        Args:
            record_id: The record's id
            patch: A validated patch model for this kind

        Returns:
            The updated record

        Raises:
            NotFoundError: If no record has that id
            StorageError: If the update fails
        """
        pass


@dataclass(frozen=True)
class LedgerSnapshot:
    """Both tables as read in one consistent unit."""
    invoices: list[Invoice]
    expenses: list[Expense]
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the whole record store.

    Groups the per-kind stores and adds the two-table snapshot
    the dashboard needs.
    """

    backend_name: str = "abstract"

    @property
    @abstractmethod
    def invoices(self) -> RecordStorageInterface[Invoice, InvoiceCreate]:
        pass

    @property
    @abstractmethod
    def expenses(self) -> RecordStorageInterface[Expense, ExpenseCreate]:
        pass

    def store_for(self, kind: RecordKind) -> RecordStorageInterface:
        """Look up the per-kind store for an entity kind."""
        if kind is INVOICE:
            return self.invoices
        if kind is EXPENSE:
            return self.expenses
        raise KeyError(f"No store for record kind: {kind.name}")

    @abstractmethod
    async def snapshot(self) -> LedgerSnapshot:
        """
        Read both tables as one coherent unit.

        Backends that cannot guarantee atomicity must say so
        in their class docstring.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """
        Check the backend is reachable.

        Returns:
            True if a trivial read succeeded
        """
        pass

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
