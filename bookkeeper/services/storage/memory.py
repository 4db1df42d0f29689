"""
In-Memory Storage Implementation

Used by tests and demos. Nothing survives the process.

A single lock guards both tables, so inserts, updates and the
dashboard snapshot never observe each other half-done.
Records are copied on the way in and out; callers can't mutate
stored state by accident.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from bookkeeper.models.records import (
    EXPENSE,
    INVOICE,
    Expense,
    ExpenseCreate,
    Invoice,
    InvoiceCreate,
    RecordKind,
)
from bookkeeper.patching import merge_patch
from bookkeeper.services.storage.interface import (
    LedgerSnapshot,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """Dict-backed store for one entity kind."""

    def __init__(self, kind: RecordKind, lock: Optional[threading.RLock] = None):
        self.kind = kind
        self._lock = lock or threading.RLock()
        self._rows: dict[int, BaseModel] = {}
        self._next_id = 1

    def _rows_locked(self) -> list:
        return [row.model_copy() for _, row in sorted(self._rows.items())]

    async def insert(self, draft):
        with self._lock:
            record = self.kind.model(
                id=self._next_id,
                created_at=datetime.now(timezone.utc),
                **draft.model_dump(),
            )
            self._rows[record.id] = record
            self._next_id += 1
            return record.model_copy()

    async def list_all(self):
        with self._lock:
            return self._rows_locked()

    async def get(self, record_id: int):
        with self._lock:
            try:
                return self._rows[record_id].model_copy()
            except KeyError:
                raise NotFoundError(f"{self.kind.label} not found: {record_id}")

    async def update(self, record_id: int, patch: BaseModel):
        with self._lock:
            current = self._rows.get(record_id)
            if current is None:
                raise NotFoundError(f"{self.kind.label} not found: {record_id}")
            updated = merge_patch(current, patch)
            self._rows[record_id] = updated
            return updated.model_copy()


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Both tables in process memory."""

    backend_name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._invoices: RecordStorageInterface[Invoice, InvoiceCreate] = (
            InMemoryRecordStorage(INVOICE, self._lock)
        )
        self._expenses: RecordStorageInterface[Expense, ExpenseCreate] = (
            InMemoryRecordStorage(EXPENSE, self._lock)
        )

    @property
    def invoices(self):
        return self._invoices

    @property
    def expenses(self):
        return self._expenses

    async def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                invoices=self._invoices._rows_locked(),
                expenses=self._expenses._rows_locked(),
            )

    async def ping(self) -> bool:
        return True
