"""
Record Service Façade for Bookkeeper

This module ties together validation, the partial-update engine,
the record store and the dashboard aggregator. It is the only entry
point the RPC router and the UI use.

DESIGN DECISION: The façade enforces the boundaries:
- Nothing reaches the store until validation has passed
- A failed validation never partially mutates a record
- Errors propagate unchanged; they are logged, never swallowed

Record handling is written once in RecordService and parameterized by
RecordKind, so invoices and expenses share validation and merge logic.
"""

from datetime import datetime, timezone
from typing import Any, Generic, Optional

from bookkeeper.api import RpcRouter
from bookkeeper.config import StorageBackend, get_settings
from bookkeeper.dashboard import DashboardAggregator
from bookkeeper.log import configure_logging, get_logger
from bookkeeper.models.dashboard import DashboardStats
from bookkeeper.models.records import (
    EXPENSE,
    INVOICE,
    CreateT,
    Expense,
    Invoice,
    PatchT,
    RecordKind,
    RecordT,
)
from bookkeeper.models.validation import ValidationResult
from bookkeeper.services.storage import (
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
    SqlLedgerStorage,
    StorageError,
)
from bookkeeper.validation import RecordValidator, ValidationError

logger = get_logger(__name__)


class RecordService(Generic[RecordT, CreateT, PatchT]):
    """
    Create, read and update records of one kind.

    Flow for writes:
    1. Validate → stop with ValidationError on any error-level issue
    2. Log warnings (never blocking)
    3. Delegate to the store (insert, or update through merge_patch)
    """

    def __init__(
        self,
        kind: RecordKind[RecordT, CreateT, PatchT],
        storage: RecordStorageInterface[RecordT, CreateT],
        validator: RecordValidator,
    ):
        self.kind = kind
        self._storage = storage
        self._validator = validator

    def _check(self, result: ValidationResult, operation: str) -> None:
        for issue in result.warnings:
            logger.warning(
                "record_validation_warning",
                record_kind=self.kind.name,
                operation=operation,
                field=issue.field,
                issue_type=issue.issue_type,
                message=issue.message,
            )
        if result.has_errors:
            error = ValidationError.from_result(result)
            logger.warning(
                "record_validation_failed",
                record_kind=self.kind.name,
                operation=operation,
                fields=error.fields,
            )
            raise error

    def _log_storage_failure(self, operation: str, error: StorageError, **context) -> None:
        if isinstance(error, NotFoundError):
            logger.warning(
                "record_not_found",
                record_kind=self.kind.name,
                operation=operation,
                **context,
            )
        else:
            logger.error(
                "record_storage_failed",
                record_kind=self.kind.name,
                operation=operation,
                error=str(error),
                **context,
            )

    async def create(self, payload: Any) -> RecordT:
        """
        Validate and store a new record.

        Args:
            payload: A mapping or a create-schema model

        Raises:
            ValidationError: If any field fails its constraint
            StorageError: If the store rejects the write
        """
        draft, result = self._validator.validate_create(self.kind, payload)
        self._check(result, "create")

        try:
            record = await self._storage.insert(draft)
        except StorageError as e:
            self._log_storage_failure("create", e)
            raise

        logger.info(
            f"{self.kind.name}_created",
            record_id=record.id,
            amount=str(record.amount),
        )
        return record

    async def update(self, record_id: Any, payload: Any) -> RecordT:
        """
        Apply a partial update.

        Only fields present in the payload are validated and changed.
        An empty payload succeeds and returns the record unchanged.

        Raises:
            ValidationError: If the id or a present field is invalid
            NotFoundError: If no record has that id
            StorageError: If the store rejects the write
        """
        self._check(self._validator.validate_id(self.kind, record_id), "update")

        patch, result = self._validator.validate_patch(self.kind, payload)
        self._check(result, "update")

        try:
            record = await self._storage.update(record_id, patch)
        except StorageError as e:
            self._log_storage_failure("update", e, record_id=record_id)
            raise

        logger.info(
            f"{self.kind.name}_updated",
            record_id=record.id,
            fields=sorted(patch.model_fields_set),
        )
        return record

    async def get(self, record_id: Any) -> RecordT:
        """Get one record by id."""
        self._check(self._validator.validate_id(self.kind, record_id), "get")
        try:
            return await self._storage.get(record_id)
        except StorageError as e:
            self._log_storage_failure("get", e, record_id=record_id)
            raise

    async def list_all(self) -> list[RecordT]:
        """List every record of this kind."""
        try:
            return await self._storage.list_all()
        except StorageError as e:
            self._log_storage_failure("list", e)
            raise


class BookkeepingService:
    """
    The façade external callers use.

    Exposes per-kind create/list/update plus the dashboard statistics.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[RecordValidator] = None,
    ):
        self._storage = storage
        self.validator = validator = validator or RecordValidator()
        self.invoices: RecordService[Invoice, Any, Any] = RecordService(
            INVOICE, storage.store_for(INVOICE), validator
        )
        self.expenses: RecordService[Expense, Any, Any] = RecordService(
            EXPENSE, storage.store_for(EXPENSE), validator
        )
        self._aggregator = DashboardAggregator(storage)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    # Invoices

    async def create_invoice(self, payload: Any) -> Invoice:
        return await self.invoices.create(payload)

    async def list_invoices(self) -> list[Invoice]:
        return await self.invoices.list_all()

    async def get_invoice(self, invoice_id: int) -> Invoice:
        return await self.invoices.get(invoice_id)

    async def update_invoice(self, invoice_id: int, patch: Any) -> Invoice:
        return await self.invoices.update(invoice_id, patch)

    # Expenses

    async def create_expense(self, payload: Any) -> Expense:
        return await self.expenses.create(payload)

    async def list_expenses(self) -> list[Expense]:
        return await self.expenses.list_all()

    async def get_expense(self, expense_id: int) -> Expense:
        return await self.expenses.get(expense_id)

    async def update_expense(self, expense_id: int, patch: Any) -> Expense:
        return await self.expenses.update(expense_id, patch)

    # Dashboard

    async def get_dashboard_stats(self) -> DashboardStats:
        try:
            return await self._aggregator.get_dashboard_stats()
        except StorageError as e:
            logger.error("dashboard_stats_failed", error=str(e))
            raise

    async def healthcheck(self) -> dict:
        """Report liveness and whether the store is reachable."""
        storage_ok = await self._storage.ping()
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "storage": {
                "backend": self._storage.backend_name,
                "reachable": storage_ok,
            },
        }


def create_storage(backend: Optional[StorageBackend] = None) -> LedgerStorageInterface:
    """
    Build the configured storage backend.

    Args:
        backend: Override the backend from settings

    Raises:
        ConnectionError: If the backend cannot be initialized
    """
    settings = get_settings()
    storage_settings = settings.storage
    backend = StorageBackend(backend or storage_settings.backend)

    if backend == StorageBackend.MEMORY:
        return InMemoryLedgerStorage()

    if backend == StorageBackend.SQL:
        return SqlLedgerStorage(
            database_url=storage_settings.database_url,
            echo=storage_settings.echo_sql,
        )

    # Imported here so gspread is only needed when Sheets is selected
    from bookkeeper.services.storage.google_sheets import GoogleSheetsLedgerStorage

    return GoogleSheetsLedgerStorage(settings=settings.google_sheets)


def create_app_components(
    backend: Optional[StorageBackend] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> tuple[BookkeepingService, RpcRouter]:
    """
    Factory function to create all application components.

    Args:
        backend: Storage backend override (ignored if storage is given)
        storage: A ready-made storage, e.g. for tests

    Returns:
        (bookkeeping_service, rpc_router)
    """
    app_settings = get_settings().app
    log_level = "DEBUG" if app_settings.debug_mode else app_settings.log_level
    configure_logging(log_level, json=app_settings.log_json)

    storage = storage or create_storage(backend)
    service = BookkeepingService(storage, RecordValidator(app_settings))

    logger.info(
        "app_components_created",
        backend=storage.backend_name,
        environment=app_settings.app_environment,
    )
    return service, RpcRouter(service)
