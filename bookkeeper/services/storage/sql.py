"""
SQL Storage Implementation (async SQLAlchemy)

DESIGN DECISION: SQL is the default backend because it gives us
everything the record store contract asks for natively:
1. Unique ids from an autoincrement primary key
2. Durable writes on commit
3. Update-by-id as one transaction (read, merge, write)
4. A snapshot of both tables inside one read transaction

Uses async SQLAlchemy (AsyncSession) so store calls never block the
event loop. SQLite via aiosqlite is the default database.

pysqlite defers BEGIN until the first write, which would let the two
snapshot SELECTs see different states. We take over transaction
control and emit BEGIN ourselves, as the SQLAlchemy documentation
recommends for (aio)sqlite.

Timestamps are stored as UTC and come back timezone-aware, including
on SQLite, which has no native timezone support.

Session-per-operation: every public method opens its own transaction.
Tables are created on first use.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import DateTime, Enum, Integer, Numeric, Text, event, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from bookkeeper.log import get_logger
from bookkeeper.models.records import (
    EXPENSE,
    INVOICE,
    ExpenseCategory,
    InvoiceStatus,
    RecordKind,
)
from bookkeeper.patching import merge_patch, patch_fields
from bookkeeper.services.storage.interface import (
    ConnectionError,
    LedgerSnapshot,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)

logger = get_logger(__name__)


def _enum_values(enum_cls) -> list[str]:
    # Persist the display values ("Office Supplies"), not the member names
    return [member.value for member in enum_cls]


class UTCDateTime(TypeDecorator):
    """
    DateTime that always round-trips as timezone-aware UTC.

    Values are converted to UTC before binding. Naive values read back
    (SQLite keeps no offset) are stamped with UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class InvoiceRow(Base):
    """Invoices table."""
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    issue_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    due_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, name="invoice_status", values_callable=_enum_values),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class ExpenseRow(Base):
    """Expenses table."""
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        Enum(ExpenseCategory, name="expense_category", values_callable=_enum_values),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


def _install_sqlite_transaction_control(engine: AsyncEngine) -> None:
    """Make SQLite start real transactions on BEGIN, reads included."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_sql_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the transaction behaviour the store relies on."""
    try:
        engine = create_async_engine(database_url, echo=echo)
    except (SQLAlchemyError, ImportError) as e:
        raise ConnectionError(f"Failed to create database engine: {e}") from e

    if engine.dialect.name == "sqlite":
        _install_sqlite_transaction_control(engine)

    logger.info("database_engine_created", dialect=engine.dialect.name)
    return engine


class SqlRecordStorage(RecordStorageInterface):
    """Table-backed store for one entity kind."""

    def __init__(
        self,
        kind: RecordKind,
        row_class: type[Base],
        ledger: "SqlLedgerStorage",
    ):
        self.kind = kind
        self._row_class = row_class
        self._ledger = ledger

    def _to_model(self, row: Base):
        return self.kind.model.model_validate(row, from_attributes=True)

    async def _select_all(self, session: AsyncSession) -> list:
        rows = await session.scalars(select(self._row_class).order_by(self._row_class.id))
        return [self._to_model(row) for row in rows]

    async def insert(self, draft):
        try:
            async with await self._ledger.begin() as session:
                row = self._row_class(
                    **draft.model_dump(),
                    created_at=datetime.now(timezone.utc),
                )
                session.add(row)
                await session.flush()
                # Return what the database stored, not what we sent
                await session.refresh(row)
                return self._to_model(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save {self.kind.name}: {e}") from e

    async def list_all(self):
        try:
            async with await self._ledger.begin() as session:
                return await self._select_all(session)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list {self.kind.name}s: {e}") from e

    async def get(self, record_id: int):
        try:
            async with await self._ledger.begin() as session:
                row = await session.get(self._row_class, record_id)
                if row is None:
                    raise NotFoundError(f"{self.kind.label} not found: {record_id}")
                return self._to_model(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get {self.kind.name}: {e}") from e

    async def update(self, record_id: int, patch: BaseModel):
        try:
            async with await self._ledger.begin() as session:
                row = await session.get(self._row_class, record_id, with_for_update=True)
                if row is None:
                    raise NotFoundError(f"{self.kind.label} not found: {record_id}")

                merged = merge_patch(self._to_model(row), patch)
                for name in patch_fields(patch):
                    setattr(row, name, getattr(merged, name))

                await session.flush()
                await session.refresh(row)
                return self._to_model(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update {self.kind.name}: {e}") from e


class SqlLedgerStorage(LedgerStorageInterface):
    """
    Both tables in one SQL database.

    snapshot() reads invoices and expenses inside a single transaction.
    """

    backend_name = "sql"

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
        echo: bool = False,
        create_tables: bool = True,
    ):
        if engine is None:
            if database_url is None:
                raise ValueError("Either database_url or engine is required")
            engine = create_sql_engine(database_url, echo=echo)

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._tables_ready = not create_tables

        self._invoices = SqlRecordStorage(INVOICE, InvoiceRow, self)
        self._expenses = SqlRecordStorage(EXPENSE, ExpenseRow, self)

    @property
    def invoices(self):
        return self._invoices

    @property
    def expenses(self):
        return self._expenses

    async def init_db(self) -> None:
        """
        Create tables if they don't exist.

        In production, use migrations instead.
        """
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise ConnectionError(f"Failed to initialize database: {e}") from e
        self._tables_ready = True
        logger.info("database_tables_initialized")

    async def begin(self):
        """Open a session inside a transaction, creating tables on first use."""
        if not self._tables_ready:
            await self.init_db()
        return self._session_factory.begin()

    async def snapshot(self) -> LedgerSnapshot:
        try:
            async with await self.begin() as session:
                return LedgerSnapshot(
                    invoices=await self._invoices._select_all(session),
                    expenses=await self._expenses._select_all(session),
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read ledger snapshot: {e}") from e

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close database connections on shutdown."""
        await self._engine.dispose()
        logger.info("database_connections_closed")
