"""
Core Record Models for Bookkeeper

These models define the strict schemas for every record flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear, field-level validation error messages
3. Keep money as Decimal internally and only emit numbers at the boundary
4. Keep every timestamp timezone-aware in UTC (naive input is read as UTC)
5. Distinguish "field omitted" from "field provided" for partial updates

DESIGN DECISION: Each entity kind has three schemas:
- The persisted record (with store-assigned id and created_at)
- The create input (everything the caller must supply)
- The patch (every mutable field optional, unknown fields forbidden)
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class InvoiceStatus(str, Enum):
    """
    Invoice lifecycle status.

    There is no enforced transition graph: any status can be set from any
    other. Nothing moves an invoice to OVERDUE automatically.
    """
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    SOFTWARE = "Software"
    TRAVEL = "Travel"
    OFFICE_SUPPLIES = "Office Supplies"
    MARKETING = "Marketing"
    OTHER = "Other"


# =============================================================================
# FIELD TYPES
# =============================================================================

TWO_PLACES = Decimal("0.01")

# numeric(10, 2): eight integer digits at most
MAX_AMOUNT = Decimal("100000000")


def quantize_money(value: Decimal) -> Decimal:
    """Round a Decimal to two places, half up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _coerce_amount(value: Any) -> Any:
    # Floats go through str() so 0.1 stays 0.1 instead of its binary expansion
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Amount must be a number, got {value!r}")
    return value


def _normalize_amount(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise ValueError("Amount must be a finite number")
    if value <= 0:
        raise ValueError("Amount must be positive")
    if value >= MAX_AMOUNT:
        raise ValueError(f"Amount must be less than {MAX_AMOUNT:,}")
    value = quantize_money(value)
    if value <= 0:
        raise ValueError("Amount must be positive after rounding to 2 decimal places")
    return value


def _coerce_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Date is required")
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid date: {value!r}")
    return value


Amount = Annotated[
    Decimal,
    BeforeValidator(_coerce_amount),
    AfterValidator(_normalize_amount),
]

def _to_utc(value: datetime) -> datetime:
    # Naive values are read as UTC; offsets are converted, never dropped
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[
    datetime,
    BeforeValidator(_coerce_timestamp),
    AfterValidator(_to_utc),
]


class _MoneyRecord(BaseModel):
    """Base for stored records: amounts are emitted as plain numbers in JSON output."""

    @field_serializer("amount", when_used="json", check_fields=False)
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


# =============================================================================
# INVOICE
# =============================================================================

class Invoice(_MoneyRecord):
    """
    A billable record: money owed by a client.

    id and created_at are assigned by the store and never change.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(
        ...,
        gt=0,
        description="Store-assigned identifier"
    )
    client_name: str = Field(
        ...,
        min_length=1,
        description="Client being invoiced"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="What the invoice is for"
    )
    amount: Amount
    issue_date: Timestamp
    due_date: Timestamp
    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING,
        description="Invoice status"
    )
    created_at: Timestamp = Field(
        ...,
        description="When the record was first stored (UTC)"
    )


class InvoiceCreate(BaseModel):
    """Input for creating an invoice."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    client_name: str = Field(
        ...,
        min_length=1,
        description="Client name is required"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Description is required"
    )
    amount: Amount
    issue_date: Timestamp
    due_date: Timestamp
    status: InvoiceStatus = InvoiceStatus.PENDING


class _PatchBase(BaseModel):
    """
    Base for sparse update payloads.

    Omitting a field leaves it unchanged; supplying null is an error.
    Only fields listed in model_fields_set are applied.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def reject_explicit_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field may be omitted but cannot be null")
        return value


class InvoicePatch(_PatchBase):
    """Partial update for an invoice."""

    client_name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Amount] = None
    issue_date: Optional[Timestamp] = None
    due_date: Optional[Timestamp] = None
    status: Optional[InvoiceStatus] = None


# =============================================================================
# EXPENSE
# =============================================================================

class Expense(_MoneyRecord):
    """A record of money spent, categorized for reporting."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    amount: Amount
    date: Timestamp
    category: ExpenseCategory
    created_at: Timestamp


class ExpenseCreate(BaseModel):
    """Input for creating an expense."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    description: str = Field(
        ...,
        min_length=1,
        description="Description is required"
    )
    amount: Amount
    date: Timestamp
    category: ExpenseCategory


class ExpensePatch(_PatchBase):
    """Partial update for an expense."""

    description: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Amount] = None
    date: Optional[Timestamp] = None
    category: Optional[ExpenseCategory] = None


# =============================================================================
# RECORD KINDS
# =============================================================================

RecordT = TypeVar("RecordT", Invoice, Expense)
CreateT = TypeVar("CreateT", InvoiceCreate, ExpenseCreate)
PatchT = TypeVar("PatchT", InvoicePatch, ExpensePatch)

# Never part of a create input or a patch
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


@dataclass(frozen=True)
class RecordKind(Generic[RecordT, CreateT, PatchT]):
    """
    Describes one entity kind.

    Services, validators and stores are written once and parameterized
    by a RecordKind instead of being duplicated per entity.
    """
    name: str
    label: str
    model: type[RecordT]
    create_schema: type[CreateT]
    patch_schema: type[PatchT]

    @property
    def mutable_fields(self) -> tuple[str, ...]:
        return tuple(
            name for name in self.model.model_fields
            if name not in IMMUTABLE_FIELDS
        )


INVOICE = RecordKind(
    name="invoice",
    label="Invoice",
    model=Invoice,
    create_schema=InvoiceCreate,
    patch_schema=InvoicePatch,
)

EXPENSE = RecordKind(
    name="expense",
    label="Expense",
    model=Expense,
    create_schema=ExpenseCreate,
    patch_schema=ExpensePatch,
)
