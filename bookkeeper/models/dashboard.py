"""
Dashboard Models

Derived statistics are never stored. They are recomputed from the
record store on every request.
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer


class DashboardStats(BaseModel):
    """
    The five headline figures shown on the dashboard.

    Money fields are Decimal rounded to 2 places; they become plain
    numbers only when serialized to JSON.
    """

    total_income: Decimal = Field(
        ...,
        description="Sum of all Paid invoice amounts"
    )
    total_expenses: Decimal = Field(
        ...,
        description="Sum of all expense amounts"
    )
    net_income: Decimal = Field(
        ...,
        description="total_income - total_expenses (may be negative)"
    )
    pending_invoices_count: int = Field(
        ...,
        ge=0,
        description="Number of Pending invoices"
    )
    overdue_invoices_count: int = Field(
        ...,
        ge=0,
        description="Number of Overdue invoices"
    )
    computed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        exclude=True,
        description="When these figures were computed"
    )

    @field_serializer("total_income", "total_expenses", "net_income", when_used="json")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)

    @classmethod
    def empty(cls) -> "DashboardStats":
        zero = Decimal("0.00")
        return cls(
            total_income=zero,
            total_expenses=zero,
            net_income=zero,
            pending_invoices_count=0,
            overdue_invoices_count=0,
        )
