"""
Data Models Package

This package contains all Pydantic models used in the Bookkeeper system.
All data flowing through the system must conform to these schemas.
"""

from bookkeeper.models.records import (
    EXPENSE,
    IMMUTABLE_FIELDS,
    INVOICE,
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpensePatch,
    Invoice,
    InvoiceCreate,
    InvoicePatch,
    InvoiceStatus,
    RecordKind,
    quantize_money,
)
from bookkeeper.models.dashboard import DashboardStats
from bookkeeper.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Record models
    "EXPENSE",
    "IMMUTABLE_FIELDS",
    "INVOICE",
    "Expense",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpensePatch",
    "Invoice",
    "InvoiceCreate",
    "InvoicePatch",
    "InvoiceStatus",
    "RecordKind",
    "quantize_money",
    # Dashboard models
    "DashboardStats",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
