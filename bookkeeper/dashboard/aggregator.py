"""
Dashboard Aggregator

DESIGN DECISION: Dashboard statistics are DERIVED, never stored.
Every call takes one snapshot of the store and recomputes all five
figures from it. No caching, no incremental counters to drift.

Income counts only Paid invoices while expenses count every expense.
That asymmetry is intentional: an unpaid invoice is not income yet,
and there is no approval state for expenses.
"""

from collections.abc import Iterable
from decimal import Decimal

from bookkeeper.log import get_logger
from bookkeeper.models.dashboard import DashboardStats
from bookkeeper.models.records import Expense, Invoice, InvoiceStatus, quantize_money
from bookkeeper.services.storage import LedgerStorageInterface

logger = get_logger(__name__)


def compute_dashboard_stats(
    invoices: Iterable[Invoice],
    expenses: Iterable[Expense],
) -> DashboardStats:
    """
    Compute the dashboard figures from records in memory.

    Sums are Decimal throughout and rounded to 2 places at the end.
    """
    total_income = Decimal("0")
    pending = 0
    overdue = 0

    for invoice in invoices:
        if invoice.status == InvoiceStatus.PAID:
            total_income += invoice.amount
        elif invoice.status == InvoiceStatus.PENDING:
            pending += 1
        elif invoice.status == InvoiceStatus.OVERDUE:
            overdue += 1

    total_expenses = sum((expense.amount for expense in expenses), Decimal("0"))

    return DashboardStats(
        total_income=quantize_money(total_income),
        total_expenses=quantize_money(total_expenses),
        net_income=quantize_money(total_income - total_expenses),
        pending_invoices_count=pending,
        overdue_invoices_count=overdue,
    )


class DashboardAggregator:
    """
    Computes dashboard statistics against the record store.

    Read-only: it has no write path.
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def get_dashboard_stats(self) -> DashboardStats:
        """
        Recompute all five statistics from one store snapshot.

        Raises:
            StorageError: If the snapshot cannot be read
        """
        snapshot = await self._storage.snapshot()
        stats = compute_dashboard_stats(snapshot.invoices, snapshot.expenses)

        logger.info(
            "dashboard_stats_computed",
            invoice_count=len(snapshot.invoices),
            expense_count=len(snapshot.expenses),
            net_income=str(stats.net_income),
            computed_at=stats.computed_at.isoformat(),
        )
        return stats
