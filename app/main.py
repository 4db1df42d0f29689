"""
Streamlit Frontend for Bookkeeper

A thin dashboard over the bookkeeping façade. Every action goes through
BookkeepingService, so the UI gets exactly the validation and error
behaviour the RPC surface has.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Nothing is saved without an explicit "Save" action
3. Validation errors shown next to the form, field by field
4. Dashboard figures always recomputed, never cached in the page
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal

import streamlit as st

from bookkeeper.config import validate_all_settings
from bookkeeper.models import ExpenseCategory, InvoiceStatus
from bookkeeper.orchestrator import BookkeepingService, create_app_components
from bookkeeper.patching import changed_fields
from bookkeeper.services.storage import NotFoundError, StorageError
from bookkeeper.validation import ValidationError


# Page configuration
st.set_page_config(
    page_title="Bookkeeper",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    One background event loop for the whole app (cached).

    Pooled async database connections belong to the loop that opened
    them, so every call must run on the same loop.
    """
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def _as_amount(value: float) -> Decimal:
    return Decimal(str(value))


def show_error(service: BookkeepingService, error: Exception) -> None:
    """Render a façade error in plain language."""
    if isinstance(error, ValidationError):
        st.error(service.validator.get_user_friendly_summary(error.to_result()))
    elif isinstance(error, NotFoundError):
        st.error(f"Not found: {error}")
    else:
        st.error(f"Could not reach the record store: {error}")


def main():
    """Main application entry point."""
    service, _ = get_components()

    st.sidebar.title("📒 Bookkeeper")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Invoices", "💸 Expenses", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(service)
    elif page == "🧾 Invoices":
        render_invoices_page(service)
    elif page == "💸 Expenses":
        render_expenses_page(service)
    elif page == "⚙️ Settings":
        render_settings_page(service)


def render_dashboard_page(service: BookkeepingService):
    """Render the five headline figures."""
    st.title("📊 Dashboard")

    try:
        stats = run_async(service.get_dashboard_stats())
    except StorageError as e:
        show_error(service, e)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", f"${stats.total_income:,.2f}")
    col2.metric("Total Expenses", f"${stats.total_expenses:,.2f}")
    col3.metric("Net Income", f"${stats.net_income:,.2f}")

    col4, col5 = st.columns(2)
    col4.metric("Pending Invoices", stats.pending_invoices_count)
    col5.metric("Overdue Invoices", stats.overdue_invoices_count)

    st.caption(f"Computed {stats.computed_at:%Y-%m-%d %H:%M:%S} UTC")


def render_invoices_page(service: BookkeepingService):
    """Render the invoice list plus create and update forms."""
    st.title("🧾 Invoices")

    try:
        invoices = run_async(service.list_invoices())
    except StorageError as e:
        show_error(service, e)
        return

    if invoices:
        st.dataframe(
            [invoice.model_dump(mode="json") for invoice in invoices],
            use_container_width=True,
        )
    else:
        st.info("No invoices yet. Create your first one below.")

    st.markdown("---")
    st.subheader("New Invoice")

    with st.form("create_invoice", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            client_name = st.text_input("Client Name *")
            description = st.text_input("Description *")
            amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
        with col2:
            issue_date = st.date_input("Issue Date *", value=date.today())
            due_date = st.date_input("Due Date *", value=date.today())
            status = st.selectbox(
                "Status",
                options=list(InvoiceStatus),
                format_func=lambda s: s.value,
            )

        if st.form_submit_button("💾 Save Invoice", type="primary"):
            try:
                invoice = run_async(service.create_invoice({
                    "client_name": client_name,
                    "description": description,
                    "amount": _as_amount(amount),
                    "issue_date": issue_date,
                    "due_date": due_date,
                    "status": status.value,
                }))
                st.success(f"Invoice #{invoice.id} saved")
            except (ValidationError, StorageError) as e:
                show_error(service, e)

    if not invoices:
        return

    st.markdown("---")
    st.subheader("Edit Invoice")

    by_id = {invoice.id: invoice for invoice in invoices}
    invoice_id = st.selectbox(
        "Invoice",
        options=list(by_id),
        format_func=lambda i: f"#{i} {by_id[i].client_name}",
    )
    current = by_id[invoice_id]

    # Keyed by id so switching invoices reloads the stored values
    with st.form(f"update_invoice_{invoice_id}"):
        col1, col2 = st.columns(2)
        with col1:
            client_name = st.text_input("Client Name", value=current.client_name)
            description = st.text_input("Description", value=current.description)
            amount = st.number_input(
                "Amount",
                min_value=0.0,
                step=0.01,
                format="%.2f",
                value=float(current.amount),
            )
        with col2:
            issue_date = st.date_input("Issue Date", value=current.issue_date.date())
            due_date = st.date_input("Due Date", value=current.due_date.date())
            status = st.selectbox(
                "Status",
                options=list(InvoiceStatus),
                index=list(InvoiceStatus).index(current.status),
                format_func=lambda s: s.value,
            )

        if st.form_submit_button("✅ Update"):
            changes = changed_fields(current, {
                "client_name": client_name,
                "description": description,
                "amount": _as_amount(amount),
                "issue_date": issue_date,
                "due_date": due_date,
                "status": status,
            })
            if not changes:
                st.info("Nothing changed.")
            else:
                try:
                    invoice = run_async(service.update_invoice(invoice_id, changes))
                    st.success(f"Invoice #{invoice.id} updated: {', '.join(changes)}")
                except (ValidationError, StorageError) as e:
                    show_error(service, e)


def render_expenses_page(service: BookkeepingService):
    """Render the expense list plus create and update forms."""
    st.title("💸 Expenses")

    try:
        expenses = run_async(service.list_expenses())
    except StorageError as e:
        show_error(service, e)
        return

    if expenses:
        st.dataframe(
            [expense.model_dump(mode="json") for expense in expenses],
            use_container_width=True,
        )
    else:
        st.info("No expenses yet. Record your first one below.")

    st.markdown("---")
    st.subheader("New Expense")

    with st.form("create_expense", clear_on_submit=True):
        description = st.text_input("Description *")
        amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
        spent_on = st.date_input("Date *", value=date.today())
        category = st.selectbox(
            "Category *",
            options=list(ExpenseCategory),
            format_func=lambda c: c.value,
        )

        if st.form_submit_button("💾 Save Expense", type="primary"):
            try:
                expense = run_async(service.create_expense({
                    "description": description,
                    "amount": _as_amount(amount),
                    "date": spent_on,
                    "category": category.value,
                }))
                st.success(f"Expense #{expense.id} saved")
            except (ValidationError, StorageError) as e:
                show_error(service, e)

    if not expenses:
        return

    st.markdown("---")
    st.subheader("Edit Expense")

    by_id = {expense.id: expense for expense in expenses}
    expense_id = st.selectbox(
        "Expense",
        options=list(by_id),
        format_func=lambda i: f"#{i} {by_id[i].description}",
    )
    current = by_id[expense_id]

    with st.form(f"update_expense_{expense_id}"):
        description = st.text_input("Description", value=current.description)
        amount = st.number_input(
            "Amount",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            value=float(current.amount),
        )
        spent_on = st.date_input("Date", value=current.date.date())
        category = st.selectbox(
            "Category",
            options=list(ExpenseCategory),
            index=list(ExpenseCategory).index(current.category),
            format_func=lambda c: c.value,
        )

        if st.form_submit_button("✅ Update"):
            changes = changed_fields(current, {
                "description": description,
                "amount": _as_amount(amount),
                "date": spent_on,
                "category": category,
            })
            if not changes:
                st.info("Nothing changed.")
            else:
                try:
                    expense = run_async(service.update_expense(expense_id, changes))
                    st.success(f"Expense #{expense.id} updated: {', '.join(changes)}")
                except (ValidationError, StorageError) as e:
                    show_error(service, e)


def render_settings_page(service: BookkeepingService):
    """Render configuration and connection status."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    health = run_async(service.healthcheck())
    backend = health["storage"]["backend"]
    if health["storage"]["reachable"]:
        st.success(f"✅ Storage ({backend}) - Connected")
    else:
        st.error(f"❌ Storage ({backend}) - Unreachable")

    st.markdown("### Configuration")

    status = validate_all_settings()
    sections = [
        ("Storage", "storage"),
        ("Application", "app"),
        ("Google Sheets", "google_sheets"),
    ]

    for name, key in sections:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Valid")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
