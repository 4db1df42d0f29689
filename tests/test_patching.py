"""Tests for the partial-update engine."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from bookkeeper.models import Invoice, InvoicePatch, InvoiceStatus
from bookkeeper.patching import changed_fields, merge_patch, patch_fields


@pytest.fixture
def invoice():
    return Invoice(
        id=7,
        client_name="Acme Corp",
        description="Consulting",
        amount=Decimal("100.00"),
        issue_date=datetime(2024, 1, 1),
        due_date=datetime(2024, 1, 31),
        status=InvoiceStatus.PENDING,
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestPatchFields:
    """Tests for patch_fields."""

    def test_returns_only_supplied_fields(self):
        patch = InvoicePatch(status="Paid", amount="20")
        assert patch_fields(patch) == {
            "status": InvoiceStatus.PAID,
            "amount": Decimal("20.00"),
        }

    def test_empty_patch(self):
        assert patch_fields(InvoicePatch()) == {}


class TestMergePatch:
    """Tests for merge_patch."""

    def test_present_fields_replaced(self, invoice):
        """Test that supplied fields take the new value."""
        merged = merge_patch(invoice, InvoicePatch(status="Paid"))
        assert merged.status == InvoiceStatus.PAID

    def test_absent_fields_unchanged(self, invoice):
        """Test that omitted fields keep their previous value."""
        merged = merge_patch(invoice, InvoicePatch(amount="250.5"))
        assert merged.amount == Decimal("250.50")
        assert merged.client_name == invoice.client_name
        assert merged.description == invoice.description
        assert merged.issue_date == invoice.issue_date
        assert merged.due_date == invoice.due_date
        assert merged.status == invoice.status

    def test_id_and_created_at_never_change(self, invoice):
        merged = merge_patch(invoice, InvoicePatch(description="Audit"))
        assert merged.id == invoice.id
        assert merged.created_at == invoice.created_at

    def test_empty_patch_returns_equal_record(self, invoice):
        """Test that an empty patch is a no-op."""
        merged = merge_patch(invoice, InvoicePatch())
        assert merged == invoice

    def test_input_record_not_modified(self, invoice):
        before = invoice.model_copy()
        merge_patch(invoice, InvoicePatch(status="Overdue"))
        assert invoice == before

    def test_defaulted_fields_are_not_applied(self, invoice):
        """Test that a field is applied only when the caller set it."""
        paid = invoice.model_copy(update={"status": InvoiceStatus.PAID})
        merged = merge_patch(paid, InvoicePatch(description="Audit"))
        assert merged.status == InvoiceStatus.PAID

    def test_unknown_field_rejected(self, invoice):
        """Test that a patch for another kind is refused."""
        from bookkeeper.models import ExpensePatch

        with pytest.raises(ValueError, match="Unknown fields"):
            merge_patch(invoice, ExpensePatch(category="Travel"))


class TestChangedFields:
    """Tests for changed_fields, used by edit forms that submit every field."""

    def test_unchanged_form_is_empty_patch(self, invoice):
        values = {
            "client_name": "Acme Corp",
            "description": "Consulting",
            "amount": Decimal("100.0"),
            "issue_date": date(2024, 1, 1),
            "due_date": date(2024, 1, 31),
            "status": "Pending",
        }
        assert changed_fields(invoice, values) == {}

    def test_only_edited_fields_kept(self, invoice):
        values = {
            "client_name": "Acme Ltd",
            "description": "Consulting",
            "amount": Decimal("120.00"),
            "due_date": date(2024, 2, 15),
            "status": "Pending",
        }
        assert changed_fields(invoice, values) == {
            "client_name": "Acme Ltd",
            "amount": Decimal("120.00"),
            "due_date": date(2024, 2, 15),
        }

    def test_result_applies_as_patch(self, invoice):
        """Test that the changed values form a valid sparse patch."""
        changes = changed_fields(invoice, {"description": "Audit", "status": "Paid"})
        merged = merge_patch(invoice, InvoicePatch(**changes))
        assert merged.description == "Audit"
        assert merged.status == InvoiceStatus.PAID
        assert merged.amount == invoice.amount
