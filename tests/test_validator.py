"""Tests for two-stage record validation."""

import pytest
from datetime import datetime
from decimal import Decimal

from bookkeeper.models import EXPENSE, INVOICE, InvoiceCreate, InvoicePatch, InvoiceStatus
from bookkeeper.validation import ValidationError


class TestValidateCreate:
    """Tests for RecordValidator.validate_create."""

    def test_valid_invoice(self, validator, invoice_payload):
        draft, result = validator.validate_create(INVOICE, invoice_payload)
        assert result.is_valid
        assert isinstance(draft, InvoiceCreate)
        assert draft.status == InvoiceStatus.PENDING

    def test_missing_fields_reported(self, validator):
        """Test that every missing required field is reported."""
        draft, result = validator.validate_create(INVOICE, {"client_name": "Acme"})
        assert draft is None
        missing = {issue.field for issue in result.errors if issue.issue_type == "missing"}
        assert missing == {"description", "amount", "issue_date", "due_date"}

    def test_empty_client_name(self, validator, invoice_payload):
        invoice_payload["client_name"] = ""
        _, result = validator.validate_create(INVOICE, invoice_payload)
        assert [issue.issue_type for issue in result.errors] == ["empty"]
        assert result.errors[0].field == "client_name"

    def test_zero_amount(self, validator, invoice_payload):
        invoice_payload["amount"] = 0
        _, result = validator.validate_create(INVOICE, invoice_payload)
        assert result.errors[0].field == "amount"
        assert result.errors[0].issue_type == "invalid_value"
        assert "positive" in result.errors[0].message

    def test_invalid_category(self, validator, expense_payload):
        expense_payload["category"] = "Food"
        _, result = validator.validate_create(EXPENSE, expense_payload)
        assert result.errors[0].field == "category"
        assert result.errors[0].issue_type == "invalid_choice"

    def test_non_mapping_payload(self, validator):
        _, result = validator.validate_create(EXPENSE, ["not", "an", "object"])
        assert result.errors[0].field == "payload"
        assert result.errors[0].issue_type == "invalid_type"

    def test_model_payload_accepted(self, validator):
        """Test that a create model built in code validates like a mapping."""
        draft = InvoiceCreate(
            client_name="Acme",
            description="Work",
            amount="10",
            issue_date=datetime(2024, 1, 1),
            due_date=datetime(2024, 2, 1),
        )
        validated, result = validator.validate_create(INVOICE, draft)
        assert result.is_valid
        assert validated == draft


class TestSemanticWarnings:
    """Tests for stage 2: warnings never block."""

    def test_large_amount_warns(self, validator, invoice_payload):
        invoice_payload["amount"] = "2000000"
        draft, result = validator.validate_create(INVOICE, invoice_payload)
        assert draft is not None
        assert result.is_valid
        assert [issue.issue_type for issue in result.warnings] == ["suspicious_value"]

    def test_due_before_issue_warns(self, validator, invoice_payload):
        invoice_payload["due_date"] = datetime(2023, 12, 1)
        draft, result = validator.validate_create(INVOICE, invoice_payload)
        assert draft is not None
        assert result.is_valid
        assert result.warnings[0].field == "due_date"
        assert result.warnings[0].issue_type == "inconsistent"

    def test_no_warnings_for_ordinary_invoice(self, validator, invoice_payload):
        _, result = validator.validate_create(INVOICE, invoice_payload)
        assert result.warnings == []


class TestValidatePatch:
    """Tests for RecordValidator.validate_patch."""

    def test_empty_patch_valid(self, validator):
        patch, result = validator.validate_patch(INVOICE, {})
        assert result.is_valid
        assert patch.model_fields_set == set()

    def test_absent_fields_not_checked(self, validator):
        """Test that required-on-create fields may be omitted."""
        patch, result = validator.validate_patch(INVOICE, {"status": "Paid"})
        assert result.is_valid
        assert patch.model_fields_set == {"status"}

    def test_explicit_null_is_error(self, validator):
        _, result = validator.validate_patch(INVOICE, {"description": None})
        assert result.errors[0].field == "description"
        assert "cannot be null" in result.errors[0].message

    @pytest.mark.parametrize("field", ["id", "created_at"])
    def test_immutable_field_is_error(self, validator, field):
        _, result = validator.validate_patch(EXPENSE, {field: 1})
        assert result.errors[0].field == field
        assert result.errors[0].issue_type == "immutable_field"

    def test_unknown_field_is_error(self, validator):
        _, result = validator.validate_patch(EXPENSE, {"vendor": "Uber"})
        assert result.errors[0].issue_type == "unknown_field"

    def test_patch_model_keeps_set_fields(self, validator):
        """Test that a patch built in code keeps only its set fields."""
        patch, result = validator.validate_patch(INVOICE, InvoicePatch(amount="5"))
        assert result.is_valid
        assert patch.model_fields_set == {"amount"}
        assert patch.amount == Decimal("5.00")


class TestValidateId:
    """Tests for RecordValidator.validate_id."""

    @pytest.mark.parametrize("record_id", [1, 42])
    def test_positive_ints_valid(self, validator, record_id):
        assert validator.validate_id(INVOICE, record_id).is_valid

    @pytest.mark.parametrize("record_id", [0, -1, "1", None, True, 1.0])
    def test_everything_else_invalid(self, validator, record_id):
        assert validator.validate_id(INVOICE, record_id).has_errors


class TestValidationError:
    """Tests for the ValidationError exception."""

    def test_fields_and_message(self, validator):
        _, result = validator.validate_create(INVOICE, {"client_name": ""})
        error = ValidationError.from_result(result)
        assert "client_name" in error.fields
        assert "amount" in error.fields
        assert str(error).startswith("Invalid invoice:")

    def test_warnings_dropped(self, validator, invoice_payload):
        invoice_payload["amount"] = "2000000"
        _, result = validator.validate_create(INVOICE, invoice_payload)
        assert ValidationError.from_result(result).issues == []


class TestUserFriendlySummary:
    """Tests for get_user_friendly_summary."""

    def test_all_clear(self, validator, invoice_payload):
        _, result = validator.validate_create(INVOICE, invoice_payload)
        assert validator.get_user_friendly_summary(result) == "All checks passed."

    def test_errors_listed(self, validator):
        _, result = validator.validate_create(EXPENSE, {"description": ""})
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("Please fix the following:")
        assert "description" in summary

    @pytest.mark.asyncio
    async def test_summary_for_rejected_create(self, service):
        """Test the summary shown for a ValidationError raised by the service."""
        with pytest.raises(ValidationError) as exc_info:
            await service.create_expense({"description": "Taxi", "amount": 0})

        result = exc_info.value.to_result()
        summary = service.validator.get_user_friendly_summary(result)

        assert result.record_kind == "expense"
        assert summary.startswith("Please fix the following:")
        assert "amount" in summary
        assert "category" in summary
