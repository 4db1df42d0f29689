"""
Two-Stage Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Type coercion (dates, decimals, enum values)
- Field constraints (non-empty text, positive amount)
- For patches: only the fields actually present are checked

STAGE 2 - SEMANTIC CHECKS:
- Unusually large amounts
- Due date before issue date
- These are WARNINGS. They are reported, never blocking.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the service refuses to touch the store
while any error-level issue exists.
"""

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from bookkeeper.config import AppSettings, get_settings
from bookkeeper.models.records import IMMUTABLE_FIELDS, RecordKind
from bookkeeper.models.validation import ValidationIssue, ValidationResult


class ValidationError(Exception):
    """
    Input failed a field constraint.

    Raised before any store call, so nothing has been persisted.
    """

    def __init__(self, record_kind: str, issues: list[ValidationIssue]):
        self.record_kind = record_kind
        self.issues = [issue for issue in issues if issue.severity == "error"]
        details = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid {record_kind}: {details}")

    @property
    def fields(self) -> list[str]:
        """Names of the offending fields, in the order reported."""
        return list(dict.fromkeys(issue.field for issue in self.issues))

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationError":
        return cls(result.record_kind, result.issues)

    def to_result(self) -> ValidationResult:
        """The blocking issues as a ValidationResult, e.g. for get_user_friendly_summary()."""
        return ValidationResult(record_kind=self.record_kind, issues=self.issues)


def _issue_from_pydantic(error: dict) -> ValidationIssue:
    """Translate one pydantic error entry into a ValidationIssue."""
    field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
    error_type = error.get("type", "invalid")

    if error_type == "missing":
        return ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"{field} is required",
            severity="error",
        )
    if error_type == "string_too_short":
        return ValidationIssue(
            field=field,
            issue_type="empty",
            message=f"{field} must not be empty",
            severity="error",
        )
    if error_type == "extra_forbidden":
        if field in IMMUTABLE_FIELDS:
            return ValidationIssue(
                field=field,
                issue_type="immutable_field",
                message=f"{field} is assigned by the store and cannot be set",
                severity="error",
            )
        return ValidationIssue(
            field=field,
            issue_type="unknown_field",
            message=f"{field} is not a recognised field",
            severity="error",
        )
    if error_type == "enum":
        expected = error.get("ctx", {}).get("expected", "")
        return ValidationIssue(
            field=field,
            issue_type="invalid_choice",
            message=f"{field} must be one of {expected}",
            severity="error",
        )
    if error_type == "value_error":
        cause = error.get("ctx", {}).get("error")
        return ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=str(cause) if cause else error.get("msg", "Invalid value"),
            severity="error",
        )

    return ValidationIssue(
        field=field,
        issue_type=error_type,
        message=error.get("msg", "Invalid value"),
        severity="error",
    )


class RecordValidator:
    """
    Validates create inputs and patches for any RecordKind.

    Stage 1 is delegated to the kind's pydantic schema.
    Stage 2 runs only when stage 1 produced a model.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        """
        Initialize validator.

        Args:
            settings: Application settings for thresholds.
                     If None, the cached application settings are used.
        """
        self._settings = settings or get_settings().app

    def _as_mapping(self, payload: Any) -> Any:
        # Models are re-validated from their explicitly-set fields so a
        # patch built in code behaves exactly like one received over the wire
        if isinstance(payload, BaseModel):
            return payload.model_dump(exclude_unset=True)
        return payload

    def _validate_schema(
        self,
        kind: RecordKind,
        schema: type[BaseModel],
        payload: Any,
    ) -> tuple[Optional[BaseModel], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (model_or_None, list_of_issues)
        """
        payload = self._as_mapping(payload)

        if not isinstance(payload, Mapping):
            return None, [ValidationIssue(
                field="payload",
                issue_type="invalid_type",
                message=f"{kind.label} data must be an object, got {type(payload).__name__}",
                severity="error",
            )]

        try:
            model = schema.model_validate(dict(payload))
        except PydanticValidationError as e:
            return None, [_issue_from_pydantic(error) for error in e.errors()]

        return model, []

    def _validate_semantic(self, model: BaseModel) -> list[ValidationIssue]:
        """
        Stage 2: Semantic checks.

        Only fields present on the model are inspected.
        Returns warnings only.
        """
        issues = []
        present = model.model_fields_set

        amount = getattr(model, "amount", None)
        if "amount" in present and amount is not None:
            if amount > self._settings.large_amount_warning:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Amount ({amount:,.2f}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        issue_date = getattr(model, "issue_date", None)
        due_date = getattr(model, "due_date", None)
        if (
            issue_date is not None
            and due_date is not None
            and (issue_date.tzinfo is None) == (due_date.tzinfo is None)
            and due_date < issue_date
        ):
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="inconsistent",
                message="Due date is before issue date",
                severity="warning",
                suggested_fix="Please verify both dates",
            ))

        return issues

    def _validate(
        self,
        kind: RecordKind,
        schema: type[BaseModel],
        payload: Any,
    ) -> tuple[Optional[BaseModel], ValidationResult]:
        model, issues = self._validate_schema(kind, schema, payload)
        if model is not None:
            issues.extend(self._validate_semantic(model))
        return model, ValidationResult(record_kind=kind.name, issues=issues)

    def validate_create(
        self,
        kind: RecordKind,
        payload: Any,
    ) -> tuple[Optional[BaseModel], ValidationResult]:
        """
        Validate input for creating a record.

        Args:
            kind: The entity kind
            payload: A mapping or a create-schema model

        Returns:
            (create_model_or_None, validation_result)
        """
        return self._validate(kind, kind.create_schema, payload)

    def validate_patch(
        self,
        kind: RecordKind,
        payload: Any,
    ) -> tuple[Optional[BaseModel], ValidationResult]:
        """
        Validate a partial update. Absent fields are not checked.

        Returns:
            (patch_model_or_None, validation_result)
        """
        return self._validate(kind, kind.patch_schema, payload)

    def validate_id(self, kind: RecordKind, record_id: Any) -> ValidationResult:
        """Check that a record id is a positive integer."""
        issues = []
        if (
            isinstance(record_id, bool)
            or not isinstance(record_id, int)
            or record_id <= 0
        ):
            issues.append(ValidationIssue(
                field="id",
                issue_type="invalid_value",
                message=f"{kind.label} id must be a positive integer, got {record_id!r}",
                severity="error",
            ))
        return ValidationResult(record_kind=kind.name, issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a readable summary of validation results.

        The dashboard shows this next to a rejected form, via
        ValidationError.to_result().
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.errors:
                lines.append(f"   • {issue.field}: {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

        return "\n".join(lines)
