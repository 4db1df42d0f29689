"""Validation package."""

from bookkeeper.validation.validator import RecordValidator, ValidationError

__all__ = ["RecordValidator", "ValidationError"]
