"""
Partial-Update Engine

Merges a sparse patch into an existing record.

A field is applied only if the caller explicitly provided it
(pydantic's model_fields_set), never because it carries a default.
Everything else keeps its previous value. id and created_at are
never touched.

This module performs no I/O. Stores call merge_patch() and persist
the result inside their own unit of work.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from bookkeeper.models.records import IMMUTABLE_FIELDS, RecordT


def patch_fields(patch: BaseModel) -> dict[str, Any]:
    """
    Return exactly the fields the caller provided.

    Values keep their validated Python types (Decimal, datetime, enums).
    """
    return {name: getattr(patch, name) for name in patch.model_fields_set}


def merge_patch(record: RecordT, patch: BaseModel) -> RecordT:
    """
    Produce the new state of a record after applying a patch.

    Args:
        record: The current stored record
        patch: A validated patch model

    Returns:
        A new record instance; the input record is not modified.
        An empty patch returns an equal copy.

    Raises:
        ValueError: If the patch names an immutable or unknown field
    """
    changes = patch_fields(patch)

    protected = IMMUTABLE_FIELDS.intersection(changes)
    if protected:
        raise ValueError(f"Immutable fields cannot be patched: {sorted(protected)}")

    unknown = set(changes) - set(type(record).model_fields)
    if unknown:
        raise ValueError(
            f"Unknown fields for {type(record).__name__}: {sorted(unknown)}"
        )

    return record.model_copy(update=changes)


def changed_fields(record: BaseModel, values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Keep only the form values that differ from the stored record.

    Edit forms submit every field; this turns them into a sparse patch.
    A plain date is compared against the date part of a stored timestamp,
    so re-saving a form never rewrites the time of day.

    Args:
        record: The current stored record
        values: Field name -> submitted value

    Returns:
        The subset of values that would change the record
    """
    changes = {}
    for name, value in values.items():
        current = getattr(record, name)
        if (
            isinstance(current, datetime)
            and isinstance(value, date)
            and not isinstance(value, datetime)
        ):
            current = current.date()
        if current != value:
            changes[name] = value
    return changes
