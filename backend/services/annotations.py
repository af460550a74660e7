"""
Post-insert edits of ledger records.

A movement is immutable except for its annotations (reason, notes). Any
attempt to change quantity, type or the subject id is refused as a whole:
nothing is written, not even the annotations sent alongside.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from core.errors import ImmutableFieldError

ANNOTATION_FIELDS = ("reason", "notes")


def _same(current: Any, new: Any) -> bool:
    if current is None or new is None:
        return current is None and new is None
    if isinstance(current, Decimal):
        try:
            return current == Decimal(str(new))
        except (InvalidOperation, ValueError):
            return False
    return str(current) == str(new)


def check_protected_fields(record, changes: Dict[str, Any], subject_field: str) -> None:
    for field in ("quantity", "type", subject_field):
        if field in changes and not _same(getattr(record, field), changes[field]):
            raise ImmutableFieldError(f"{field} cannot be changed once a movement is recorded")


def apply_annotations(record, changes: Dict[str, Any], subject_field: str) -> bool:
    """Validate and apply; returns True when an annotation actually changed."""
    check_protected_fields(record, changes, subject_field)
    changed = False
    for field in ANNOTATION_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if isinstance(value, str):
            value = value.strip() or None
        if getattr(record, field) != value:
            setattr(record, field, value)
            changed = True
    return changed
