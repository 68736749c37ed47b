"""Soft-delete aware stores for each entity."""

from clinic_records.exceptions import RecordValidationError


def _validate_id(id: int | None, *, entity_name: str) -> int:
    """Validate a primary key passed to a by-id write.

    Raises ``RecordValidationError`` for missing or non-positive ids.
    """
    if id is None or id <= 0:
        raise RecordValidationError(f"{entity_name} id must be a positive integer, got {id!r}", field="id")
    return id
