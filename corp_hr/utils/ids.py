"""Identifier helpers."""

from uuid import UUID

from corp_hr.core.errors import ValidationError


def to_uuid(value: str, field: str = "id") -> UUID:
    """
    Parse a UUID string for binding to asyncpg.

    Raises:
        ValidationError: If value is not a valid UUID
    """
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: {value!r}", context={"field": field}) from e
