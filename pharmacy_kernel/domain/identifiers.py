"""Identifier coercion for values arriving from callers."""

from typing import Any
from uuid import UUID

from pharmacy_kernel.exceptions import InvalidReferenceError


def coerce_uuid(value: Any, field: str) -> UUID:
    """
    Convert ``value`` to a UUID.

    Raises:
        InvalidReferenceError: ``value`` is None, the wrong type, or not a
            well-formed UUID string.
    """
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            raise InvalidReferenceError(field, value) from None
    raise InvalidReferenceError(field, value)


def coerce_optional_uuid(value: Any, field: str) -> UUID | None:
    if value is None:
        return None
    return coerce_uuid(value, field)
