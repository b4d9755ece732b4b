"""Shared query parameter parsing utilities."""

import uuid

from fastapi import HTTPException


def parse_uuid_param(value: str | None, name: str) -> str | None:
    """Validate an optional UUID query parameter.

    Args:
        value: Raw query string value, or None.
        name: Parameter name used in the error message.

    Returns:
        The stripped UUID string, or None if input is empty.

    Raises:
        HTTPException: If the value is not a valid UUID.
    """
    if not value or not value.strip():
        return None
    value = value.strip()
    try:
        uuid.UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name} format: {value}",
        )
    return value


def clamp_limit(limit: int, maximum: int = 100) -> int:
    """Clamp a ``limit`` query parameter into ``1..maximum``."""
    return max(1, min(limit, maximum))
