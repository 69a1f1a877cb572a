from __future__ import annotations

from datetime import datetime
from typing import Any

from pestguard.time_utils import parse_iso_datetime, to_utc_naive


class ServiceError(ValueError):
    """Base for caller errors raised by the service layer."""

    status_code = 400


class ValidationError(ServiceError):
    """400-level input problem (malformed ids, bad enums, off-grid times)."""


class ForbiddenError(ServiceError):
    """403-level: the actor's role may not perform this mutation."""

    status_code = 403


class NotFoundError(ServiceError):
    """404-level: a referenced entity does not exist."""

    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (duplicate grant, booking overlap)."""

    status_code = 409


def parse_id(value: Any) -> int | None:
    """
    Positive integer id or None.

    Accepts ints and digit strings; rejects bools, floats, zero and negatives.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            return None
        parsed = int(stripped)
        return parsed if parsed > 0 else None
    return None


def require_id(value: Any, field: str) -> int:
    parsed = parse_id(value)
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed


def parse_instant(value: Any, field: str) -> datetime:
    """
    Parse a datetime or ISO-8601 string into a UTC-naive datetime.

    Raises ValidationError when the value is missing or unparseable.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if not isinstance(value, str):
        raise ValidationError(f"{field} is required (ISO-8601)")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field} is invalid (ISO-8601 expected)")
    return parsed
