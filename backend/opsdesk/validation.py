from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum monetary amount per field: 9,999,999,999.99 (Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")


class ValidationError(ValueError):
    """400-level input problem tied to one field."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def require_object(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("body", "Invalid JSON payload")
    return payload


def parse_decimal(field: str, value: Any, *, positive: bool = False) -> Decimal:
    """
    Strict decimal coercion.

    Accepts ints, floats and numeric strings. Rejects bools, blanks, NaN,
    infinities and negative values. `positive` also rejects zero.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(field, f"{field} must be a number")
    try:
        # str() first so floats like 0.1 keep their shortest representation
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{field} must be a number")
    if not number.is_finite():
        raise ValidationError(field, f"{field} must be a finite number")
    if positive and number <= 0:
        raise ValidationError(field, f"{field} must be > 0")
    if number < 0:
        raise ValidationError(field, f"{field} must be >= 0")
    if number > MAX_AMOUNT:
        raise ValidationError(field, f"{field} exceeds maximum {MAX_AMOUNT}")
    return number


def parse_optional_decimal(field: str, value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return parse_decimal(field, value)


def parse_optional_int(field: str, value: Any) -> int | None:
    """Integer ids: plain ints or digit strings, no floats or bools."""
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(field, f"{field} must be an integer")


def optional_text(field: str, value: Any, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    text = value.strip()
    if max_length and len(text) > max_length:
        raise ValidationError(field, f"{field} exceeds max length {max_length}")
    return text or None


def pick(payload: dict, *keys: str, default=None):
    """First present key among camelCase/snake_case spellings."""
    for key in keys:
        if key in payload:
            return payload[key]
    return default


def parse_optional_date(field: str, value: Any) -> date | None:
    """ISO-8601 calendar date (YYYY-MM-DD); a datetime string keeps its date part."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be an ISO-8601 date")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError(field, f"{field} must be an ISO-8601 date")
