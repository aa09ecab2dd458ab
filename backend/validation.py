"""
Input normalizers shared by the service layers.

Routers pass raw values straight from JSON bodies or multipart forms (where
everything arrives as a string). These helpers coerce them into the types the
repositories expect and raise `ValidationError` with a stable code otherwise.
Empty strings count as "not provided", matching how HTML forms submit blank
fields.
"""

from __future__ import annotations

from datetime import date, datetime
import math
from typing import Optional, Union

from backend.errors import ValidationError

Number = Union[int, float]

# Postgres `integer` columns.
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def optional_id(value: object, code: str) -> Optional[int]:
    if _blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError(code)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(code)
    if parsed <= 0:
        raise ValidationError(code)
    return parsed


def required_id(value: object, code: str) -> int:
    parsed = optional_id(value, code)
    if parsed is None:
        raise ValidationError(code)
    return parsed


def optional_text(value: object, code: str) -> Optional[str]:
    if _blank(value):
        return None
    if not isinstance(value, str):
        raise ValidationError(code)
    return value.strip()


def required_text(value: object, code: str) -> str:
    text = optional_text(value, code)
    if text is None:
        raise ValidationError(code)
    return text


def optional_datetime(value: object, code: str) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; a bare date means midnight."""
    if _blank(value):
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(code)
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(code) from exc


def required_date(value: object, code: str) -> date:
    if _blank(value):
        raise ValidationError(code)
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = optional_datetime(value, code)
    if parsed is None:
        raise ValidationError(code)
    return parsed.date()


def is_number(value: object) -> bool:
    """JSON-number check: ints and finite floats, never booleans."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # Arbitrarily large ints are finite but overflow float conversion.
    return isinstance(value, int) or math.isfinite(value)


def round_half_up(value: Number) -> int:
    """Round .5 away from negative infinity, like JavaScript's Math.round."""
    if isinstance(value, int):
        return value
    return int(math.floor(value + 0.5))


def fits_int32(value: int) -> bool:
    return INT32_MIN <= value <= INT32_MAX


__all__ = [
    "INT32_MAX",
    "INT32_MIN",
    "fits_int32",
    "is_number",
    "optional_datetime",
    "optional_id",
    "optional_text",
    "required_date",
    "required_id",
    "required_text",
    "round_half_up",
]
