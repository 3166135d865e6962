"""Input checks shared by the allocator and the status ledger."""

from __future__ import annotations

import math
import uuid
from typing import Any, Sequence

from campus_ledger.domain.errors import ValidationError


MAX_TEXT_LENGTH = 256


def require_identifier(value: Any, name: str) -> str:
    """Record ids are UUID4 hex strings; anything else is malformed."""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    try:
        parsed = uuid.UUID(hex=value.strip())
    except ValueError as exc:
        raise ValidationError(f"{name} is not a valid identifier") from exc
    return parsed.hex


def require_text(value: Any, name: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise ValidationError(f"{name} must be at most {max_length} characters")
    return cleaned


def require_choice(value: Any, name: str, choices: Sequence[str]) -> str:
    cleaned = require_text(value, name).lower()
    if cleaned not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(choices)}")
    return cleaned


def require_int(value: Any, name: str, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be <= {maximum}")
    return value


def require_amount(value: Any, name: str, allow_zero: bool = True) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    amount = float(value)
    if not math.isfinite(amount):
        raise ValidationError(f"{name} must be finite")
    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = ">= 0" if allow_zero else "> 0"
        raise ValidationError(f"{name} must be {qualifier}")
    return amount
