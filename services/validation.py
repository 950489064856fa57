"""Small input guards shared by the services."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from services.errors import ValidationError

REASON_MAX_LENGTH = 500
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_reason(reason: str | None, field: str = "reason", max_length: int = REASON_MAX_LENGTH) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError(f"A {field} is required")
    if len(reason) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return reason


def to_decimal(value, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number") from e


def require_non_negative(value, field: str) -> Decimal | None:
    if value is None:
        return None
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be non-negative")
    return amount


def require_positive(value, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return amount


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required")
    return email
