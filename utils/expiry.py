"""
Time helpers shared by every time-bounded credential (QR tokens, guarantor
invitations, guarantor QR links). Validity is always computed at read time.
"""
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """A credential is expired once now reaches expires_at. Missing expiry counts as expired."""
    if expires_at is None:
        return True
    now = as_utc(now) if now is not None else utcnow()
    return as_utc(expires_at) <= now


def seconds_remaining(expires_at: datetime | None, now: datetime | None = None) -> int:
    if is_expired(expires_at, now):
        return 0
    now = as_utc(now) if now is not None else utcnow()
    return int((as_utc(expires_at) - now).total_seconds())
