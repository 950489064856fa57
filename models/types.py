"""
Column types that behave the same on SQLite (tests, local) and PostgreSQL.

UTCDateTime: stored as naive UTC, always returned timezone-aware, so
comparisons against datetime.now(timezone.utc) never mix naive and aware values.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, Numeric
from sqlalchemy import types as sa_types


class UTCDateTime(sa_types.TypeDecorator):
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def Money():
    return Numeric(14, 2, asdecimal=True)


def Rate():
    return Numeric(6, 2, asdecimal=True)


def StatusEnum(enum_cls: type[PyEnum]) -> Enum:
    """Non-native enum column storing the member value ("active", not "ACTIVE")."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


ZERO = Decimal("0.00")
