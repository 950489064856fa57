"""
Response serialization helpers: camelCase keys for the frontend, JSON-safe
scalars for Decimal, datetime and enum values.
Uses Pydantic's alias_generators so keys match schema aliases.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic.alias_generators import to_camel


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def json_scalar(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def dict_keys_to_camel(obj: Any) -> Any:
    """Recursively camelCase dict keys and convert scalars for API responses."""
    if isinstance(obj, dict):
        return {to_camel_key(k): dict_keys_to_camel(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [dict_keys_to_camel(x) for x in obj]
    return json_scalar(obj)
