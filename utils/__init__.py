"""Shared utilities for the backend."""
from utils.case import dict_keys_to_camel, json_scalar, to_camel_key
from utils.expiry import is_expired, seconds_remaining, utcnow

__all__ = [
    "to_camel_key",
    "dict_keys_to_camel",
    "json_scalar",
    "is_expired",
    "seconds_remaining",
    "utcnow",
]
