"""Utility functions for the Aelora runtime."""

from .retry import retry_with_backoff
from .serializer import is_json_serializable, safe_serialize, serialize, to_attribute
from .storage import JsonFile
from .tracing import get_tracer, mark_error

__all__ = [
    "JsonFile",
    "get_tracer",
    "is_json_serializable",
    "mark_error",
    "retry_with_backoff",
    "safe_serialize",
    "serialize",
    "to_attribute",
]
