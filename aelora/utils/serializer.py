"""JSON serialization helpers for span attributes and persisted documents."""

import json
from typing import Any

from pydantic import BaseModel


def is_json_serializable(obj: Any) -> bool:
    """Check if an object is JSON serializable by attempting json.dumps."""
    try:
        json.dumps(obj)
        return True
    except (TypeError, ValueError):
        return False


def serialize(obj: Any) -> Any:
    """Serialize an object to a JSON-compatible value.

    Pydantic models are dumped with ``model_dump(mode="json")``; anything else must
    already be JSON serializable.

    Raises:
        TypeError: If the object is not a pydantic model and not JSON serializable
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")

    if not is_json_serializable(obj):
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    return obj


def safe_serialize(value: Any) -> Any:
    """Serialize with fallback for non-serializable values."""
    try:
        return serialize(value)
    except (TypeError, ValueError):
        if hasattr(value, "__name__"):
            return f"<{value.__name__}>"
        return f"<{type(value).__name__}>"


def to_attribute(value: Any, limit: int = 2000) -> str:
    """Render a value as a bounded JSON string for an OpenTelemetry span attribute."""
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(safe_serialize(value), default=str)
    return text if len(text) <= limit else text[:limit] + "..."
