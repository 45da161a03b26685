"""JSONB helpers for raw-SQL repositories.

Parameters are bound as JSON text and CAST to JSONB in SQL; asyncpg hands
JSONB columns back as str unless a codec is registered, so reads accept both.
"""

import json
from datetime import datetime
from typing import Any


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=_default)


def from_json(value: Any) -> Any:
    if value is None or not isinstance(value, str | bytes):
        return value
    return json.loads(value)
