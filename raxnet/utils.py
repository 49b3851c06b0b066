"""Small serialization helpers shared by services."""

from __future__ import annotations

import enum
import json
from datetime import datetime


def status_str(value) -> str | None:
    """Return the plain string for an enum member (or pass strings through)."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)


def iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def safe_json_loads(raw: str | None):
    """Parse a JSON text column, returning None for empty or malformed values."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw value into ``enum_cls`` or raise InvalidInput naming the field."""
    from raxnet.errors import InvalidInput

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {field} {value!r}; expected one of: {allowed}") from e
