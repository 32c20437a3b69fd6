"""
Cursor encoding.

A cursor is None (not started), a single primitive, or a tuple of primitives
for composite ordering keys. On the wire it is JSON: composite cursors become
lists in column order, timestamps become SQLite-style text so they keep
sorting the same way.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Sequence, Tuple, Union

from .errors import CursorError

Primitive = Union[int, float, str, bool]
Cursor = Union[None, Primitive, Tuple[Primitive, ...]]


def _serialize_scalar(value: Any) -> Primitive:
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise CursorError(f"Cannot serialize cursor value of type {type(value).__name__}: {value!r}")


def serialize_cursor(value: Any) -> Any:
    """Turn a cursor into its JSON-safe form."""
    if value is None:
        return None
    if isinstance(value, (tuple, list)):
        parts = [_serialize_scalar(v) for v in value]
        if len(parts) == 1:
            return parts[0]
        return parts
    return _serialize_scalar(value)


def deserialize_cursor(value: Any) -> Cursor:
    if isinstance(value, list):
        return tuple(value)
    return value


def cursor_key(row: Any, columns: Sequence[str]) -> Cursor:
    """Ordering key of a record, collapsed to a scalar for single-column keys."""
    if len(columns) == 1:
        return row[columns[0]]
    return tuple(row[c] for c in columns)
