from __future__ import annotations
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.sql.sqltypes import Boolean, DateTime, Float, Integer, Numeric, String, Uuid

from ..errors import MalformedKey
from .fields import FieldSet
from .naming import fields_map_for

_MISSING = object()


def default_normalize_key(key: Any) -> Any:
    """Identity normalization that still rejects keys unusable as cache keys."""
    if key is None:
        raise MalformedKey(key, 'key is None')
    try:
        hash(key)
    except TypeError:
        raise MalformedKey(key, f"unhashable {type(key).__name__}") from None
    return key


def coerce_key(col, val: Any) -> Any:
    """Coerce a load key to the Python type of a SQLAlchemy key column.

    Raises:
        MalformedKey: when the value cannot represent a value of that column.
    """
    val = default_normalize_key(val)
    ctype = getattr(col, 'type', None)
    if ctype is None:
        return val
    if isinstance(ctype, Boolean):
        raise MalformedKey(val, 'boolean key columns are not supported')
    if isinstance(ctype, Integer):
        if isinstance(val, bool):
            raise MalformedKey(val, 'expected an integer id')
        if isinstance(val, int):
            return val
        if isinstance(val, str):
            try:
                return int(val.strip())
            except ValueError:
                raise MalformedKey(val, 'expected an integer id') from None
        raise MalformedKey(val, 'expected an integer id')
    if isinstance(ctype, Uuid):
        if isinstance(val, uuid.UUID):
            return val
        try:
            return uuid.UUID(str(val))
        except ValueError:
            raise MalformedKey(val, 'expected a UUID') from None
    if isinstance(ctype, DateTime):
        if isinstance(val, datetime):
            return val
        if isinstance(val, str):
            s = val.replace('Z', '+00:00') if 'Z' in val else val
            try:
                dv = datetime.fromisoformat(s)
            except ValueError:
                raise MalformedKey(val, 'expected an ISO datetime') from None
            if getattr(ctype, 'timezone', False) is False and dv.tzinfo is not None:
                dv = dv.replace(tzinfo=None)
            return dv
        raise MalformedKey(val, 'expected an ISO datetime')
    if isinstance(ctype, (Numeric, Float)):
        if isinstance(val, bool):
            raise MalformedKey(val, 'expected a number')
        try:
            return float(val) if isinstance(val, str) else val
        except ValueError:
            raise MalformedKey(val, 'expected a number') from None
    if isinstance(ctype, String):
        if isinstance(val, str):
            return val
        if isinstance(val, (int, uuid.UUID)) and not isinstance(val, bool):
            return str(val)
        raise MalformedKey(val, 'expected a string id')
    return val


def as_field_set(fields: Any) -> FieldSet:
    """Normalize ``None``, a single name or an iterable of names to a FieldSet."""
    if fields is None:
        return frozenset()
    if isinstance(fields, frozenset):
        out = fields
    elif isinstance(fields, str):
        out = frozenset((fields,))
    elif isinstance(fields, Iterable) and not isinstance(fields, Mapping):
        out = frozenset(fields)
    else:
        raise TypeError(f"fields must be an iterable of names, got {type(fields).__name__}")
    for name in out:
        if not isinstance(name, str) or not name:
            raise TypeError(f"Field names must be non-empty strings, got {name!r}")
    return out


def key_column_for(shape: Any) -> str:
    """Backend name of a shape's key field."""
    key_name = getattr(shape, '__shape_key__', None) or 'id'
    fdef = fields_map_for(shape).get(key_name)
    return (fdef.column if fdef is not None else None) or key_name


def record_value(record: Any, name: str, default: Any = _MISSING) -> Any:
    """Read ``name`` from a mapping-like or attribute-style record.

    SQLAlchemy ``Row`` objects are read through their ``_mapping``.
    """
    mapping = getattr(record, '_mapping', None)
    if isinstance(mapping, Mapping):
        record = mapping
    if isinstance(record, Mapping):
        if name in record:
            return record[name]
    elif hasattr(record, name):
        return getattr(record, name)
    if default is _MISSING:
        raise KeyError(name)
    return default


_SESSION_KEYS = ('db_session', 'session')


def get_db_session(info_or_ctx: Any) -> Any:
    """Session from a Strawberry ``Info`` or a context dict/object, or ``None``."""
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    for name in _SESSION_KEYS:
        value = ctx.get(name) if isinstance(ctx, Mapping) else getattr(ctx, name, None)
        if value is not None:
            return value
    return None
