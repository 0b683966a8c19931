from __future__ import annotations

import re
from typing import Any, Callable, Dict, Optional

NameConverter = Optional[Callable[[str], str]]

__all__ = [
    'NameConverter',
    'from_camel',
    'resolve_field_name',
    'fields_map_for',
]

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def from_camel(name: str) -> str:
    """``customerVehicleNumber`` -> ``customer_vehicle_number``."""
    return _CAMEL_BOUNDARY.sub('_', name).lower() if name else name


def resolve_field_name(
    name: str,
    fields_map: Dict[str, Any],
    *,
    auto_camel: bool = False,
    name_converter: NameConverter = None,
) -> Optional[str]:
    """Shape attribute a selection name refers to, or ``None`` if the shape has none.

    Tried in order: the name as written, its snake_case form when
    ``auto_camel`` is on, then the attribute the converter renders as ``name``.
    """
    if name in fields_map:
        return name
    if auto_camel:
        snake = from_camel(name)
        if snake in fields_map:
            return snake
    if name_converter is not None:
        for attr in fields_map:
            if name_converter(attr) == name:
                return attr
    return None


def fields_map_for(shape: Any) -> Dict[str, Any]:
    """Return the ``__shape_fields__`` map of an entity shape (empty if absent)."""
    return getattr(shape, '__shape_fields__', None) or {}
