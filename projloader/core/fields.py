from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

# Backend field names needed by one fetch. Never mutated; build a new one instead.
FieldSet = FrozenSet[str]

def field_set(*names: str) -> FieldSet:
    """Build a :data:`FieldSet` from field names."""
    for n in names:
        if not isinstance(n, str) or not n:
            raise TypeError(f"Field names must be non-empty strings, got {n!r}")
    return frozenset(names)

@dataclass
class FieldDef:
    """Internal, normalized field description collected from an entity shape.

    Attributes:
        name: The attribute name on the declaring shape (e.g. "vehicle").
        kind: One of "scalar", "relation".
        meta: Metadata captured from the descriptor factory (column, target,
            single, stored, description).
    """

    name: str
    kind: str
    meta: Dict[str, Any]

    @property
    def column(self) -> Optional[str]:
        """Backend field this attribute is stored in, or ``None`` when it has none."""
        if self.kind == 'relation' and not self.meta.get('stored', True):
            return None
        return self.meta.get('column') or self.name

    @property
    def target(self) -> Optional[str]:
        return self.meta.get('target')

class FieldDescriptor:
    """Descriptor placed on entity shapes to declare fields.

    Users normally use the helper factories :func:`field` and :func:`relation`.
    The shape metaclass converts each descriptor to a :class:`FieldDef`.
    """

    def __init__(self, *, kind: str, **meta):
        self.kind = kind
        self.meta = dict(meta)
        self.name: str | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.name = name

    def build(self) -> FieldDef:
        return FieldDef(name=self.name or '', kind=self.kind, meta=self.meta)

def field(column: Optional[str] = None, /, **meta) -> FieldDescriptor:
    """Declare a scalar field on an entity shape.

    Common metadata keys:
    - column: Backend column/document key when it differs from the attribute
      name. Can be passed positionally, e.g. ``id = field('_id')``.
    - description: Free text, kept for schema tooling.

    Examples:
        class CompanyShape(EntityShape):
            id = field('_id')
            name = field()
    """
    if column is not None:
        meta = dict(meta)
        meta['column'] = column
    return FieldDescriptor(kind='scalar', **meta)

def relation(target: Any = None, column: Optional[str] = None, *, single: bool = True, stored: bool = True, **meta) -> FieldDescriptor:
    """Declare a relation to another entity shape.

    A relation selected in a query contributes only its own storage column to
    the parent's projection (the foreign id). The related entity is fetched by
    its own loader with its own projection.

    Args:
        target: Target shape class or its name.
        column: Column holding the related id(s); defaults to the attribute name.
        single: Whether the column holds one id (True) or a list of ids.
        stored: False for reverse relations that have no column on this entity
            (e.g. ``user.posts``); such relations add nothing to the projection.

    Examples:
        class ReservationShape(EntityShape):
            vehicle = relation('VehicleShape', 'vehicle_id')
            borrower_company = relation('CompanyShape', 'borrower_company_id')
    """
    m = dict(meta)
    if target is not None:
        m['target'] = target.__name__ if hasattr(target, '__name__') and not isinstance(target, str) else target
    if column is not None:
        m['column'] = column
    m['single'] = bool(single)
    m['stored'] = bool(stored)
    return FieldDescriptor(kind='relation', **m)
