"""Helpers for using projection loaders inside Strawberry resolvers.

The request's :class:`~projloader.registry.RequestLoaders` is expected in the
execution context, under ``context["loaders"]`` or ``context.loaders``:

    result = await schema.execute(
        query,
        context_value={"loaders": registry.create_loaders(session)},
    )

    @strawberry.type
    class Reservation:
        vehicle_id: strawberry.Private[int | None]

        @strawberry.field
        async def vehicle(self, info: strawberry.Info) -> Vehicle | None:
            fields = fields_from_info(info, VehicleShape)
            row = await get_loaders(info).get(VehicleShape).load(self.vehicle_id, fields)
            return Vehicle.from_row(row) if row else None
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from strawberry.types import Info

from ..core.fields import FieldSet
from ..core.selection import ProjectionExtractor
from ..errors import MalformedSelection
from ..registry import RequestLoaders, ShapeRef

__all__ = ['get_loaders', 'fields_from_info', 'load_for_info']


def get_loaders(info: Info) -> RequestLoaders:
    """Return the request's loaders from the Strawberry context."""
    ctx = getattr(info, 'context', None)
    if isinstance(ctx, Mapping):
        loaders = ctx.get('loaders')
    else:
        loaders = getattr(ctx, 'loaders', None)
    if not isinstance(loaders, RequestLoaders):
        raise RuntimeError("No request loaders in context; pass context_value={'loaders': registry.create_loaders(...)}")
    return loaders


def _extractor_for(info: Info, loaders: RequestLoaders) -> ProjectionExtractor:
    # Selection names are GraphQL names; map them back through the schema's naming config.
    config = getattr(getattr(info, 'schema', None), 'config', None)
    if config is None:
        return loaders.registry.extractor
    converter = getattr(getattr(config, 'name_converter', None), 'apply_naming_config', None)
    return ProjectionExtractor(
        auto_camel_case=bool(getattr(config, 'auto_camel_case', False)),
        name_converter=converter or loaders.registry.name_converter,
    )


def fields_from_info(info: Info, shape: ShapeRef, loaders: Optional[RequestLoaders] = None) -> FieldSet:
    """Projection of ``shape`` requested by the field currently being resolved."""
    loaders = loaders or get_loaders(info)
    selected = list(getattr(info, 'selected_fields', None) or [])
    if not selected:
        raise MalformedSelection(f"No selection available for field {getattr(info, 'field_name', None)!r}")
    return _extractor_for(info, loaders).extract(selected[0], loaders.registry.get(shape))


async def load_for_info(info: Info, shape: ShapeRef, key: Any) -> Any:
    """Load ``key`` of ``shape`` with the fields the current selection asks for."""
    loaders = get_loaders(info)
    fields = fields_from_info(info, shape, loaders)
    return await loaders.get(shape).load(key, fields)
