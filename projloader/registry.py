from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, Union

from .adapters import get_fetcher
from .config import DEFAULT_CONFIG, LoaderConfig
from .core.fields import FieldDef, FieldDescriptor, FieldSet
from .core.naming import NameConverter, fields_map_for
from .core.selection import ProjectionExtractor
from .core.utils import key_column_for, record_value
from .loader import FetchFn, LoaderStats, ProjectionLoader

_logger = logging.getLogger("projloader")

__all__ = ['EntityShape', 'ShapeRegistry', 'RequestLoaders']

ShapeRef = Union[str, Type['EntityShape']]


class EntityShapeMeta(type):
    def __new__(mcls, name, bases, namespace):
        fdefs: Dict[str, FieldDef] = {}
        for base in reversed(bases):
            fdefs.update(getattr(base, '__shape_fields__', {}) or {})
        for k, v in list(namespace.items()):
            if isinstance(v, FieldDescriptor):
                v.__set_name__(None, k)
                fdefs[k] = v.build()
        namespace['__shape_fields__'] = fdefs
        return super().__new__(mcls, name, bases, namespace)


class EntityShape(metaclass=EntityShapeMeta):
    """Declared fields of one entity type, set up once at startup.

    Example:
        @registry.entity(model=Vehicle, alias='vehicles')
        class VehicleShape(EntityShape):
            id = field()
            vin = field()
            location = relation('LocationShape', 'location_id')
    """

    model: Optional[Any] = None
    __shape_key__: str = 'id'
    __shape_alias__: Optional[str] = None
    __shape_fetcher__: Optional[Callable[..., FetchFn]] = None


class ShapeRegistry:
    """Collects entity shapes and hands out request-scoped loaders.

    Args:
        config: Options applied to every loader created from this registry.
        auto_camel_case: Map camelCase selection names to snake_case fields.
        name_converter: Custom python-to-GraphQL name converter used when
            mapping selection names back to fields.
    """

    def __init__(self, config: Optional[LoaderConfig] = None, *, auto_camel_case: bool = False, name_converter: NameConverter = None):
        self.shapes: Dict[str, Type[EntityShape]] = {}
        self._aliases: Dict[str, str] = {}
        self.config = config or DEFAULT_CONFIG
        self.auto_camel_case = auto_camel_case
        self.name_converter = name_converter
        self.extractor = ProjectionExtractor(auto_camel_case=auto_camel_case, name_converter=name_converter)

    def register(self, cls: Type[EntityShape]) -> Type[EntityShape]:
        fields_map = fields_map_for(cls)
        if not fields_map:
            raise TypeError(f"{cls.__name__} declares no fields")
        if cls.__shape_key__ not in fields_map:
            raise ValueError(f"{cls.__name__}: key field {cls.__shape_key__!r} is not declared")
        self.shapes[cls.__name__] = cls
        if cls.__shape_alias__:
            self._aliases[cls.__shape_alias__] = cls.__name__
        return cls

    def entity(self, *, model: Any = None, key: str = 'id', alias: Optional[str] = None, fetcher: Optional[Callable[..., FetchFn]] = None):
        """Register a shape.

        Args:
            model: SQLAlchemy model or Table backing the shape.
            key: Attribute name of the key field.
            alias: Attribute name for ``RequestLoaders`` access (``loaders.vehicles``).
            fetcher: Factory ``fetcher(session) -> fetch_fn`` overriding the
                default SQLAlchemy fetcher.
        """
        def deco(cls: Type[EntityShape]):
            cls.model = model
            cls.__shape_key__ = key
            cls.__shape_alias__ = alias
            if fetcher is not None:
                cls.__shape_fetcher__ = staticmethod(fetcher)
            return self.register(cls)
        return deco

    def name_of(self, shape: ShapeRef) -> str:
        name = shape if isinstance(shape, str) else getattr(shape, '__name__', None)
        if name in self.shapes:
            return name
        if name in self._aliases:
            return self._aliases[name]
        raise LookupError(f"Unknown entity shape: {shape!r}")

    def get(self, shape: ShapeRef) -> Type[EntityShape]:
        return self.shapes[self.name_of(shape)]

    def validate(self) -> None:
        """Check that every relation points at a registered shape."""
        for name, cls in self.shapes.items():
            for fname, fdef in fields_map_for(cls).items():
                if fdef.kind != 'relation':
                    continue
                if not fdef.target or fdef.target not in self.shapes:
                    raise ValueError(f"{name}.{fname}: unknown relation target {fdef.target!r}")

    def extract(self, selection: Any, shape: ShapeRef, fragments: Optional[Mapping[str, Any]] = None) -> FieldSet:
        return self.extractor.extract(selection, self.get(shape), fragments)

    def create_loaders(self, session: Any = None, **fetchers: FetchFn) -> 'RequestLoaders':
        """Create the loader container for one request.

        Args:
            session: Database session handed to shape fetchers.
            **fetchers: Fetch functions by shape name or alias, overriding the
                registered ones for this request.
        """
        return RequestLoaders(self, session=session, fetchers=fetchers)

    def _fetcher_for(self, cls: Type[EntityShape], session: Any, lock: Optional[asyncio.Lock] = None) -> FetchFn:
        factory = cls.__shape_fetcher__
        if factory is not None:
            return factory(session)
        if cls.model is None or session is None:
            raise LookupError(f"No fetcher for {cls.__name__}: register a model and pass a session, or supply a fetcher")
        return get_fetcher(session, cls.model, key=key_column_for(cls), config=self.config, lock=lock)


class RequestLoaders:
    """Per-request set of loaders, one per entity shape, created on first use.

    Dropped with the request; nothing is shared across requests.
    """

    def __init__(self, registry: ShapeRegistry, *, session: Any = None, fetchers: Optional[Mapping[str, FetchFn]] = None):
        self.registry = registry
        self.session = session
        self.session_lock = asyncio.Lock()
        self._fetchers = {registry.name_of(k): v for k, v in (fetchers or {}).items()}
        self._loaders: Dict[str, ProjectionLoader] = {}

    def __getattr__(self, attr: str) -> ProjectionLoader:
        if attr.startswith('_') or 'registry' not in self.__dict__:
            raise AttributeError(attr)
        try:
            name = self.registry.name_of(attr)
        except LookupError:
            raise AttributeError(attr) from None
        return self.get(name)

    def get(self, shape: ShapeRef) -> ProjectionLoader:
        name = self.registry.name_of(shape)
        loader = self._loaders.get(name)
        if loader is None:
            cls = self.registry.shapes[name]
            fetch_fn = self._fetchers.get(name) or self.registry._fetcher_for(cls, self.session, self.session_lock)
            loader = ProjectionLoader(
                fetch_fn,
                name=name,
                key_field=key_column_for(cls),
                config=self.registry.config,
            )
            self._loaders[name] = loader
            _logger.debug("created loader %s for request", name)
        return loader

    def load(self, shape: ShapeRef, key: Any, fields: Optional[Iterable[str]] = None):
        return self.get(shape).load(key, fields)

    async def load_related(self, record: Any, shape: ShapeRef, relation: str, fields: Optional[Iterable[str]] = None) -> Any:
        """Load the entity (or entities) a stored relation of ``record`` points at.

        Returns ``None`` (single) or ``[]`` (many) when the relation column is empty.
        """
        cls = self.registry.get(shape)
        fdef = fields_map_for(cls).get(relation)
        if fdef is None or fdef.kind != 'relation':
            raise LookupError(f"{cls.__name__} has no relation {relation!r}")
        if fdef.column is None:
            raise LookupError(f"{cls.__name__}.{relation} is not stored on the record")
        value = record_value(record, fdef.column, None)
        loader = self.get(fdef.target)
        if fdef.meta.get('single', True):
            if value is None:
                return None
            return await loader.load(value, fields)
        if not value:
            return []
        return await loader.load_many(value, fields)

    def stats(self) -> Dict[str, LoaderStats]:
        return {name: loader.stats for name, loader in self._loaders.items()}

    @property
    def loaders(self) -> List[ProjectionLoader]:
        return list(self._loaders.values())
