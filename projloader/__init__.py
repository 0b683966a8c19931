"""projloader public API and lightweight lazy exports.

The loader and the registry (and with them the store adapters) are imported
on first access, so shape modules can import ``field``/``relation`` early.

Exposes:
- field, relation, field_set, FieldSet
- ProjectionExtractor, extract
- ProjectionLoader, RequestState, LoaderStats
- EntityShape, ShapeRegistry, RequestLoaders
- LoaderConfig, Alignment
- the error taxonomy from .errors
"""
from __future__ import annotations

from .config import Alignment, LoaderConfig
from .core.fields import FieldSet, field, field_set, relation
from .errors import (
    AdapterContractViolation,
    FetchFailed,
    MalformedKey,
    MalformedSelection,
    ProjloaderError,
    UnknownField,
)

_LAZY = {
    'ProjectionExtractor': '.core.selection',
    'extract': '.core.selection',
    'ProjectionLoader': '.loader',
    'LoadRequest': '.loader',
    'LoaderStats': '.loader',
    'RequestState': '.loader',
    'EntityShape': '.registry',
    'ShapeRegistry': '.registry',
    'RequestLoaders': '.registry',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name in ('adapters', 'integrations', 'registry', 'loader'):
        return _importlib.import_module(__name__ + '.' + name)
    mod = _LAZY.get(name)
    if mod is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(mod, __name__), name)


__all__ = [
    'Alignment', 'LoaderConfig',
    'FieldSet', 'field', 'field_set', 'relation',
    'ProjectionExtractor', 'extract',
    'ProjectionLoader', 'LoadRequest', 'LoaderStats', 'RequestState',
    'EntityShape', 'ShapeRegistry', 'RequestLoaders',
    'ProjloaderError', 'MalformedSelection', 'MalformedKey', 'FetchFailed',
    'AdapterContractViolation', 'UnknownField',
]
