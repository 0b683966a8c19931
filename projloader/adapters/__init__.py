from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Optional

from ..config import LoaderConfig
from .base import BaseFetcher
from .memory import MemoryFetcher
from .sql import SQLAlchemyFetcher


def get_fetcher(
    source: Any,
    model: Any = None,
    *,
    key: str = 'id',
    config: Optional[LoaderConfig] = None,
    lock: Optional[asyncio.Lock] = None,
) -> BaseFetcher:
    """Build the fetcher matching ``source``.

    - an existing ``BaseFetcher`` is returned unchanged;
    - a session-like object (has ``execute``) plus a model gives a SQLAlchemy
      fetcher, serialized on ``lock`` when given;
    - rows (mapping or list of mappings) give an in-memory fetcher.
    """
    if isinstance(source, BaseFetcher):
        return source
    if model is not None and callable(getattr(source, 'execute', None)):
        return SQLAlchemyFetcher(source, model, key=key, config=config, lock=lock)
    if isinstance(source, (Mapping, list, tuple)):
        return MemoryFetcher(source, key=key, config=config)
    raise TypeError(f"Cannot build a fetcher from {type(source).__name__}")


__all__ = [
    'BaseFetcher',
    'MemoryFetcher',
    'SQLAlchemyFetcher',
    'get_fetcher',
]
