from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ..config import DEFAULT_CONFIG, Alignment, LoaderConfig
from ..core.fields import FieldSet
from ..core.utils import default_normalize_key


class BaseFetcher(ABC):
    """Callable fetch function bound to one backing collection/table.

    ``ProjectionLoader`` calls the instance as ``await fetcher(keys, fields)``
    and picks up :meth:`normalize_key` and :attr:`alignment` from it.
    """

    name = 'base'
    alignment: Alignment = Alignment.BY_KEY

    def __init__(self, *, key: str = 'id', config: Optional[LoaderConfig] = None):
        self.key = key
        self.config = config or DEFAULT_CONFIG

    def normalize_key(self, key: Any) -> Any:
        return default_normalize_key(key)

    @abstractmethod
    async def fetch(self, keys: List[Any], fields: FieldSet) -> Sequence[Any]:
        raise NotImplementedError

    async def __call__(self, keys: List[Any], fields: FieldSet) -> Sequence[Any]:
        return await self.fetch(keys, fields)
