from __future__ import annotations
import asyncio
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config import Alignment, LoaderConfig
from ..core.fields import FieldSet
from .base import BaseFetcher


class MemoryFetcher(BaseFetcher):
    """Dict-backed store that behaves like a document collection.

    Projection keeps only the requested keys present on a row (absent fields
    are omitted, not nulled). Every call is recorded in :attr:`calls` as
    ``(keys, fields)``.

    Args:
        rows: Rows as an iterable of mappings (keyed by ``key``) or a mapping
            ``{key: row}``.
        key: Row field holding the id.
        alignment: BY_KEY returns only found rows; POSITIONAL returns one entry
            per requested key with ``None`` for misses.
        normalize_key: Optional key normalizer, e.g. ``str`` for string ids.
    """

    name = 'memory'

    def __init__(
        self,
        rows: Union[Iterable[Mapping[str, Any]], Mapping[Any, Mapping[str, Any]]],
        *,
        key: str = 'id',
        alignment: Alignment = Alignment.BY_KEY,
        normalize_key: Optional[Callable[[Any], Any]] = None,
        config: Optional[LoaderConfig] = None,
    ):
        super().__init__(key=key, config=config)
        self.alignment = alignment
        self._normalize = normalize_key
        if isinstance(rows, Mapping):
            items = [dict(r, **{key: k}) for k, r in rows.items()]
        else:
            items = [dict(r) for r in rows]
        self.rows: Dict[Any, Dict[str, Any]] = {}
        for row in items:
            if key not in row:
                raise ValueError(f"Row without {key!r}: {row!r}")
            self.rows[self.normalize_key(row[key])] = row
        self.calls: List[Tuple[List[Any], FieldSet]] = []

    def normalize_key(self, key: Any) -> Any:
        if self._normalize is not None:
            return self._normalize(super().normalize_key(key))
        return super().normalize_key(key)

    def project(self, row: Optional[Mapping[str, Any]], fields: FieldSet) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        return {f: row[f] for f in fields if f in row}

    async def fetch(self, keys: List[Any], fields: FieldSet) -> Sequence[Any]:
        self.calls.append((list(keys), fields))
        await asyncio.sleep(0)
        if self.alignment is Alignment.POSITIONAL:
            return [self.project(self.rows.get(k), fields) for k in keys]
        return [self.project(self.rows[k], fields) for k in keys if k in self.rows]
