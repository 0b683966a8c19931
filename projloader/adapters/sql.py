"""
SQLAlchemy fetcher.

Loads a batch of rows by primary (or any unique) key with a single
``SELECT <projected columns> FROM <table> WHERE <key> IN (...)`` through an
``AsyncSession``. Rows come back as plain dicts keyed by column name, in
whatever order the database returns them; the loader matches them by key.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Alignment, LoaderConfig
from ..core.fields import FieldSet
from ..core.utils import coerce_key
from ..errors import UnknownField
from .base import BaseFetcher

logger = logging.getLogger(__name__)


class SQLAlchemyFetcher(BaseFetcher):
    """Fetch rows of one mapped model (or ``Table``) projected to the requested columns."""

    name = 'sqlalchemy'
    alignment = Alignment.BY_KEY

    def __init__(
        self,
        session: AsyncSession,
        model: Any,
        *,
        key: str = 'id',
        config: Optional[LoaderConfig] = None,
        lock: Optional[asyncio.Lock] = None,
    ):
        super().__init__(key=key, config=config)
        self.session = session
        # AsyncSession allows one operation at a time; fetchers sharing a session share the lock.
        self.lock = lock or asyncio.Lock()
        self.model = model
        table = model if isinstance(model, Table) else getattr(model, '__table__', None)
        if table is None:
            raise TypeError(f"{model!r} is neither a mapped class nor a Table")
        self.table = table
        key_col = table.c.get(key)
        if key_col is None:
            raise UnknownField(key, table.name)
        self.key_column = key_col

    def __repr__(self) -> str:
        return f"<SQLAlchemyFetcher {self.table.name}.{self.key}>"

    def normalize_key(self, key: Any) -> Any:
        return coerce_key(self.key_column, key)

    def columns_for(self, fields: FieldSet) -> list:
        """Resolve field names to columns; the key column always comes first."""
        cols = [self.key_column]
        for name in sorted(fields):
            if name == self.key:
                continue
            col = self.table.c.get(name)
            if col is None:
                if self.config.strict_fields:
                    raise UnknownField(name, self.table.name)
                logger.warning("%s: no column %r, dropped from projection", self.table.name, name)
                continue
            cols.append(col)
        return cols

    async def fetch(self, keys: List[Any], fields: FieldSet) -> Sequence[Any]:
        if not keys:
            return []
        stmt = select(*self.columns_for(fields)).where(self.key_column.in_(keys))
        async with self.lock:
            result = await self.session.execute(stmt)
            return [dict(row._mapping) for row in result]
