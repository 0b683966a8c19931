"""Projection-aware, request-scoped batched object loader.

One ``ProjectionLoader`` per entity type per request. Every ``load(key, fields)``
issued before the event loop gets control back joins the same batch; the batch
is fetched once with the union of all requested fields and each key is fetched
at most once for the lifetime of the loader.

Usage:
    vehicles = ProjectionLoader(fetch_vehicles, key_field='id')
    a, b = await asyncio.gather(
        vehicles.load(1, {'vin'}),
        vehicles.load(2, {'customer_vehicle_number'}),
    )
    # fetch_vehicles([1, 2], {'id', 'vin', 'customer_vehicle_number'}) ran once
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from operator import attrgetter
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from strawberry.dataloader import DataLoader

from .config import DEFAULT_CONFIG, Alignment, LoaderConfig
from .core.fields import FieldSet
from .core.utils import as_field_set, default_normalize_key, record_value
from .errors import AdapterContractViolation, FetchFailed, MalformedKey

logger = logging.getLogger(__name__)

FetchFn = Callable[[List[Any], FieldSet], Awaitable[Any]]

_MISSING = object()


class RequestState(Enum):
    CREATED = 'created'
    QUEUED = 'queued'
    DISPATCHED = 'dispatched'
    RESOLVED = 'resolved'
    REJECTED = 'rejected'


_SETTLED = (RequestState.RESOLVED, RequestState.REJECTED)


@dataclass(eq=False)
class LoadRequest:
    """One key owned by a loader until it settles.

    ``fields`` grows while the request is queued (callers asking for the same
    key in the same window); ``fetched`` is the projection the backend was
    actually asked for, known once the batch is dispatched.
    """

    key: Any
    fields: FieldSet
    state: RequestState = RequestState.CREATED
    fetched: Optional[FieldSet] = None

    def merge(self, fields: FieldSet) -> None:
        self.fields = self.fields | fields

    def advance(self, state: RequestState) -> None:
        if self.state in _SETTLED:
            raise RuntimeError(f"Request for {self.key!r} already settled as {self.state.value}")
        self.state = state


@dataclass
class LoaderStats:
    batches: int = 0
    keys_fetched: int = 0
    cache_hits: int = 0
    widened_after_dispatch: int = 0
    batch_sizes: List[int] = field(default_factory=list)


class ProjectionLoader:
    """Batch and memoize per-key loads of one entity type within one request.

    Args:
        fetch_fn: ``async fetch(keys, fields) -> records``. Called once per batch
            with the de-duplicated normalized keys in first-load order and the
            union of requested fields plus ``key_field``. A fetch function (or
            fetcher object) may carry ``normalize_key`` and ``alignment``
            attributes that are used when the arguments below are omitted.
        name: Label for logs and errors; defaults to the fetch function's name.
        key_field: Record field that holds the entity key. Always projected.
        normalize_key: Callable mapping a caller key to the backend identifier,
            raising ``MalformedKey`` when impossible.
        alignment: Contract the fetch function's result follows.
        config: Shared loader options.
    """

    def __init__(
        self,
        fetch_fn: FetchFn,
        *,
        name: Optional[str] = None,
        key_field: str = 'id',
        normalize_key: Optional[Callable[[Any], Any]] = None,
        alignment: Optional[Alignment] = None,
        config: Optional[LoaderConfig] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.name = name or getattr(fetch_fn, '__name__', None) or type(fetch_fn).__name__
        self.key_field = key_field
        self.alignment = alignment or getattr(fetch_fn, 'alignment', None) or self.config.alignment
        self._fetch_fn = fetch_fn
        self._normalize_key = normalize_key or getattr(fetch_fn, 'normalize_key', None) or default_normalize_key
        self._requests: Dict[Any, LoadRequest] = {}
        self.stats = LoaderStats()
        self._loader: DataLoader[LoadRequest, Any] = DataLoader(
            load_fn=self._dispatch,
            max_batch_size=self.config.max_batch_size,
            cache_key_fn=attrgetter('key'),
        )

    def __repr__(self) -> str:
        return f"<ProjectionLoader {self.name} cached={len(self._requests)}>"

    def normalize_key(self, key: Any) -> Any:
        try:
            return self._normalize_key(key)
        except MalformedKey:
            raise
        except (TypeError, ValueError) as exc:
            raise MalformedKey(key, str(exc)) from exc

    def load(self, key: Any, fields: Optional[Iterable[str]] = None) -> Awaitable[Any]:
        """Enqueue ``key`` and return an awaitable of its record (``None`` if not found).

        Enqueueing happens synchronously, so it must be called with an event
        loop running. A key already known to this loader returns the existing
        outcome instead of a new fetch.

        Raises:
            MalformedKey: the key cannot be normalized; nothing is enqueued.
        """
        nkey = self.normalize_key(key)
        requested = as_field_set(fields)
        req = self._requests.get(nkey)
        if req is None:
            req = LoadRequest(nkey, requested)
            self._requests[nkey] = req
            req.advance(RequestState.QUEUED)
            logger.debug("%s: queued %r fields=%s", self.name, nkey, sorted(requested))
        else:
            self.stats.cache_hits += 1
            if req.state is RequestState.QUEUED:
                req.merge(requested)
            elif req.fetched is not None and not requested <= req.fetched:
                self.stats.widened_after_dispatch += 1
                logger.warning(
                    "%s: key %r already fetched with %s; not refetching for %s",
                    self.name, nkey, sorted(req.fetched), sorted(requested - req.fetched),
                )
        # Callers share one future; a cancelled caller must not cancel it for the rest.
        return asyncio.shield(self._loader.load(req))

    def load_many(self, keys: Iterable[Any], fields: Optional[Iterable[str]] = None) -> Awaitable[List[Any]]:
        requested = as_field_set(fields)
        return asyncio.gather(*[self.load(k, requested) for k in keys])

    def prime(self, key: Any, record: Any) -> bool:
        """Seed the cache with a known record. Returns False if the key is already cached."""
        nkey = self.normalize_key(key)
        if nkey in self._requests:
            return False
        known = frozenset(record.keys()) if isinstance(record, Mapping) else None
        req = LoadRequest(nkey, known or frozenset(), RequestState.RESOLVED, fetched=known)
        self._requests[nkey] = req
        self._loader.prime(req, record)
        return True

    def clear(self, key: Any) -> None:
        """Forget ``key``; the next load fetches it again.

        A key still queued in the open batch is kept: its fetch is already
        pending and a second request for it would join the same batch.
        """
        self._forget(self.normalize_key(key))

    def clear_all(self) -> None:
        for nkey in list(self._requests):
            self._forget(nkey)

    def _forget(self, nkey: Any) -> None:
        req = self._requests.get(nkey)
        if req is None or req.state is RequestState.QUEUED:
            return
        del self._requests[nkey]
        self._loader.clear(req)

    def state_of(self, key: Any) -> Optional[RequestState]:
        req = self._requests.get(self.normalize_key(key))
        return req.state if req is not None else None

    async def _dispatch(self, requests: List[LoadRequest]) -> List[Any]:
        keys = [r.key for r in requests]
        merged: FieldSet = frozenset().union(*(r.fields for r in requests)) | {self.key_field}
        for r in requests:
            r.advance(RequestState.DISPATCHED)
            r.fetched = merged
        self.stats.batches += 1
        self.stats.keys_fetched += len(keys)
        self.stats.batch_sizes.append(len(keys))
        if self.config.log_batches:
            logger.info("%s: fetching %d key(s) fields=%s", self.name, len(keys), sorted(merged))
        try:
            result = self._fetch_fn(keys, merged)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._settle(requests, RequestState.REJECTED)
            raise FetchFailed(
                f"{self.name}: fetch of {len(keys)} key(s) failed: {exc}",
                keys=keys,
                loader=self.name,
            ) from exc
        try:
            values = self._align(keys, result)
        except AdapterContractViolation as exc:
            logger.error("%s", exc)
            self._settle(requests, RequestState.REJECTED)
            raise
        for r, v in zip(requests, values):
            r.advance(RequestState.REJECTED if isinstance(v, BaseException) else RequestState.RESOLVED)
        return values

    def _settle(self, requests: List[LoadRequest], state: RequestState) -> None:
        for r in requests:
            r.advance(state)

    def _violation(self, keys: Sequence[Any], message: str) -> AdapterContractViolation:
        return AdapterContractViolation(f"{self.name}: {message}", keys=keys, loader=self.name)

    def _align(self, keys: List[Any], result: Any) -> List[Any]:
        if result is None or isinstance(result, (str, bytes)):
            raise self._violation(keys, f"fetch returned {type(result).__name__}, expected a sequence of records")
        if isinstance(result, Mapping):
            return self._align_mapping(keys, result)
        records = list(result)
        if self.alignment is Alignment.POSITIONAL:
            if len(records) != len(keys):
                raise self._violation(keys, f"positional fetch returned {len(records)} result(s) for {len(keys)} key(s)")
            return records
        return self._align_by_key(keys, records)

    def _align_mapping(self, keys: List[Any], result: Mapping[Any, Any]) -> List[Any]:
        wanted = set(keys)
        by_key: Dict[Any, Any] = {}
        for raw, rec in result.items():
            try:
                k = self.normalize_key(raw)
            except MalformedKey as exc:
                raise self._violation(keys, f"unusable result key {raw!r}") from exc
            if k not in wanted:
                raise self._violation(keys, f"result for unrequested key {raw!r}")
            by_key[k] = rec
        return [by_key.get(k) for k in keys]

    def _align_by_key(self, keys: List[Any], records: List[Any]) -> List[Any]:
        index = {k: i for i, k in enumerate(keys)}
        values: List[Any] = [None] * len(keys)
        filled: set = set()
        for rec in records:
            if rec is None:
                continue
            if isinstance(rec, tuple) and len(rec) == 2 and isinstance(rec[1], BaseException):
                # (key, error) rejects that key alone
                raw, rec = rec
            else:
                raw = record_value(rec, self.key_field, _MISSING)
            if raw is _MISSING:
                raise self._violation(keys, f"record without {self.key_field!r} cannot be matched to a key")
            try:
                k = self.normalize_key(raw)
            except MalformedKey as exc:
                raise self._violation(keys, f"record key {raw!r} is not a valid key") from exc
            i = index.get(k)
            if i is None:
                raise self._violation(keys, f"record for unrequested key {raw!r}")
            if i in filled:
                raise self._violation(keys, f"more than one record for key {raw!r}")
            filled.add(i)
            values[i] = rec
        missing = len(keys) - len(filled)
        if missing:
            logger.debug("%s: %d of %d key(s) not found", self.name, missing, len(keys))
        return values


__all__ = ['ProjectionLoader', 'LoadRequest', 'LoaderStats', 'RequestState', 'FetchFn']
