"""Exception taxonomy for projloader.

NotFound is not an exception: a key without a record settles as ``None``.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence


class ProjloaderError(Exception):
    """Base class for every error raised by projloader."""


class MalformedSelection(ProjloaderError, ValueError):
    """The field-selection tree handed to the extractor cannot be walked."""

    def __init__(self, message: str, *, node: Any = None):
        super().__init__(message)
        self.node = node


class MalformedKey(ProjloaderError, ValueError):
    """A load key cannot be normalized to the backend identifier type.

    Raised synchronously to the caller of ``load``; the open batch is untouched.
    """

    def __init__(self, key: Any, reason: str = ''):
        msg = f"Malformed key {key!r}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.key = key
        self.reason = reason


class FetchFailed(ProjloaderError):
    """The fetch function failed; every member of the batch receives this error."""

    def __init__(self, message: str, *, keys: Sequence[Any] = (), loader: Optional[str] = None):
        super().__init__(message)
        self.keys = list(keys)
        self.loader = loader


class AdapterContractViolation(FetchFailed):
    """The fetch function returned results that cannot be matched to the keys."""


class UnknownField(ProjloaderError, KeyError):
    """A projected field has no backing column on the store."""

    def __init__(self, field_name: str, entity: str = ''):
        super().__init__(field_name)
        self.field_name = field_name
        self.entity = entity

    def __str__(self) -> str:
        where = f" on {self.entity}" if self.entity else ''
        return f"Unknown field {self.field_name!r}{where}"


__all__ = [
    'ProjloaderError',
    'MalformedSelection',
    'MalformedKey',
    'FetchFailed',
    'AdapterContractViolation',
    'UnknownField',
]
