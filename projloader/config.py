"""Loader settings.

Environment variables use the PROJLOADER_ prefix.
Example: PROJLOADER_MAX_BATCH_SIZE=100, PROJLOADER_LOG_BATCHES=true
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Alignment(Enum):
    """How a fetch function's result lines up with the keys it was given.

    BY_KEY: records carry their own key; any subset, any order.
    POSITIONAL: result ``i`` answers key ``i``; ``None`` marks a missing record.
    """

    BY_KEY = 'by_key'
    POSITIONAL = 'positional'


class LoaderConfig(BaseSettings):
    """Options shared by the loaders of one registry.

    Attributes:
        alignment: Default alignment contract for fetch functions that do not
            declare their own.
        max_batch_size: Split a batch once it holds this many keys. ``None``
            keeps one batch per scheduling turn.
        log_batches: Emit an INFO record for every dispatched batch.
        strict_fields: Make store adapters raise ``UnknownField`` for projected
            fields without a column instead of skipping them.

    Example:
        config = LoaderConfig()              # from PROJLOADER_* variables
        config = LoaderConfig(log_batches=True)
    """

    alignment: Alignment = Field(
        default=Alignment.BY_KEY,
        description="Default result alignment of fetch functions",
    )
    max_batch_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum keys per fetch; unlimited when unset",
    )
    log_batches: bool = Field(default=False, description="Log every dispatched batch at INFO")
    strict_fields: bool = Field(default=False, description="Raise on projected fields without a column")

    model_config = SettingsConfigDict(
        env_prefix="PROJLOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @field_validator('alignment', mode='before')
    @classmethod
    def _lower_alignment(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'LoaderConfig':
        """Settings from the process environment, or only from ``environ`` when given.

        Raises:
            pydantic.ValidationError: a variable holds an invalid value.
        """
        if environ is None:
            return cls()
        prefix = cls.model_config['env_prefix']
        values = {
            name[len(prefix):].lower(): value
            for name, value in environ.items()
            if name.upper().startswith(prefix) and value != ''
        }
        return cls.model_validate(values)


DEFAULT_CONFIG = LoaderConfig()

__all__ = ['Alignment', 'LoaderConfig', 'DEFAULT_CONFIG']
