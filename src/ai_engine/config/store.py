"""config.store

Mutable key/value config store, the immutable snapshot read from it, and the
process-wide TTL cache sitting in between.

A refresh replaces the whole snapshot; readers never see a half-updated
mapping.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger(__name__)

#: A provider is disabled only when ``<provider>_enabled`` equals this exactly.
DISABLED_SENTINEL = 'false'
DEFAULT_TTL_SECONDS = 30.0


class ConfigStore(Protocol):
    """Anything that can return the full flat config mapping."""

    async def load(self) -> Mapping[str, str]: ...


class InMemoryConfigStore:
    """Config store held in process memory.

    Used for tests and for deployments without a database-backed store.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})
        self.load_count = 0

    async def load(self) -> Mapping[str, str]:
        self.load_count += 1
        return dict(self._values)

    async def update(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


class ConfigSnapshot(BaseModel):
    """Point-in-time copy of the config store."""

    values: Mapping[str, str] = Field(default_factory=dict)
    loaded_at: float = 0.0

    model_config = ConfigDict(frozen=True)

    @field_validator('values', mode='before')
    @classmethod
    def _stringify(cls, v: Mapping[str, object]) -> dict[str, str]:
        return {str(k): str(val) for k, val in dict(v).items() if val is not None}

    @field_validator('values', mode='after')
    @classmethod
    def _freeze(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self.values.get(key)
        return value if value not in (None, '') else default

    def get_float(self, key: str, default: float) -> float:
        raw = self.get(key)
        try:
            return float(raw) if raw is not None else default
        except ValueError:
            logger.warning('config_value_not_float', key=key, value=raw)
            return default

    def get_int(self, key: str, default: int) -> int:
        raw = self.get(key)
        try:
            return int(raw) if raw is not None else default
        except ValueError:
            logger.warning('config_value_not_int', key=key, value=raw)
            return default

    def is_provider_enabled(self, provider: str) -> bool:
        """Absent flag means enabled."""
        return self.values.get(f'{provider}_enabled') != DISABLED_SENTINEL


class ConfigCache:
    """TTL cache over a :class:`ConfigStore`.

    Constructed once at process start and shared; ``invalidate()`` is called
    by whatever administrative path writes to the store.
    """

    def __init__(
        self,
        store: ConfigStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: ConfigSnapshot | None = None
        self._fresh = False
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return (
            self._fresh
            and self._snapshot is not None
            and self._clock() - self._snapshot.loaded_at < self.ttl_seconds
        )

    async def get(self) -> ConfigSnapshot:
        if self._is_fresh():
            return self._snapshot  # type: ignore[return-value]

        async with self._lock:
            # another waiter may have refreshed while we queued
            if self._is_fresh():
                return self._snapshot  # type: ignore[return-value]
            try:
                values = await self.store.load()
            except Exception as exc:  # noqa: BLE001
                # serve the previous snapshot; the next call retries the store
                logger.warning('config_refresh_failed', error=str(exc), stale=self._snapshot is not None)
                return self._snapshot or ConfigSnapshot(loaded_at=self._clock())
            self._snapshot = ConfigSnapshot(values=values, loaded_at=self._clock())
            self._fresh = True
            return self._snapshot

    def invalidate(self) -> None:
        self._fresh = False

    @property
    def snapshot(self) -> ConfigSnapshot | None:
        """Last loaded snapshot, without triggering a refresh."""
        return self._snapshot
