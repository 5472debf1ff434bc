"""In-process CachePort implementation."""

from __future__ import annotations

import time
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class _Entry:
    """Value with an optional monotonic deadline."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, ttl: int | None) -> None:
        self.value = value
        self.expires_at = time.monotonic() + ttl if ttl else None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class MemoryCacheAdapter:
    """Dict-backed cache; lost on process exit.

    ``ttl_seconds=0`` stores entries without expiry.
    """

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 10_000) -> None:
        self.default_ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: dict[str, _Entry] = {}

    async def __aenter__(self) -> MemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._entries.clear()

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value, ttl if ttl is not None else self.default_ttl)
        if len(self._entries) > self._max_entries:
            # dicts keep insertion order; drop the oldest
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            log.debug("memory_cache_evicted", key=oldest)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        self._entries.clear()
