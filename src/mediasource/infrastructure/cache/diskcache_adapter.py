"""Diskcache adapter: SQLite-backed cache that survives restarts."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


class DiskcacheAdapter:
    """Async facade over the sync-only ``diskcache.Cache``.

    Disk I/O runs in ``asyncio.to_thread``; a semaphore bounds parallel
    operations to limit SQLite lock contention.  Keys may be namespaced
    with ``prefix`` so several components can share one directory.
    """

    def __init__(
        self,
        directory: str | Path = "./.cache/mediasource",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
        prefix: str = "",
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self._prefix = prefix
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _require_open(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "DiskcacheAdapter is not open; use 'async with cache:' first"
            )
        return self._cache

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", directory=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    async def get(self, key: str) -> Any:
        cache = self._require_open()
        async with self._semaphore:
            value = await asyncio.to_thread(cache.get, self._key(key), None)
        log.debug("diskcache_get", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        cache = self._require_open()
        expire = ttl if ttl is not None else self.default_ttl
        async with self._semaphore:
            await asyncio.to_thread(
                cache.set, self._key(key), value, expire or None
            )
        log.debug("diskcache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        async with self._semaphore:
            return bool(await asyncio.to_thread(cache.delete, self._key(key)))

    async def exists(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        full_key = self._key(key)
        async with self._semaphore:
            return await asyncio.to_thread(cache.__contains__, full_key)

    async def clear(self) -> None:
        if self._cache is None:
            return
        cache = self._cache
        async with self._semaphore:
            if self._prefix:
                await asyncio.to_thread(self._evict_prefixed, cache)
            else:
                await asyncio.to_thread(cache.clear)
        log.warning("diskcache_cleared", directory=str(self.directory))

    def _evict_prefixed(self, cache: DiskCache) -> None:
        for key in list(cache.iterkeys()):
            if isinstance(key, str) and key.startswith(self._prefix):
                cache.delete(key)
