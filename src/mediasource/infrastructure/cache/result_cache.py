"""Process-wide result cache with get-or-add semantics.

Owned by the composition root and injected where needed; there is no global
instance.  Lookups go memory → optional persistent store → factory.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from mediasource.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

T = TypeVar("T")

# Sweep expired entries every N stores
_EVICT_INTERVAL = 500

# Oldest entries are dropped beyond this many
_MAX_ENTRIES = 5_000


class _Entry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, max_age: int | None) -> None:
        self.value = value
        self.expires_at = time.monotonic() + max_age if max_age else None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class ResultCache:
    """Keyed async cache; at most one factory call per key at a time.

    Factory errors propagate and are not cached, ``None`` results are not
    cached either.  Persistent store failures are logged and the value is
    computed instead.  Expired entries are dropped when read and swept
    periodically; beyond ``max_entries`` the oldest entries go first.
    Per-key locks live only while a caller is using them.
    """

    def __init__(
        self,
        store: CachePort | None = None,
        *,
        default_max_age: int | None = None,
        key_prefix: str = "result:",
        max_entries: int = _MAX_ENTRIES,
    ) -> None:
        self._store = store
        self._default_max_age = default_max_age
        self._prefix = key_prefix
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._max_entries = max_entries
        self._store_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self._entries[key]
            return None
        return entry.value

    async def get_or_add(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        *,
        max_age: int | None = None,
    ) -> T:
        max_age = max_age if max_age is not None else self._default_max_age

        cached = self.peek(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await self._fill(key, factory, max_age)
        finally:
            self._release_lock(key, lock)

    async def _fill(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        max_age: int | None,
    ) -> T:
        # a concurrent caller may have filled it while we waited
        cached = self.peek(key)
        if cached is not None:
            log.debug("result_cache_hit_after_wait", key=key)
            return cached

        stored = await self._load(key)
        if stored is not None:
            self._remember(key, stored, max_age)
            return stored

        value = await factory()
        if value is not None:
            self._remember(key, value, max_age)
            await self._save(key, value, max_age)
        return value

    def _remember(self, key: str, value: Any, max_age: int | None) -> None:
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value, max_age)
        self._store_count += 1
        if self._store_count % _EVICT_INTERVAL == 0:
            self._evict_expired()
        if len(self._entries) > self._max_entries:
            # dicts keep insertion order; drop from the front
            excess = len(self._entries) - self._max_entries
            for old in list(self._entries)[:excess]:
                del self._entries[old]

    def _evict_expired(self) -> None:
        expired = [k for k, e in self._entries.items() if e.is_expired]
        for k in expired:
            del self._entries[k]
        log.debug("result_cache_evict", evicted=len(expired), size=len(self._entries))

    def _release_lock(self, key: str, lock: asyncio.Lock) -> None:
        users = self._lock_users.get(key, 1) - 1
        if users > 0:
            self._lock_users[key] = users
            return
        self._lock_users.pop(key, None)
        if self._locks.get(key) is lock:
            del self._locks[key]

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        if self._store is not None:
            try:
                await self._store.delete(self._prefix + key)
            except Exception as exc:  # noqa: BLE001
                log.warning("result_cache_delete_failed", key=key, error=str(exc))

    def clear(self) -> None:
        """Drop the in-memory layer (the persistent store is left alone)."""
        self._entries.clear()

    async def _load(self, key: str) -> Any:
        if self._store is None:
            return None
        try:
            return await self._store.get(self._prefix + key)
        except Exception as exc:  # noqa: BLE001
            log.warning("result_cache_load_failed", key=key, error=str(exc))
            return None

    async def _save(self, key: str, value: Any, max_age: int | None) -> None:
        if self._store is None:
            return
        try:
            await self._store.set(self._prefix + key, value, ttl=max_age)
        except Exception as exc:  # noqa: BLE001
            log.warning("result_cache_save_failed", key=key, error=str(exc))
