"""Generic repository backed by CachePort with JSON serialization."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Generic, TypeVar

import structlog

from mediasource.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

T = TypeVar("T")


class CacheRepository(Generic[T]):
    """Upsert/query repository over a CachePort.

    Items are stored as JSON strings under ``{namespace}:{key}``; an index
    entry lists the keys so ``get_all`` can enumerate them.  Index updates
    are serialised per repository.  Storage errors are logged and reported
    as "not found" / "not saved".
    """

    def __init__(
        self,
        cache: CachePort,
        namespace: str,
        *,
        key_of: Callable[[T], str],
        to_dict: Callable[[T], dict],
        from_dict: Callable[[dict], T],
    ) -> None:
        self.cache = cache
        self.namespace = namespace
        self._key_of = key_of
        self._to_dict = to_dict
        self._from_dict = from_dict
        # guards the index read-modify-write
        self._index_lock = asyncio.Lock()

    @property
    def _index_key(self) -> str:
        return f"{self.namespace}:__index__"

    def _item_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def _read_index(self) -> list[str]:
        try:
            raw = await self.cache.get(self._index_key)
        except Exception as exc:  # noqa: BLE001
            log.warning("repository_index_read_failed", namespace=self.namespace, error=str(exc))
            return []
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            log.error("repository_index_corrupt", namespace=self.namespace)
            return []
        return [str(k) for k in keys] if isinstance(keys, list) else []

    async def _write_index(self, keys: list[str]) -> bool:
        try:
            await self.cache.set(self._index_key, json.dumps(keys), ttl=0)
        except Exception as exc:  # noqa: BLE001
            log.warning("repository_index_write_failed", namespace=self.namespace, error=str(exc))
            return False
        return True

    async def get(self, key: str) -> T | None:
        try:
            raw = await self.cache.get(self._item_key(key))
        except Exception as exc:  # noqa: BLE001
            log.warning("repository_read_failed", namespace=self.namespace, key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return self._from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            log.error("repository_deserialize_error", namespace=self.namespace, key=key, error=str(exc))
            return None

    async def get_all(self) -> AsyncIterator[T]:
        for key in await self._read_index():
            item = await self.get(key)
            if item is not None:
                yield item

    async def find(self, predicate: Callable[[T], bool]) -> T | None:
        async for item in self.get_all():
            if predicate(item):
                return item
        return None

    async def upsert_many(self, items: Iterable[T]) -> int:
        async with self._index_lock:
            return await self._upsert_locked(items)

    async def _upsert_locked(self, items: Iterable[T]) -> int:
        index = await self._read_index()
        known = set(index)
        stored = 0
        for item in items:
            key = self._key_of(item)
            try:
                await self.cache.set(
                    self._item_key(key), json.dumps(self._to_dict(item)), ttl=0
                )
            except Exception as exc:  # noqa: BLE001
                log.warning("repository_write_failed", namespace=self.namespace, key=key, error=str(exc))
                continue
            stored += 1
            if key not in known:
                known.add(key)
                index.append(key)
        if stored:
            # items are saved even when the index is not; get() still finds them
            await self._write_index(index)
        log.debug("repository_upserted", namespace=self.namespace, count=stored)
        return stored

    async def delete(self, key: str) -> bool:
        try:
            deleted = await self.cache.delete(self._item_key(key))
        except Exception as exc:  # noqa: BLE001
            log.warning("repository_delete_failed", namespace=self.namespace, key=key, error=str(exc))
            return False
        async with self._index_lock:
            index = await self._read_index()
            if key in index:
                index.remove(key)
                await self._write_index(index)
        return bool(deleted)

    async def delete_many(self, items: Iterable[T]) -> int:
        removed = 0
        for item in items:
            if await self.delete(self._key_of(item)):
                removed += 1
        return removed
