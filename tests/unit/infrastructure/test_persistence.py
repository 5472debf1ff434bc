"""Tests for the cache-backed settings store and repository."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mediasource.domain.ports.setting_store import SettingStrategy
from mediasource.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from mediasource.infrastructure.persistence import CacheRepository, CacheSettingStore


@dataclass(frozen=True)
class Bookmark:
    key: str
    title: str


class YieldingCache(MemoryCacheAdapter):
    """Memory cache that gives other tasks a turn on every call."""

    async def get(self, key: str) -> Any:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        await asyncio.sleep(0)
        await super().set(key, value, ttl=ttl)


def _repository(cache: MemoryCacheAdapter | AsyncMock) -> CacheRepository[Bookmark]:
    return CacheRepository(
        cache,
        "bookmarks",
        key_of=lambda b: b.key,
        to_dict=asdict,
        from_dict=lambda d: Bookmark(**d),
    )


class TestCacheSettingStore:
    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        store = CacheSettingStore(MemoryCacheAdapter())
        await store.set_setting("mirrors", "animedia", {"mirror": "https://a"})
        assert await store.get_setting("mirrors", "animedia") == {"mirror": "https://a"}

    @pytest.mark.asyncio
    async def test_default_when_missing(self) -> None:
        store = CacheSettingStore(MemoryCacheAdapter())
        assert await store.get_setting("mirrors", "nope", "fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_strategies_are_separate(self) -> None:
        store = CacheSettingStore(MemoryCacheAdapter())
        await store.set_setting("auth", "token", "local-value")
        await store.set_setting("auth", "token", "secret", SettingStrategy.SECURE)
        assert await store.get_setting("auth", "token") == "local-value"
        assert await store.get_setting("auth", "token", strategy=SettingStrategy.SECURE) == "secret"

    @pytest.mark.asyncio
    async def test_settings_do_not_expire(self) -> None:
        cache = AsyncMock()
        store = CacheSettingStore(cache)
        await store.set_setting("c", "k", 1)
        assert cache.set.await_args.kwargs["ttl"] == 0

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = CacheSettingStore(MemoryCacheAdapter())
        await store.set_setting("c", "k", 1)
        assert await store.delete_setting("c", "k") is True
        assert await store.get_setting("c", "k") is None

    @pytest.mark.asyncio
    async def test_backend_failure_reads_as_default(self) -> None:
        cache = AsyncMock()
        cache.get.side_effect = OSError("locked")
        cache.set.side_effect = OSError("locked")
        cache.delete.side_effect = OSError("locked")
        store = CacheSettingStore(cache)
        assert await store.get_setting("c", "k", "d") == "d"
        await store.set_setting("c", "k", 1)
        assert await store.delete_setting("c", "k") is False


class TestCacheRepository:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self) -> None:
        repo = _repository(MemoryCacheAdapter())
        stored = await repo.upsert_many([Bookmark("1", "A"), Bookmark("2", "B")])
        assert stored == 2
        assert await repo.get("2") == Bookmark("2", "B")

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing(self) -> None:
        repo = _repository(MemoryCacheAdapter())
        await repo.upsert_many([Bookmark("1", "A")])
        await repo.upsert_many([Bookmark("1", "A2")])
        assert [b async for b in repo.get_all()] == [Bookmark("1", "A2")]

    @pytest.mark.asyncio
    async def test_find(self) -> None:
        repo = _repository(MemoryCacheAdapter())
        await repo.upsert_many([Bookmark("1", "A"), Bookmark("2", "B")])
        assert await repo.find(lambda b: b.title == "B") == Bookmark("2", "B")
        assert await repo.find(lambda b: b.title == "Z") is None

    @pytest.mark.asyncio
    async def test_delete_many(self) -> None:
        repo = _repository(MemoryCacheAdapter())
        items = [Bookmark("1", "A"), Bookmark("2", "B")]
        await repo.upsert_many(items)
        assert await repo.delete_many([items[0], Bookmark("9", "missing")]) == 1
        assert [b.key async for b in repo.get_all()] == ["2"]

    @pytest.mark.asyncio
    async def test_corrupt_entry_reads_as_missing(self) -> None:
        cache = MemoryCacheAdapter()
        await cache.set("bookmarks:1", "{not json")
        assert await _repository(cache).get("1") is None

    @pytest.mark.asyncio
    async def test_storage_errors_are_not_fatal(self) -> None:
        cache = AsyncMock()
        cache.get.side_effect = OSError("locked")
        cache.set.side_effect = OSError("locked")
        repo = _repository(cache)
        assert await repo.get("1") is None
        assert await repo.upsert_many([Bookmark("1", "A")]) == 0
        assert [b async for b in repo.get_all()] == []

    @pytest.mark.asyncio
    async def test_concurrent_upserts_keep_every_key(self) -> None:
        repo = _repository(YieldingCache())
        counts = await asyncio.gather(
            *(repo.upsert_many([Bookmark(str(i), f"t{i}")]) for i in range(10))
        )
        assert counts == [1] * 10
        keys = sorted([b.key async for b in repo.get_all()])
        assert keys == sorted(str(i) for i in range(10))

    @pytest.mark.asyncio
    async def test_concurrent_deletes_keep_other_keys(self) -> None:
        repo = _repository(YieldingCache())
        items = [Bookmark(str(i), f"t{i}") for i in range(6)]
        await repo.upsert_many(items)
        await asyncio.gather(*(repo.delete(b.key) for b in items[:3]))
        assert sorted([b.key async for b in repo.get_all()]) == ["3", "4", "5"]

    @pytest.mark.asyncio
    async def test_index_write_failure_still_counts_saved_items(self) -> None:
        cache = MemoryCacheAdapter()
        original_set = cache.set

        async def refuse_index(key: str, value: Any, *, ttl: int | None = None) -> None:
            if key.endswith("__index__"):
                raise OSError("disk full")
            await original_set(key, value, ttl=ttl)

        cache.set = refuse_index  # type: ignore[method-assign]
        repo = _repository(cache)
        assert await repo.upsert_many([Bookmark("1", "A")]) == 1
        assert await repo.get("1") == Bookmark("1", "A")
