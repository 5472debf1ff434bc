"""Shared test fixtures for the mediasource test suite."""

from __future__ import annotations

import httpx
import pytest

from mediasource.domain.entities import ItemQuery, Site
from mediasource.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from mediasource.infrastructure.cache.result_cache import ResultCache
from mediasource.infrastructure.persistence.setting_store import CacheSettingStore

# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def http_client() -> httpx.AsyncClient:
    """Real httpx.AsyncClient for use with respx mocking."""
    return httpx.AsyncClient()


@pytest.fixture()
def memory_cache() -> MemoryCacheAdapter:
    return MemoryCacheAdapter(ttl_seconds=0)


@pytest.fixture()
def settings(memory_cache: MemoryCacheAdapter) -> CacheSettingStore:
    return CacheSettingStore(memory_cache)


@pytest.fixture()
def result_cache() -> ResultCache:
    return ResultCache()


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie() -> ItemQuery:
    """Movie query as a catalogue would send it."""
    return ItemQuery(
        site=Site("catalog", "Catalog"),
        site_id="27205",
        title="Начало",
        original_title="Inception",
        year=2010,
        tmdb_id=27205,
    )


@pytest.fixture()
def serial() -> ItemQuery:
    return ItemQuery(
        site=Site("catalog", "Catalog"),
        site_id="1396",
        title="Breaking Bad",
        year=2008,
        is_serial=True,
        tmdb_id=1396,
    )
