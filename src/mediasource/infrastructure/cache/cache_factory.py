"""Cache factory: builds the configured CachePort backend."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import structlog

from mediasource.domain.ports.cache import CachePort

from .diskcache_adapter import DiskcacheAdapter
from .memory_adapter import MemoryCacheAdapter

log = structlog.get_logger(__name__)

CacheBackend = Literal["memory", "diskcache"]


def create_cache(
    backend: CacheBackend = "diskcache",
    *,
    directory: str | Path = "./.cache/mediasource",
    ttl_seconds: int = 3600,
    max_concurrent: int = 10,
) -> CachePort:
    """Create the cache adapter for *backend*.

    Raises:
        ValueError: unknown backend.
    """
    if backend == "memory":
        log.info("cache_factory_create", backend=backend, ttl=ttl_seconds)
        return MemoryCacheAdapter(ttl_seconds=ttl_seconds)
    if backend == "diskcache":
        log.info(
            "cache_factory_create",
            backend=backend,
            directory=str(directory),
            ttl=ttl_seconds,
            max_concurrent=max_concurrent,
        )
        return DiskcacheAdapter(
            directory=directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=max_concurrent,
        )
    raise ValueError(
        f"Unknown cache backend: {backend!r}. Must be 'memory' or 'diskcache'."
    )
