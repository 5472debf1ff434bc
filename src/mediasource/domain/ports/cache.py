"""Cache port: backend-agnostic async key/value store with TTL."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Async key/value cache.

    Implementations:
      - MemoryCacheAdapter (in-process dict)
      - DiskcacheAdapter (SQLite-based, survives restarts)

    Adapters support async context-manager semantics:
        async with cache:
            await cache.set("key", value)
    """

    async def get(self, key: str) -> Any:
        """Return the value, or None when missing / expired."""
        ...

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Store *value*; ``ttl`` in seconds, ``0`` = no expiry, ``None`` = default."""
        ...

    async def delete(self, key: str) -> bool:
        """True = deleted, False = did not exist."""
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def clear(self) -> None:
        ...

    async def aclose(self) -> None:
        ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
