"""Generic repository port (persistence is an external collaborator)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable
from typing import Protocol, TypeVar

T = TypeVar("T")


class RepositoryPort(Protocol[T]):
    """Upsert/query contract.

    Storage failures surface as "not found" / "not saved", never as
    exceptions.
    """

    def get_all(self) -> AsyncIterator[T]:
        ...

    async def get(self, key: str) -> T | None:
        ...

    async def find(self, predicate: Callable[[T], bool]) -> T | None:
        ...

    async def upsert_many(self, items: Iterable[T]) -> int:
        """Return the number of items stored."""
        ...

    async def delete_many(self, items: Iterable[T]) -> int:
        """Return the number of items removed."""
        ...

    async def delete(self, key: str) -> bool:
        ...
