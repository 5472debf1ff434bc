"""Site adapter ports: the unit of extension.

Every external hosting site gets one adapter.  Adapters are structurally
independent; the orchestrator iterates a flat collection of them.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import ProviderRequirements, Site
from mediasource.domain.entities.tree import File, Folder, TreeNode


@runtime_checkable
class SiteAdapterPort(Protocol):
    """Contract every adapter implements."""

    @property
    def site(self) -> Site:
        """Read-only identity of the site."""
        ...

    @property
    def read_requirements(self) -> ProviderRequirements:
        """Capabilities a caller must hold to use this adapter."""
        ...

    def can_open(self, uri: str) -> bool:
        """Pure, network-free test whether *uri* belongs to this adapter."""
        ...

    async def resolve(self, uri: str) -> File | None:
        """Fetch and parse *uri*.

        Returns ``None`` when the content is gone or not found.  Raises
        ``UnsupportedOperationError`` for adapters without a player.
        Cancellation propagates.
        """
        ...


@runtime_checkable
class FileProviderPort(SiteAdapterPort, Protocol):
    """Extended contract for adapters serving hierarchical content.

    Unsupported methods raise ``UnsupportedOperationError`` instead of
    returning an empty result.
    """

    def init_for_items(self, items: Iterable[ItemQuery]) -> None:
        """Bulk priming hint (side effect only)."""
        ...

    async def get_folder_children(self, folder: Folder) -> Sequence[TreeNode]:
        ...

    async def get_torrents_root(self, item: ItemQuery) -> Folder | None:
        ...

    async def get_trailers_root(self, item: ItemQuery) -> Folder | None:
        ...
