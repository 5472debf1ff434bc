"""Lazy content tree: files, folders and torrent folders.

Folders never compute children at construction time.  Each folder carries an
explicit ``children_factory`` closure; ``load_children()`` invokes it on every
call, so re-fetching is allowed and nothing is cached at this layer.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .quality import quality_value
from .site import Site
from .video import Track, Video


class FolderType(str, Enum):
    ROOT = "root"
    PROVIDER_ROOT = "provider_root"
    SEASON = "season"
    TRANSLATE = "translate"
    TORRENT = "torrent"
    TRAILERS = "trailers"
    UNKNOWN = "unknown"


class PositionBehavior(str, Enum):
    """How a UI should derive the watch position of a folder from its files."""

    MAX = "max"
    AVERAGE = "average"


@dataclass(frozen=True, kw_only=True)
class File:
    """Terminal tree node holding playable videos.

    ``videos`` is kept sorted by quality, best first.
    """

    site: Site
    id: str
    title: str | None = None
    frame_link: str | None = None
    placeholder_image: str | None = None
    videos: tuple[Video, ...] = ()
    subtitle_tracks: tuple[Track, ...] = ()
    item_title: str | None = None
    season: int | None = None
    episode: int | None = None
    is_trailer: bool = False

    def __post_init__(self) -> None:
        ordered = sorted(self.videos, key=lambda v: v.quality_value, reverse=True)
        object.__setattr__(self, "videos", tuple(ordered))
        object.__setattr__(self, "subtitle_tracks", tuple(self.subtitle_tracks))

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        if self.episode is not None:
            return f"Episode {self.episode}"
        return self.item_title or self.id

    @property
    def best_video(self) -> Video | None:
        return self.videos[0] if self.videos else None

    def get_by_quality(self, label: str | None) -> Video | None:
        """Best video not better than *label*; the worst one if all are better."""
        if not self.videos:
            return None
        wanted = quality_value(label)
        if wanted == 0:
            return self.videos[0]
        for video in self.videos:
            if video.quality_value <= wanted:
                return video
        return self.videos[-1]


ChildrenFactory = Callable[[], Awaitable[Sequence["TreeNode"]]]


@dataclass(frozen=True, kw_only=True)
class Folder:
    """Lazily expandable tree node."""

    site: Site
    id: str
    title: str | None = None
    folder_type: FolderType = FolderType.UNKNOWN
    position_behavior: PositionBehavior = PositionBehavior.AVERAGE
    season: int | None = None
    details: str | None = None
    placeholder_text: str | None = None
    children_factory: ChildrenFactory | None = field(
        default=None, compare=False, repr=False
    )

    @property
    def is_expandable(self) -> bool:
        return self.children_factory is not None

    async def load_children(self) -> tuple[TreeNode, ...]:
        """Fetch children via the stored factory (empty for terminal folders)."""
        if self.children_factory is None:
            return ()
        return tuple(await self.children_factory())

    @classmethod
    def of(
        cls,
        children: Iterable[TreeNode],
        **kwargs: object,
    ) -> Folder:
        """Build a folder over an already materialised list of children."""
        items = tuple(children)

        async def _children() -> Sequence[TreeNode]:
            return items

        return cls(children_factory=_children, **kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True, kw_only=True)
class TorrentFolder(Folder):
    """Torrent listing entry.  Terminal: never expands further."""

    link: str
    seeds: int | None = None
    leeches: int | None = None
    peers: int | None = None
    size: int | None = None
    torrent_hash: str | None = None
    quality: str | None = None
    folder_type: FolderType = FolderType.TORRENT

    def __post_init__(self) -> None:
        if self.children_factory is not None:
            raise ValueError("TorrentFolder is terminal and takes no children factory")

    @property
    def is_magnet(self) -> bool:
        return self.link.startswith("magnet:")

    @property
    def is_expandable(self) -> bool:
        return False


TreeNode = Union[File, Folder]
