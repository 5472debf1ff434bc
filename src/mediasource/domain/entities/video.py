"""Stream descriptor value objects.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

from .quality import quality_value


class HeaderMap(Mapping[str, str]):
    """Ordered, case-insensitive header map with additive merge semantics.

    Headers can be added or merged but never removed; the last write for a
    key wins while the key keeps its first-seen position and casing.
    """

    __slots__ = ("_items",)

    def __init__(
        self,
        initial: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._items: dict[str, tuple[str, str]] = {}
        if initial is not None:
            self.merge(initial)

    def add(self, key: str, value: str) -> HeaderMap:
        folded = key.lower()
        existing = self._items.get(folded)
        name = existing[0] if existing is not None else key
        self._items[folded] = (name, value)
        return self

    def merge(
        self, other: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> HeaderMap:
        pairs = other.items() if isinstance(other, Mapping) else other
        for key, value in pairs:
            self.add(key, value)
        return self

    def merged(
        self, other: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> HeaderMap:
        """Return a new map with *other* merged on top of this one."""
        return HeaderMap(self).merge(other)

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderMap):
            return list(self.items()) == list(other.items())
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self.items()))

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"

    def to_dict(self) -> dict[str, str]:
        return dict(self.items())


def _is_absolute(uri: str) -> bool:
    parts = urlsplit(uri)
    return bool(parts.scheme) and bool(parts.netloc)


@dataclass(frozen=True)
class Track:
    """Subtitle or audio track attached to a stream."""

    uri: str
    language: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class Video:
    """One playable stream variant (a.k.a. stream descriptor).

    ``uri`` must be absolute; ``headers`` are the anti-hotlink headers the
    player has to send (Referer/Origin/User-Agent).
    """

    uri: str
    quality: str | None = None
    headers: HeaderMap = field(default_factory=HeaderMap)
    subtitle_tracks: tuple[Track, ...] = ()
    audio_tracks: tuple[Track, ...] = ()
    alternate_uris: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not _is_absolute(self.uri):
            raise ValueError(f"Video uri must be absolute, got: {self.uri!r}")
        if not isinstance(self.headers, HeaderMap):
            object.__setattr__(self, "headers", HeaderMap(self.headers))

    @property
    def quality_value(self) -> int:
        return quality_value(self.quality)

    @property
    def is_hls(self) -> bool:
        return urlsplit(self.uri).path.lower().endswith(".m3u8")

    def with_headers(
        self, headers: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> Video:
        """Return a copy with *headers* merged on top of the current ones."""
        return replace(self, headers=self.headers.merged(headers))


StreamDescriptor = Video
