"""Structured item query used for torrent and trailer lookups."""

from __future__ import annotations

from dataclasses import dataclass

from .site import Site


@dataclass(frozen=True)
class ItemQuery:
    """The item a caller wants sources for (movie or series)."""

    site: Site
    site_id: str
    title: str
    original_title: str | None = None
    year: int | None = None
    is_serial: bool = False
    tmdb_id: int | None = None

    @property
    def titles(self) -> list[str]:
        """Search titles, original first, without duplicates."""
        result: list[str] = []
        for title in (self.original_title, self.title):
            if title and title not in result:
                result.append(title)
        return result
