"""TorLook torrent search adapter (HTML scraping)."""

from __future__ import annotations

import asyncio
import re
from datetime import date
from urllib.parse import quote

from bs4 import Tag
from rapidfuzz import fuzz
from unidecode import unidecode as _unidecode

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import (
    Folder,
    FolderType,
    PositionBehavior,
    TorrentFolder,
)
from mediasource.infrastructure.common.converters import parse_size_to_bytes, to_int
from mediasource.infrastructure.common.ids import hashed_id
from mediasource.infrastructure.common.urls import to_absolute
from mediasource.infrastructure.extraction.html import (
    extract_attr,
    extract_text,
    parse_html,
    select_items,
)

from .base import FileProviderBase

# rapidfuzz scores run 0-100
MIN_TITLE_SIMILARITY = 87.0

_IGNORE_RE = re.compile(r"\b(?:FB2|EPUB|PDF|DOC|MP3|FLAC|APE|RePack)\b", re.I)
_DATA_LINK_RE = re.compile(r"href='(?P<link>.+?)'")
_SEPARATORS = "/\\[]();"


def _letters_and_digits(text: str) -> str:
    """Transliterate to ASCII, lowercase and keep only letters and digits."""
    return "".join(ch for ch in _unidecode(text).lower() if ch.isalnum())


def matches_item(title: str, item: ItemQuery, titles: list[str]) -> bool:
    """Year, ignored-format and title-similarity filter for one result."""
    if item.year is not None and str(item.year) not in title:
        if not item.is_serial:
            return False
        years = range(item.year, date.today().year + 1)
        if not any(str(year) in title for year in years):
            return False

    if not any(_IGNORE_RE.search(t) for t in titles) and _IGNORE_RE.search(title):
        return False

    separators = [s for s in _SEPARATORS if all(s not in t for t in titles)]
    parts = re.split("|".join(re.escape(s) for s in separators), title) if separators else [title]
    wanted = [w for w in map(_letters_and_digits, titles) if w]
    candidates = [p for p in map(_letters_and_digits, parts) if p]
    best = max(
        # processor=None: both sides are already normalised
        (fuzz.ratio(w, p, processor=None) for p in candidates for w in wanted),
        default=0.0,
    )
    return best >= MIN_TITLE_SIMILARITY


class TorLookAdapter(FileProviderBase):
    site = Site("torlook", "TorLook")
    _mirrors = ("https://torlook.info",)

    def can_open(self, uri: str) -> bool:
        return False

    async def get_torrents_root(self, item: ItemQuery) -> Folder | None:
        titles = item.titles
        if not titles:
            return None

        mirror = await self._base_url()
        pages = await asyncio.gather(
            *(
                self._fetch_text(f"{mirror}/{quote(title, safe='')}", context="search")
                for title in titles
            )
        )

        rows = [
            row
            for page in pages
            if page
            for row in select_items(parse_html(page), ".webResult")
            if matches_item(extract_text(row, "p a"), item, titles)
        ]
        sem = self._new_semaphore()

        async def _bounded_torrent(row: Tag) -> TorrentFolder | None:
            async with sem:
                return await self._to_torrent(row, mirror)

        found = await asyncio.gather(*(_bounded_torrent(row) for row in rows))

        torrents: dict[str, TorrentFolder] = {}
        for torrent in found:
            if torrent is not None:
                torrents.setdefault(torrent.id, torrent)

        ordered = sorted(torrents.values(), key=lambda t: t.seeds or 0, reverse=True)
        self._log.debug(f"{self.name}_torrents", title=item.title, count=len(ordered))
        return Folder.of(
            ordered,
            site=self.site,
            id=f"tl_t_{item.site_id}",
            folder_type=FolderType.PROVIDER_ROOT,
            position_behavior=PositionBehavior.AVERAGE,
        )

    async def _to_torrent(self, row: Tag, mirror: str) -> TorrentFolder | None:
        title = extract_text(row, "p a")
        if not title:
            return None

        href = extract_attr(row, "a.magneto", "href")
        if href.startswith("magnet:") or to_absolute(href) is not None:
            link: str | None = href
            node_id = hashed_id("tl", href)
        else:
            # older layout: the magnet sits behind a per-result page
            data_src = extract_attr(row, "a.magneto", "data-src")
            target = to_absolute(data_src, mirror + "/")
            if target is None:
                return None
            link = await self._follow_data_link(target)
            node_id = hashed_id("tl", data_src)
        if link is None:
            return None

        return TorrentFolder(
            site=self.site,
            id=node_id,
            title=title,
            link=link,
            size=parse_size_to_bytes(extract_text(row, ".size")),
            seeds=to_int(extract_text(row, ".seeders")),
            leeches=to_int(extract_text(row, ".leechers")),
            details=extract_text(row, ".h2 a[href]") or None,
        )

    async def _follow_data_link(self, target: str) -> str | None:
        page = await self._fetch_text(target, context="magnet")
        match = _DATA_LINK_RE.search(page or "")
        return match.group("link") if match else None
