"""ThePirateBay torrent listing adapter.

The site's own front-end script names the JSON API host and the tracker
list appended to magnet links; both are scraped once from
``static/main.js`` and kept in the shared result cache.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote, urljoin

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import (
    Folder,
    FolderType,
    PositionBehavior,
    TorrentFolder,
)
from mediasource.infrastructure.common.converters import to_int

from .base import FileProviderBase

DEFAULT_API_HOST = "https://apibay.org"
VIDEO_CATEGORY = "200"
TRACKERS_MAX_AGE = 24 * 3600

_SERVER_RE = re.compile(r"\bserver='(?P<api>http.+?)'")
_PRINT_TRACKERS_RE = re.compile(r"\bprint_trackers\(\)\s*\{(?P<body>.+?)\n\}", re.S)
_TRACKER_RE = re.compile(r"encodeURIComponent\('(?P<tracker>.+?)'\)")

_CATEGORY_GROUPS = {
    "1": "Audio",
    "2": "Video",
    "3": "Applications",
    "4": "Games",
    "5": "Porn",
    "6": "Other",
}

_CATEGORY_NAMES = {
    201: "Movies",
    202: "Movies DVDR",
    203: "Music videos",
    204: "Movie Clips",
    205: "TV-Shows",
    206: "Handheld",
    207: "HD Movies",
    208: "HD TV-Shows",
    209: "3D",
    299: "Other",
}


def format_magnet(info_hash: str, name: str, trackers: list[str]) -> str:
    link = f"magnet:?xt=urn:btih:{info_hash}&dn={quote(name, safe='')}"
    return link + "".join(f"&tr={quote(t, safe='')}" for t in trackers)


def format_category(category: int | None) -> str | None:
    if not category:
        return None
    group = _CATEGORY_GROUPS.get(str(category)[0], "")
    return f"{group} > {_CATEGORY_NAMES.get(category, '')}"


def parse_main_script(script: str) -> dict[str, Any]:
    """API host and tracker list from the site's ``main.js``."""
    api = _SERVER_RE.search(script)
    body = _PRINT_TRACKERS_RE.search(script)
    trackers = _TRACKER_RE.findall(body.group("body")) if body else []
    return {
        "api": api.group("api") if api else None,
        "trackers": [t for t in trackers if t],
    }


class ThePirateBayAdapter(FileProviderBase):
    site = Site("thepiratebay", "The Pirate Bay")
    _mirrors = ("https://thepiratebay.org",)

    def can_open(self, uri: str) -> bool:
        return False

    async def get_torrents_root(self, item: ItemQuery) -> Folder | None:
        if not item.title:
            return None

        setup = await self._result_cache.get_or_add(
            f"{self.name}:main_script",
            self._load_main_script,
            max_age=TRACKERS_MAX_AGE,
        )
        trackers: list[str] = list(setup.get("trackers") or []) if setup else []
        if not trackers:
            self._log.warning(f"{self.name}_parse_failed", reason="no_trackers")
            return None

        api = (setup.get("api") if setup else None) or DEFAULT_API_HOST
        resp = await self._safe_fetch(
            urljoin(api.rstrip("/") + "/", "q.php"),
            params={"q": item.title, "cat": VIDEO_CATEGORY},
            context="search",
        )
        results = self._safe_parse_json(resp.text if resp else None, context="search")
        if not isinstance(results, list):
            return None

        torrents: dict[str, TorrentFolder] = {}
        for raw in results:
            torrent = self._to_torrent(raw, trackers)
            if torrent is not None:
                torrents.setdefault(torrent.id, torrent)

        ordered = sorted(torrents.values(), key=lambda t: t.seeds or 0, reverse=True)
        self._log.debug(f"{self.name}_torrents", title=item.title, count=len(ordered))
        return Folder.of(
            ordered,
            site=self.site,
            id=f"tpb_t_{item.site_id}",
            folder_type=FolderType.PROVIDER_ROOT,
            position_behavior=PositionBehavior.AVERAGE,
        )

    def _to_torrent(self, raw: Any, trackers: list[str]) -> TorrentFolder | None:
        if not isinstance(raw, dict):
            return None
        torrent_id = raw.get("id")
        info_hash = raw.get("info_hash")
        name = raw.get("name")
        # the API answers an empty search with a single all-zero placeholder
        if not torrent_id or not info_hash or not name or str(torrent_id) == "0":
            return None

        return TorrentFolder(
            site=self.site,
            id=f"tpb{torrent_id}",
            title=str(name),
            link=format_magnet(str(info_hash), str(name), trackers),
            torrent_hash=str(info_hash).lower(),
            size=to_int(raw.get("size")),
            seeds=to_int(raw.get("seeders")),
            leeches=to_int(raw.get("leechers")),
            details=format_category(to_int(raw.get("category"))),
        )

    async def _load_main_script(self) -> dict[str, Any] | None:
        mirror = await self._base_url()
        script = await self._fetch_text(f"{mirror}/static/main.js", context="main_script")
        if script is None:
            return None
        return parse_main_script(script)
