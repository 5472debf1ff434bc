"""TMDb trailers adapter.

Lists the YouTube trailers TMDb knows for an item.  Each trailer becomes a
:class:`File` flagged ``is_trailer``; when a resolver for YouTube links is
injected it supplies the playable videos, otherwise the watch link itself
is the video.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import Any

import httpx

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import (
    File,
    Folder,
    FolderType,
    PositionBehavior,
)
from mediasource.domain.entities.video import Video
from mediasource.domain.ports.setting_store import SettingStorePort
from mediasource.infrastructure.cache.result_cache import ResultCache
from mediasource.infrastructure.mirrors.mirror_manager import DEFAULT_PROBE_TIMEOUT

from .base import FileProviderBase

_API_URL = "https://api.themoviedb.org/3"
_YOUTUBE_WATCH = "https://www.youtube.com/watch?v="

# Cache TTL (seconds)
_TTL_VIDEOS = 21_600  # 6 hours

TrailerResolver = Callable[[str], Awaitable[File | None]]


def _quality_of(size: Any) -> str | None:
    return f"{size}p" if isinstance(size, int) and size > 0 else None


class TmdbTrailersAdapter(FileProviderBase):
    """Trailer listings from the TMDb ``/videos`` endpoint."""

    site = Site("tmdb", "TMDb")
    _mirrors = ("https://www.themoviedb.org",)

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: str,
        resolve_trailer: TrailerResolver | None = None,
        language: str | None = None,
        settings: SettingStorePort | None = None,
        result_cache: ResultCache | None = None,
        mirrors: Sequence[str] | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        mirror_cache_ttl: float | None = None,
    ) -> None:
        super().__init__(
            http_client,
            settings=settings,
            result_cache=result_cache,
            mirrors=mirrors,
            probe_timeout=probe_timeout,
            mirror_cache_ttl=mirror_cache_ttl,
        )
        self._api_key = api_key
        self._resolve_trailer = resolve_trailer
        self._language = language

    def can_open(self, uri: str) -> bool:
        return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"api_key": self._api_key}
        if self._language:
            params["language"] = self._language
        return params

    async def _videos(self, section: str, tmdb_id: int | str) -> list[dict[str, Any]] | None:
        path = f"/{section}/{tmdb_id}/videos"
        resp = await self._safe_fetch(
            f"{_API_URL}{path}", params=self._params(), context="videos"
        )
        data = self._safe_parse_json(resp.text if resp else None, context="videos")
        if not isinstance(data, dict):
            return None
        results = data.get("results")
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    async def _to_file(self, raw: dict[str, Any], item: ItemQuery) -> File | None:
        if raw.get("site") != "YouTube" or not raw.get("key") or not raw.get("id"):
            return None

        link = _YOUTUBE_WATCH + str(raw["key"])
        title = str(raw.get("name") or "") or item.title

        if self._resolve_trailer is not None:
            resolved = await self._resolve_trailer(link)
            if resolved is not None:
                return replace(
                    resolved,
                    title=resolved.title or title,
                    frame_link=resolved.frame_link or link,
                    item_title=item.title,
                    is_trailer=True,
                )

        return File(
            site=self.site,
            id=f"tmdb_v_{raw['id']}",
            title=title,
            frame_link=link,
            videos=(Video(uri=link, quality=_quality_of(raw.get("size"))),),
            item_title=item.title,
            is_trailer=True,
        )

    # ------------------------------------------------------------------
    # File provider
    # ------------------------------------------------------------------

    async def get_trailers_root(self, item: ItemQuery) -> Folder | None:
        tmdb_id = item.tmdb_id
        if tmdb_id is None and item.site == self.site:
            tmdb_id = int(item.site_id) if item.site_id.isdigit() else None
        if tmdb_id is None:
            return None

        section = "tv" if item.is_serial else "movie"
        results = await self._result_cache.get_or_add(
            f"{self.name}:videos:{section}:{tmdb_id}",
            lambda: self._videos(section, tmdb_id),
            max_age=_TTL_VIDEOS,
        )
        if results is None:
            return None

        # official trailers first, in TMDb order otherwise
        ordered = sorted(results, key=lambda r: r.get("type") != "Trailer")
        files = await asyncio.gather(*(self._to_file(raw, item) for raw in ordered))
        trailers = [f for f in files if f is not None]
        self._log.debug(f"{self.name}_trailers", tmdb_id=tmdb_id, count=len(trailers))

        return Folder.of(
            trailers,
            site=self.site,
            id=f"tmdb_t_{tmdb_id}",
            title=item.title,
            folder_type=FolderType.TRAILERS,
            position_behavior=PositionBehavior.AVERAGE,
        )
