"""Animedia adapter: anime player pages backed by HLS playlists.

Flow: player page → ``file: "..."`` playlist link (optionally with a
``plstart`` episode id) → either an HLS master manifest or a JSON episode
list from which the episode matching the page id is fetched.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import File
from mediasource.domain.entities.video import HeaderMap, Video
from mediasource.infrastructure.common.urls import origin_of, to_absolute
from mediasource.infrastructure.extraction.headers import stream_headers
from mediasource.infrastructure.extraction.hls import parse_videos_from_m3u8

from .base import HttpxAdapterBase

_FILE_RE = re.compile(
    r'file\s*:\s*"(?P<link>.+?)"(?:\s*,\s*plstart\s*:\s*"(?P<ep_id>.+?)")?'
)
_NON_EMBED_RE = re.compile(r"link:\s*'(?P<link>.+?)'")
_NOT_FOUND_MARKER = "Not found"
_MAX_EMBED_HOPS = 1


def _file_id(uri: str) -> str:
    segments = [s for s in urlsplit(uri).path.split("/") if s]
    return "anmd" + "_".join(segments[-3:])


class AnimediaAdapter(HttpxAdapterBase):
    site = Site("animedia", "Animedia")
    _mirrors = ("https://online.animedia.tv",)

    async def resolve(self, uri: str) -> File | None:
        return await self._resolve(uri, hops_left=_MAX_EMBED_HOPS)

    async def _resolve(self, uri: str, *, hops_left: int) -> File | None:
        page = await self._fetch_text(uri, context="page")
        if not page or not page.strip():
            return None

        match = _FILE_RE.search(page)
        link = to_absolute(match.group("link"), uri) if match else None
        request_headers = stream_headers(origin=origin_of(uri), referer=uri)

        playlist = (
            await self._fetch_text(link, headers=request_headers, context="playlist")
            if link
            else None
        )
        if not playlist or not playlist.strip() or _NOT_FOUND_MARKER in playlist:
            if "/embed/" in uri and hops_left > 0:
                non_embed = _NON_EMBED_RE.search(page)
                target = to_absolute(non_embed.group("link"), uri) if non_embed else None
                if target is not None:
                    self._log.debug(f"{self.name}_embed_redirect", url=uri, target=target)
                    return await self._resolve(target, hops_left=hops_left - 1)
            self._log.info(f"{self.name}_not_found", url=uri)
            return None

        ep_id = match.group("ep_id") if match else None
        if playlist.lstrip().startswith("["):
            episodes = self._safe_parse_json(playlist, context="episodes")
            if not isinstance(episodes, list) or not ep_id:
                self._log.warning(f"{self.name}_parse_failed", url=uri, reason="episode_list")
                return None

            entry = next(
                (
                    e
                    for e in episodes
                    if isinstance(e, dict) and str(e.get("id")) == ep_id
                ),
                None,
            )
            link = to_absolute(str(entry.get("file") or ""), uri) if entry else None
            if link is None:
                self._log.info(f"{self.name}_episode_not_matched", url=uri, ep_id=ep_id)
                return None

            playlist = await self._fetch_text(
                link,
                headers={"Origin": origin_of(uri)},
                context="episode",
            )
            if playlist is None:
                return None

        video_headers = stream_headers(origin=origin_of(uri), referer=uri)
        videos = list(parse_videos_from_m3u8(playlist, link, video_headers))
        if not videos and "#EXTM3U" in playlist:
            # media playlist without variants: the playlist itself is the stream
            videos = [Video(uri=link, headers=HeaderMap(video_headers))]
        if not videos:
            self._log.warning(f"{self.name}_parse_failed", url=uri, reason="no_variants")
            return None

        return File(
            site=self.site,
            id=_file_id(uri),
            frame_link=uri,
            videos=tuple(videos),
        )
