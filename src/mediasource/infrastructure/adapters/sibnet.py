"""Sibnet video hosting adapter."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit

from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import File
from mediasource.domain.entities.video import Video
from mediasource.infrastructure.common.urls import to_absolute
from mediasource.infrastructure.extraction.headers import (
    MOBILE_USER_AGENT,
    stream_headers,
)

from .base import HttpxAdapterBase

_LINK_RE = re.compile(
    r"""(?:src|'file')\s*:\s*(?:"|')(?P<link>.{10,}?\.(?:mp4|m3u8|mpd)[^"']*)"""
)


def _video_id(uri: str) -> str:
    parts = urlsplit(uri)
    video_id = (parse_qs(parts.query).get("videoid") or [""])[0]
    if video_id:
        return video_id
    # /video12345-some-title/
    head = parts.path.split("-", 1)[0]
    return "".join(ch for ch in head if ch.isdigit())


class SibnetAdapter(HttpxAdapterBase):
    site = Site("sibnet", "Sibnet")
    _mirrors = ("https://video.sibnet.ru",)
    # the desktop page hides the stream behind a flash-era player
    _user_agent = MOBILE_USER_AGENT

    async def resolve(self, uri: str) -> File | None:
        page = await self._fetch_text(uri, context="page")
        if not page:
            return None

        mirror = await self._base_url()
        headers = stream_headers(referer=uri)

        links: list[str] = []
        for match in _LINK_RE.finditer(page):
            link = to_absolute(match.group("link"), mirror + "/")
            if link is not None and link not in links:
                links.append(link)

        if not links:
            self._log.warning(f"{self.name}_parse_failed", url=uri, reason="no_links")
            return None

        return File(
            site=self.site,
            id="sbnet" + _video_id(uri),
            frame_link=uri,
            videos=tuple(Video(uri=link, headers=headers) for link in links),
        )
