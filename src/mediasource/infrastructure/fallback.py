"""Generic resolution for links no adapter recognises.

Two cheap checks are tried: a HEAD request whose content type reveals a
directly playable stream, and a page fetch looking for ``<video src>`` or
embedded iframes.  Iframes are only reported; deciding whether an adapter
can open one is the orchestrator's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

from mediasource.domain.entities.site import ANY_SITE
from mediasource.domain.entities.tree import File
from mediasource.domain.entities.video import Video
from mediasource.infrastructure.common.ids import hashed_id
from mediasource.infrastructure.extraction.headers import (
    DEFAULT_USER_AGENT,
    stream_headers,
)
from mediasource.infrastructure.extraction.html import (
    find_iframe_sources,
    find_video_source,
)

log = structlog.get_logger(__name__)

_HLS_TYPES = ("application/vnd.apple.mpegurl", "application/x-mpegurl")
_DASH_TYPES = ("application/dash+xml",)
_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass(frozen=True)
class PageScan:
    """What a fetched page offers: a direct file and/or embed links."""

    file: File | None = None
    iframes: list[str] = field(default_factory=list)


def direct_file(uri: str, *, frame_link: str | None = None) -> File:
    """Single-video file for a link that is itself the stream."""
    return File(
        site=ANY_SITE,
        id=hashed_id("direct", uri),
        frame_link=frame_link or uri,
        videos=(Video(uri=uri, headers=stream_headers(referer=frame_link)),),
    )


def is_playable_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return (
        content_type.startswith(("video/", "audio/"))
        or any(t in content_type for t in _HLS_TYPES)
        or any(t in content_type for t in _DASH_TYPES)
    )


class DirectLinkResolver:
    """Content-type probe and page scan over the shared HTTP client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = http_client
        self._timeout = timeout
        self._user_agent = user_agent

    async def probe(self, uri: str) -> File | None:
        """A file when a HEAD request says *uri* is a playable stream."""
        try:
            resp = await self._client.head(
                uri,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            log.debug("fallback_probe_timeout", url=uri)
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.debug("fallback_probe_http_error", url=uri, error=str(exc))
            return None

        if resp.status_code >= 400:
            return None
        content_type = resp.headers.get("content-type", "")
        if not is_playable_content_type(content_type):
            return None

        log.info("fallback_direct_stream", url=uri, content_type=content_type)
        return direct_file(str(resp.url))

    async def scan(self, uri: str) -> PageScan:
        """Fetch *uri* and look for a ``<video>`` source and iframes."""
        try:
            resp = await self._client.get(
                uri,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except httpx.TimeoutException:
            log.debug("fallback_scan_timeout", url=uri)
            return PageScan()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.debug("fallback_scan_http_error", url=uri, error=str(exc))
            return PageScan()

        content_type = resp.headers.get("content-type", "").lower()
        if content_type and not any(t in content_type for t in _HTML_TYPES):
            return PageScan()

        page_url = str(resp.url)
        html = resp.text
        source = find_video_source(html, page_url)
        file = direct_file(source, frame_link=page_url) if source else None
        return PageScan(file=file, iframes=find_iframe_sources(html, page_url))
