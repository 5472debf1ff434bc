"""Anti-hotlink header assembly for produced streams.

Helpers only stamp what the adapter passes in; the user-agent constants are
the single exception, for adapters that must impersonate a browser.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from mediasource.domain.entities.video import HeaderMap, Video

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.5 Mobile/15E148 Safari/604.1"
)


def stream_headers(
    *,
    referer: str | None = None,
    origin: str | None = None,
    user_agent: str | None = None,
) -> HeaderMap:
    """Header map with only the given (non-empty) values, in a fixed order."""
    headers = HeaderMap()
    if origin:
        headers.add("Origin", origin)
    if referer:
        headers.add("Referer", referer)
    if user_agent:
        headers.add("User-Agent", user_agent)
    return headers


def attach_headers(
    videos: Iterable[Video],
    headers: Mapping[str, str] | None,
) -> list[Video]:
    """Return copies of *videos* with *headers* merged onto each one."""
    if not headers:
        return list(videos)
    return [video.with_headers(headers) for video in videos]
