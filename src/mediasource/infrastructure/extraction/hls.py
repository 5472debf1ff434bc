"""HLS master playlist parsing."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping

from mediasource.domain.entities.video import HeaderMap, Video
from mediasource.infrastructure.common.urls import to_absolute

_STREAM_INF = "#EXT-X-STREAM-INF"

# KEY=value or KEY="quoted, value"
_ATTR_RE = re.compile(r'([A-Z0-9-]+)=("[^"]*"|[^,]*)')


def parse_attributes(tag_line: str) -> dict[str, str]:
    """Attribute list of an ``#EXT-X-...:`` tag line, quotes stripped."""
    _, _, attrs = tag_line.partition(":")
    return {key: value.strip('"') for key, value in _ATTR_RE.findall(attrs)}


def variant_quality(attributes: Mapping[str, str]) -> str | None:
    """``"720p"`` from ``RESOLUTION=1280x720``, else ``"<kbps>kbps"``."""
    resolution = attributes.get("RESOLUTION", "")
    _, _, height = resolution.lower().partition("x")
    if height.isdigit():
        return f"{int(height)}p"

    bandwidth = attributes.get("BANDWIDTH", "")
    if bandwidth.isdigit():
        return f"{round(int(bandwidth) / 1000)}kbps"
    return None


def parse_videos_from_m3u8(
    lines: Iterable[str] | str,
    base_uri: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> Iterator[Video]:
    """Yield one :class:`Video` per ``#EXT-X-STREAM-INF`` variant.

    The URI line following each tag is resolved against *base_uri* when
    relative; anything else (media playlists, comments, blank lines) is
    ignored, so a manifest without variants yields nothing.
    """
    if isinstance(lines, str):
        lines = lines.splitlines()

    pending: dict[str, str] | None = None
    for raw in lines:
        line = raw.strip()
        if not line:
            continue

        if line.startswith(_STREAM_INF):
            pending = parse_attributes(line)
            continue

        if pending is None:
            continue
        if line.startswith("#"):
            # another tag between STREAM-INF and its URI; keep waiting
            continue

        attributes, pending = pending, None
        link = to_absolute(line, base_uri)
        if link is None:
            continue

        yield Video(
            uri=link,
            quality=variant_quality(attributes),
            headers=HeaderMap(headers or {}),
        )


def is_master_playlist(text: str) -> bool:
    return _STREAM_INF in text
