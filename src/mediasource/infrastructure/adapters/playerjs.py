"""PlayerJS hosts adapter.

One adapter serves a family of third-party players built on PlayerJS.  Every
host contributes its mirrors, an id pattern for its embed paths and the
prefix of the file ids it produces.  The page carries one or more
``file: "..."`` values: a player-script string, a single HLS link or a JSON
playlist (translation → season → episode).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlsplit

import httpx

from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import (
    File,
    Folder,
    FolderType,
    PositionBehavior,
    TreeNode,
)
from mediasource.domain.entities.video import HeaderMap, Video
from mediasource.domain.ports.setting_store import SettingStorePort
from mediasource.infrastructure.cache.result_cache import ResultCache
from mediasource.infrastructure.common.ids import hashed_id
from mediasource.infrastructure.common.urls import origin_of, root_domain
from mediasource.infrastructure.extraction.headers import stream_headers
from mediasource.infrastructure.extraction.hls import parse_videos_from_m3u8
from mediasource.infrastructure.extraction.player_codec import (
    PlayerCodecKeys,
    codec_from_config,
    decode_file_value,
)
from mediasource.infrastructure.extraction.player_script import (
    find_script_file_values,
)
from mediasource.infrastructure.extraction.playlist import build_playlist_tree
from mediasource.infrastructure.mirrors.mirror_manager import DEFAULT_PROBE_TIMEOUT

from .base import FileProviderBase


@dataclass(frozen=True)
class PlayerHost:
    """One PlayerJS-based hosting site."""

    site: Site
    id_prefix: str
    id_pattern: str
    mirrors: tuple[str, ...]
    codec: PlayerCodecKeys | None = None
    roots: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roots", frozenset(root_domain(m) for m in self.mirrors))

    def file_id(self, uri: str, fallback: str) -> str:
        match = re.search(self.id_pattern, urlsplit(uri).path)
        if match and match.groupdict().get("id"):
            return self.id_prefix + match.group("id")
        return hashed_id(self.id_prefix, fallback)


DEFAULT_HOSTS: tuple[PlayerHost, ...] = (
    PlayerHost(
        Site("mediatoday", "Mediatoday"),
        "mtoday",
        r"embed/(?P<id>\d+)/",
        ("https://mediatoday.ru",),
    ),
    PlayerHost(
        Site("fsst", "Fsst"),
        "csst",
        r"embed/(?P<id>\d+)",
        ("https://secvideo1.online", "https://fsst.online", "https://csst.online"),
    ),
    PlayerHost(
        Site("tortuga", "Tortuga"),
        "ttg",
        r"vod/(?P<id>\d+)",
        ("https://tortuga.wtf",),
    ),
    PlayerHost(
        Site("ashdi", "Ashdi"),
        "ahd",
        r"vod/(?P<id>\d+)",
        ("https://ashdi.vip",),
    ),
)


class PlayerJsAdapter(FileProviderBase):
    """Resolves embed pages of every configured PlayerJS host."""

    site = Site("playerjs", "PlayerJS")
    _mirrors = ("https://playerjs.com",)

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        hosts: Sequence[PlayerHost] = DEFAULT_HOSTS,
        settings: SettingStorePort | None = None,
        result_cache: ResultCache | None = None,
        mirrors: Sequence[str] | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        mirror_cache_ttl: float | None = None,
    ) -> None:
        self._hosts = tuple(hosts)
        self._aliases = tuple(m for host in self._hosts for m in host.mirrors)
        super().__init__(
            http_client,
            settings=settings,
            result_cache=result_cache,
            mirrors=mirrors,
            probe_timeout=probe_timeout,
            mirror_cache_ttl=mirror_cache_ttl,
        )

    @property
    def hosts(self) -> tuple[PlayerHost, ...]:
        return self._hosts

    def host_for(self, uri: str) -> PlayerHost | None:
        root = root_domain(uri)
        if not root:
            return None
        return next((h for h in self._hosts if root in h.roots), None)

    def can_open(self, uri: str) -> bool:
        return self.host_for(uri) is not None

    async def get_folder_children(self, folder: Folder) -> Sequence[TreeNode]:
        if not any(folder.site == h.site for h in self._hosts):
            return await super().get_folder_children(folder)
        return await folder.load_children()

    async def resolve(self, uri: str) -> File | None:
        """First playable file of the embed page."""
        root = await self.get_playlist_root(uri)
        if root is None:
            return None
        return await _first_file(root)

    async def get_playlist_root(self, uri: str) -> Folder | None:
        """Root folder over everything the embed page offers."""
        host = self.host_for(uri)
        if host is None:
            return None

        headers = stream_headers(origin=origin_of(uri), referer=uri)
        page = await self._fetch_text(uri, headers=headers, context="page")
        if not page:
            return None

        nodes: list[TreeNode] = []
        for raw in find_script_file_values(page):
            decoded = decode_file_value(raw, host.codec)
            if not decoded:
                self._log.warning(f"{self.name}_parse_failed", url=uri, reason="decode")
                continue
            nodes.extend(await self._nodes_for(host, uri, decoded, headers))

        if not nodes:
            self._log.info(f"{self.name}_not_found", url=uri, host=host.site.value)
            return None

        return Folder.of(
            _dedupe_qualities(nodes),
            site=host.site,
            id=host.file_id(uri, page),
            folder_type=FolderType.PROVIDER_ROOT,
            position_behavior=PositionBehavior.AVERAGE,
        )

    async def _nodes_for(
        self,
        host: PlayerHost,
        uri: str,
        decoded: str,
        headers: HeaderMap,
    ) -> list[TreeNode]:
        root_id = host.file_id(uri, decoded)
        nodes = build_playlist_tree(
            host.site,
            root_id,
            decoded,
            uri,
            headers=headers,
        )

        # a lone HLS link: read the qualities from its master manifest
        if len(nodes) == 1 and isinstance(nodes[0], File):
            file = nodes[0]
            if len(file.videos) == 1 and file.videos[0].is_hls:
                variants = await self._read_variants(file.videos[0], headers)
                if variants:
                    return [replace(file, videos=tuple(variants))]
        return list(nodes)

    async def _read_variants(self, video: Video, headers: HeaderMap) -> list[Video]:
        manifest = await self._fetch_text(video.uri, headers=headers, context="manifest")
        if not manifest:
            return []
        return list(parse_videos_from_m3u8(manifest, video.uri, headers))


def _dedupe_qualities(nodes: list[TreeNode]) -> list[TreeNode]:
    """Keep the first video per quality inside each file."""
    result: list[TreeNode] = []
    for node in nodes:
        if isinstance(node, File) and node.videos:
            seen: dict[str | None, Video] = {}
            for video in node.videos:
                seen.setdefault(video.quality, video)
            if len(seen) != len(node.videos):
                node = replace(node, videos=tuple(seen.values()))
        result.append(node)
    return result


async def _first_file(folder: Folder) -> File | None:
    for child in await folder.load_children():
        if isinstance(child, File):
            if child.videos:
                return child
            continue
        found = await _first_file(child)
        if found is not None:
            return found
    return None


def hosts_from_config(raw: Mapping[str, Mapping[str, Any]]) -> tuple[PlayerHost, ...]:
    """Merge host overrides (keyed by site value) over the default hosts."""
    hosts = {h.site.value: h for h in DEFAULT_HOSTS}
    for key, spec in raw.items():
        base = hosts.get(key)
        mirrors = tuple(spec.get("mirrors") or (base.mirrors if base else ()))
        if not mirrors:
            continue
        hosts[key] = PlayerHost(
            base.site if base else Site(key, key.title()),
            str(spec.get("id_prefix") or (base.id_prefix if base else key)),
            str(spec.get("id_pattern") or (base.id_pattern if base else r"(?P<id>\d+)")),
            mirrors,
            codec_from_config(spec) or (base.codec if base else None),
        )
    return tuple(hosts.values())
