"""Shared base class for httpx-based site adapters.

Holds what every adapter needs: the shared ``httpx.AsyncClient``, a composed
:class:`MirrorManager`, root-domain ``can_open`` and failure-tolerant fetch
helpers.  Adapters satisfy ``SiteAdapterPort`` / ``FileProviderPort``
structurally; the domain layer never sees this class.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import httpx
import structlog

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import ProviderRequirements, Site
from mediasource.domain.entities.tree import File, Folder, TreeNode
from mediasource.domain.exceptions import UnsupportedOperationError
from mediasource.domain.ports.setting_store import SettingStorePort
from mediasource.infrastructure.cache.result_cache import ResultCache
from mediasource.infrastructure.common.urls import host_of
from mediasource.infrastructure.extraction.headers import DEFAULT_USER_AGENT
from mediasource.infrastructure.mirrors.mirror_manager import (
    DEFAULT_PROBE_TIMEOUT,
    MirrorManager,
    ProbeStrategy,
)

DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_MAX_CONCURRENT = 4


class HttpxAdapterBase:
    """Base for site adapters.

    Subclasses **must** set:
    - ``site``
    - ``_mirrors`` (at least one base URL)

    Subclasses **may** override:
    - ``read_requirements``, ``priority``
    - ``_aliases`` (extra accepted hosts), ``_user_agent``, ``_timeout``
    - ``_max_concurrent`` (detail requests in flight per listing)
    - ``_health_check_path``, ``_probe_strategy``
    - ``resolve()`` (the default raises ``UnsupportedOperationError``)
    """

    site: Site
    read_requirements: ProviderRequirements = ProviderRequirements.NONE
    priority: int = 0

    _mirrors: Sequence[str] = ()
    _aliases: Sequence[str] = ()
    _user_agent: str = DEFAULT_USER_AGENT
    _timeout: float = DEFAULT_REQUEST_TIMEOUT
    _max_concurrent: int = DEFAULT_MAX_CONCURRENT
    _health_check_path: str | None = None
    _probe_strategy: ProbeStrategy = ProbeStrategy.SEQUENTIAL

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        settings: SettingStorePort | None = None,
        result_cache: ResultCache | None = None,
        mirrors: Sequence[str] | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        mirror_cache_ttl: float | None = None,
    ) -> None:
        self._client = http_client
        self._result_cache = result_cache or ResultCache()
        extra: dict[str, Any] = {}
        if mirror_cache_ttl is not None:
            extra["cache_ttl"] = mirror_cache_ttl
        self.mirror = MirrorManager(
            self.site,
            list(mirrors or self._mirrors),
            http_client=http_client,
            settings=settings,
            aliases=self._aliases,
            health_check_path=self._health_check_path,
            strategy=self._probe_strategy,
            probe_timeout=probe_timeout,
            **extra,
        )
        self._log = structlog.get_logger(f"mediasource.adapters.{self.site.value}")

    @property
    def name(self) -> str:
        return self.site.value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} site={self.site.value}>"

    # ------------------------------------------------------------------
    # Adapter contract
    # ------------------------------------------------------------------

    def can_open(self, uri: str) -> bool:
        return self.mirror.matches(uri)

    async def resolve(self, uri: str) -> File | None:
        raise UnsupportedOperationError(self.site.value, "resolve")

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------

    def _new_semaphore(self) -> asyncio.Semaphore:
        """Create a bounded semaphore for concurrent detail requests."""
        return asyncio.Semaphore(self._max_concurrent)

    async def _base_url(self) -> str:
        return await self.mirror.get_mirror()

    def _headers(self, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        merged = {"User-Agent": self._user_agent}
        if headers:
            merged.update(headers)
        return merged

    async def _safe_fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        context: str = "",
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Request *url*; ``None`` on timeouts, HTTP errors and bad statuses.

        Cancellation is never caught here.
        """
        try:
            resp = await self._client.request(
                method,
                url,
                headers=self._headers(headers),
                timeout=kwargs.pop("timeout", self._timeout),
                **kwargs,
            )
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            self._log.warning(f"{self.name}_timeout", url=url, context=context)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                self._log.info(f"{self.name}_not_found", url=url, context=context)
            else:
                self._log.warning(
                    f"{self.name}_http_error", url=url, status=status, context=context
                )
        except httpx.TransportError as exc:
            self._log.warning(
                f"{self.name}_fetch_error", url=url, error=str(exc), context=context
            )
            await self._drop_dead_mirror(url)
        except httpx.HTTPError as exc:
            self._log.warning(
                f"{self.name}_fetch_error", url=url, error=str(exc), context=context
            )
        return None

    async def _drop_dead_mirror(self, url: str) -> None:
        """Re-probe mirrors on the next request when *url* was on the confirmed one."""
        current = self.mirror.current
        if current is not None and host_of(url) == host_of(current):
            await self.mirror.invalidate()

    async def _fetch_text(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        context: str = "",
        **kwargs: Any,
    ) -> str | None:
        resp = await self._safe_fetch(url, headers=headers, context=context, **kwargs)
        return resp.text if resp is not None else None

    def _safe_parse_json(self, text: str | None, context: str = "") -> Any:
        """Parse JSON text; ``None`` on empty or malformed input."""
        if not text:
            return None
        try:
            return json.loads(text)
        except (json.JSONDecodeError, ValueError):
            self._log.warning(f"{self.name}_invalid_json", context=context)
            return None


class FileProviderBase(HttpxAdapterBase):
    """Base for adapters serving folder trees (torrents, trailers, episodes).

    Every capability defaults to ``UnsupportedOperationError``; subclasses
    override what they provide.
    """

    _primed_items: tuple[ItemQuery, ...] = ()

    @property
    def primed_items(self) -> tuple[ItemQuery, ...]:
        return self._primed_items

    def init_for_items(self, items: Iterable[ItemQuery]) -> None:
        """Remember the batch the caller is about to browse.

        Subclasses that can prefetch several items in one request read
        ``primed_items``; a new call replaces the previous batch.
        """
        self._primed_items = tuple(items)
        self._log.debug(f"{self.name}_primed", count=len(self._primed_items))

    async def get_folder_children(self, folder: Folder) -> Sequence[TreeNode]:
        if folder.site != self.site:
            raise UnsupportedOperationError(self.site.value, "get_folder_children")
        return await folder.load_children()

    async def get_torrents_root(self, item: ItemQuery) -> Folder | None:
        raise UnsupportedOperationError(self.site.value, "get_torrents_root")

    async def get_trailers_root(self, item: ItemQuery) -> Folder | None:
        raise UnsupportedOperationError(self.site.value, "get_trailers_root")
