"""Resolution orchestrator use case.

Fans a request out to every adapter that can serve it:

- ``resolve``: first-success.  Candidates run concurrently; the first
  non-absent file wins and the remaining calls are cancelled and awaited.
- ``get_torrents_root`` / ``get_trailers_root``: aggregate-all.  Every
  capable file provider runs; their listings are merged into one root
  folder, deduplicated by normalized link.

One adapter failing never affects its siblings.  Cancellation always
propagates; timeouts are applied to the whole call only.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeVar
from urllib.parse import urlsplit

import structlog

from mediasource.domain.entities.item import ItemQuery
from mediasource.domain.entities.site import ANY_SITE, ProviderRequirements
from mediasource.domain.entities.tree import (
    File,
    Folder,
    FolderType,
    PositionBehavior,
    TorrentFolder,
    TreeNode,
)
from mediasource.domain.exceptions import UnsupportedOperationError
from mediasource.domain.ports.site_adapter import SiteAdapterPort

log = structlog.get_logger(__name__)

T = TypeVar("T")

_BTIH_RE = re.compile(r"xt=urn:btih:(?P<hash>[^&]+)", re.I)

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its collaborators.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _CircuitBreaker(Protocol):
    def allow(self, name: str) -> bool: ...

    def record_success(self, name: str) -> None: ...

    def record_failure(self, name: str) -> None: ...

    def release(self, name: str) -> None: ...


class _PageScan(Protocol):
    file: File | None
    iframes: list[str]


class _FallbackResolver(Protocol):
    """Generic handling of links no adapter recognises."""

    async def probe(self, uri: str) -> File | None: ...

    async def scan(self, uri: str) -> _PageScan: ...


class _ResultCache(Protocol):
    async def get_or_add(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        *,
        max_age: int | None = None,
    ) -> Any: ...


class Outcome(str, Enum):
    """How one adapter call ended."""

    FOUND = "found"
    ABSENT = "absent"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CallReport:
    """Per-adapter outcomes of one orchestrated call."""

    operation: str
    outcomes: dict[str, Outcome] = field(default_factory=dict)


def normalized_link_key(node: TreeNode) -> str:
    """Dedup key: magnet info-hash, else lower-cased URL without fragment."""
    if isinstance(node, TorrentFolder):
        if node.torrent_hash:
            return f"btih:{node.torrent_hash.lower()}"
        match = _BTIH_RE.search(node.link)
        if match:
            return f"btih:{match.group('hash').lower()}"
        return _url_key(node.link)
    if isinstance(node, File):
        link = node.best_video.uri if node.best_video else node.frame_link
        if link:
            return _url_key(link)
    return f"{node.site.value}:{node.id}"


def _url_key(link: str) -> str:
    return urlsplit(link.strip())._replace(fragment="").geturl().lower()


class ResolutionOrchestrator:
    """Single entry point over the flat adapter collection.

    Args:
        adapters: Every available adapter, in preference order.
        granted: Capabilities the caller holds; adapters requiring more are
            never invoked.
        default_timeout: Applied when a call passes no timeout (``None`` =
            unbounded).
        max_concurrent: Max adapter calls in flight per request.
        fallback: Generic resolver for links no adapter recognises.
        breaker: Skips adapters that keep failing.
        result_cache: Caches aggregated listings per item.
        result_max_age: Max age of cached listings (seconds).
    """

    def __init__(
        self,
        adapters: Sequence[SiteAdapterPort],
        *,
        granted: ProviderRequirements = ProviderRequirements.NONE,
        default_timeout: float | None = None,
        max_concurrent: int = 8,
        fallback: _FallbackResolver | None = None,
        breaker: _CircuitBreaker | None = None,
        result_cache: _ResultCache | None = None,
        result_max_age: int | None = None,
    ) -> None:
        # stable sort keeps the configured order among equal priorities
        self._adapters = sorted(
            adapters, key=lambda a: getattr(a, "priority", 0), reverse=True
        )
        self._granted = granted
        self._default_timeout = default_timeout
        self._max_concurrent = max_concurrent
        self._fallback = fallback
        self._breaker = breaker
        self._result_cache = result_cache
        self._result_max_age = result_max_age

    @property
    def adapters(self) -> list[SiteAdapterPort]:
        return list(self._adapters)

    @property
    def granted(self) -> ProviderRequirements:
        return self._granted

    @granted.setter
    def granted(self, value: ProviderRequirements) -> None:
        self._granted = value

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _permitted(self, adapter: SiteAdapterPort) -> bool:
        if adapter.read_requirements.satisfied_by(self._granted):
            return True
        log.debug(
            "adapter_requirements_unmet",
            site=adapter.site.value,
            required=str(adapter.read_requirements),
        )
        return False

    def candidates(self, uri: str) -> list[SiteAdapterPort]:
        """Adapters that recognise *uri* and whose requirements are met."""
        return [a for a in self._adapters if a.can_open(uri) and self._permitted(a)]

    def _providers(self, operation: str) -> list[SiteAdapterPort]:
        return [
            a
            for a in self._adapters
            if callable(getattr(a, operation, None)) and self._permitted(a)
        ]

    def can_open(self, uri: str) -> bool:
        return any(a.can_open(uri) and self._permitted(a) for a in self._adapters)

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def resolve(
        self,
        uri: str,
        *,
        timeout: float | None = None,
        report: CallReport | None = None,
    ) -> File | None:
        """First non-absent file from any adapter able to open *uri*.

        Pass *report* to collect how each adapter call ended.
        """
        report = report if report is not None else CallReport("resolve")
        return await self._with_timeout(
            self._resolve(uri, report), "resolve", timeout, url=uri
        )

    async def get_torrents_root(
        self,
        item: ItemQuery,
        *,
        timeout: float | None = None,
        report: CallReport | None = None,
    ) -> Folder | None:
        return await self._with_timeout(
            self._cached_listing("get_torrents_root", item, report),
            "get_torrents_root",
            timeout,
            item=item.site_id,
        )

    async def get_trailers_root(
        self,
        item: ItemQuery,
        *,
        timeout: float | None = None,
        report: CallReport | None = None,
    ) -> Folder | None:
        return await self._with_timeout(
            self._cached_listing("get_trailers_root", item, report),
            "get_trailers_root",
            timeout,
            item=item.site_id,
        )

    async def get_folder_children(self, folder: Folder) -> Sequence[TreeNode]:
        """Children of *folder*, via its owning adapter when there is one."""
        owner = next(
            (
                a
                for a in self._adapters
                if a.site == folder.site and callable(getattr(a, "get_folder_children", None))
            ),
            None,
        )
        if owner is None:
            return await folder.load_children()
        return await owner.get_folder_children(folder)  # type: ignore[attr-defined]

    def init_for_items(self, items: Iterable[ItemQuery]) -> None:
        """Hand the item batch to every file provider (best effort)."""
        batch = list(items)
        for adapter in self._providers("init_for_items"):
            try:
                adapter.init_for_items(batch)  # type: ignore[attr-defined]
            except UnsupportedOperationError:
                continue
            except Exception:  # noqa: BLE001
                log.exception("adapter_init_failed", site=adapter.site.value)

    # ------------------------------------------------------------------
    # First-success
    # ------------------------------------------------------------------

    async def _resolve(self, uri: str, report: CallReport) -> File | None:
        candidates = self.candidates(uri)
        if candidates:
            return await self._first_success(candidates, uri, report)
        return await self._resolve_unknown(uri, report)

    async def _first_success(
        self,
        candidates: list[SiteAdapterPort],
        uri: str,
        report: CallReport,
    ) -> File | None:
        semaphore = asyncio.Semaphore(self._max_concurrent)
        tasks = {
            asyncio.create_task(
                self._call(adapter, "resolve", lambda a=adapter: a.resolve(uri), semaphore, report)
            ): index
            for index, adapter in enumerate(candidates)
        }
        try:
            pending: set[asyncio.Task[File | None]] = set(tasks)
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                # several may finish in the same tick; prefer the earlier candidate
                for task in sorted(done, key=tasks.__getitem__):
                    file = task.result()
                    if file is not None:
                        log.info(
                            "resolve_succeeded",
                            url=uri,
                            site=candidates[tasks[task]].site.value,
                            videos=len(file.videos),
                        )
                        return file
            log.info("resolve_not_found", url=uri, candidates=len(candidates))
            return None
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _resolve_unknown(self, uri: str, report: CallReport) -> File | None:
        """Generic fallback: direct stream, ``<video>`` tag, then iframes."""
        if self._fallback is None:
            log.debug("resolve_no_candidates", url=uri)
            return None

        try:
            file = await self._fallback.probe(uri)
            if file is not None:
                return file
            scan = await self._fallback.scan(uri)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            log.exception("fallback_failed", url=uri)
            return None

        if scan.file is not None:
            return scan.file

        for iframe in scan.iframes:
            candidates = self.candidates(iframe)
            if not candidates:
                continue
            log.debug("resolve_via_iframe", url=uri, iframe=iframe)
            file = await self._first_success(candidates, iframe, report)
            if file is not None:
                return file

        log.info("resolve_not_found", url=uri, candidates=0)
        return None

    # ------------------------------------------------------------------
    # Aggregate-all
    # ------------------------------------------------------------------

    async def _cached_listing(
        self, operation: str, item: ItemQuery, report: CallReport | None
    ) -> Folder | None:
        report = report if report is not None else CallReport(operation)
        if self._result_cache is None:
            return await self._aggregate(operation, item, report)
        return await self._result_cache.get_or_add(
            f"{operation}:{item.site.value}:{item.site_id}",
            lambda: self._aggregate(operation, item, report),
            max_age=self._result_max_age,
        )

    async def _aggregate(
        self, operation: str, item: ItemQuery, report: CallReport
    ) -> Folder | None:
        providers = self._providers(operation)
        semaphore = asyncio.Semaphore(self._max_concurrent)

        roots = await asyncio.gather(
            *(
                self._call(
                    adapter,
                    operation,
                    lambda a=adapter: getattr(a, operation)(item),
                    semaphore,
                    report,
                )
                for adapter in providers
            )
        )

        if not providers or all(
            report.outcomes.get(a.site.value) is Outcome.UNSUPPORTED for a in providers
        ):
            raise UnsupportedOperationError(ANY_SITE.value, operation)

        found = [root for root in roots if root is not None]
        if not found:
            log.info(f"{operation}_not_found", item=item.site_id)
            return None

        children = await self._merge_children(found)
        if operation == "get_torrents_root":
            children.sort(
                key=lambda n: (n.seeds or 0) if isinstance(n, TorrentFolder) else -1,
                reverse=True,
            )
            folder_type = FolderType.ROOT
            prefix = "torrents"
        else:
            folder_type = FolderType.TRAILERS
            prefix = "trailers"

        log.info(
            f"{operation}_aggregated",
            item=item.site_id,
            providers=len(found),
            nodes=len(children),
        )
        return Folder.of(
            children,
            site=ANY_SITE,
            id=f"{prefix}_{item.site.value}_{item.site_id}",
            title=item.title,
            folder_type=folder_type,
            position_behavior=PositionBehavior.AVERAGE,
        )

    async def _merge_children(self, roots: list[Folder]) -> list[TreeNode]:
        seen: set[str] = set()
        merged: list[TreeNode] = []
        for root in roots:
            for node in await root.load_children():
                key = normalized_link_key(node)
                if key in seen:
                    continue
                seen.add(key)
                merged.append(node)
        return merged

    # ------------------------------------------------------------------
    # Isolation
    # ------------------------------------------------------------------

    async def _call(
        self,
        adapter: SiteAdapterPort,
        operation: str,
        invoke: Callable[[], Awaitable[T | None]],
        semaphore: asyncio.Semaphore,
        report: CallReport,
    ) -> T | None:
        """Run one adapter call; any failure becomes absence."""
        name = adapter.site.value
        if self._breaker is not None and not self._breaker.allow(name):
            report.outcomes[name] = Outcome.SKIPPED
            log.debug("adapter_circuit_open", site=name, operation=operation)
            return None

        async with semaphore:
            try:
                result = await invoke()
            except UnsupportedOperationError:
                report.outcomes[name] = Outcome.UNSUPPORTED
                if self._breaker is not None:
                    self._breaker.release(name)
                log.debug("adapter_unsupported", site=name, operation=operation)
                return None
            except asyncio.CancelledError:
                if self._breaker is not None:
                    self._breaker.release(name)
                raise
            except Exception:  # noqa: BLE001
                report.outcomes[name] = Outcome.FAILED
                if self._breaker is not None:
                    self._breaker.record_failure(name)
                log.exception("adapter_failed", site=name, operation=operation)
                return None

        if self._breaker is not None:
            self._breaker.record_success(name)
        report.outcomes[name] = Outcome.ABSENT if result is None else Outcome.FOUND
        return result

    async def _with_timeout(
        self,
        coro: Awaitable[T | None],
        operation: str,
        timeout: float | None,
        **context: Any,
    ) -> T | None:
        timeout = timeout if timeout is not None else self._default_timeout
        if timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError:
            log.warning(f"{operation}_timeout", timeout=timeout, **context)
            return None
