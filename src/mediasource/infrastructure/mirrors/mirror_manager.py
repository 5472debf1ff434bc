"""Per-site mirror selection and availability probing.

Each adapter composes one :class:`MirrorManager`.  The manager keeps an
ordered list of candidate base URLs, probes them with a lightweight request
and remembers the winner both in memory and in the settings store, so the
next process start tries the last working mirror first.

State machine::

    UNPROBED ──check──▶ PROBING ──▶ AVAILABLE(mirror)
                                 └─▶ UNAVAILABLE

``UNAVAILABLE`` is not fatal: :meth:`MirrorManager.get_mirror` then hands
out the primary mirror and the adapter's real request fails on its own.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from urllib.parse import urljoin

import httpx
import structlog

from mediasource.domain.entities.site import Site
from mediasource.domain.ports.setting_store import SettingStorePort, SettingStrategy
from mediasource.infrastructure.common.urls import (
    origin_of,
    root_domain,
    same_root_domain,
)

log = structlog.get_logger(__name__)

MIRRORS_CONTAINER = "mirrors"

DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_CACHE_TTL = 7 * 24 * 3600
PARALLEL_BATCH_SIZE = 4
_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

ResponseValidator = Callable[[httpx.Response], bool]
MirrorFinder = Callable[[str], Awaitable[str | None]]


class MirrorState(str, Enum):
    UNPROBED = "unprobed"
    PROBING = "probing"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class ProbeStrategy(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def _normalize_mirror(mirror: str) -> str:
    mirror = mirror.strip().rstrip("/")
    if "://" not in mirror:
        mirror = f"https://{mirror}"
    return mirror


class MirrorManager:
    """Mirror state for one site.

    Args:
        site: Owning site.
        mirrors: Candidate base URLs, preferred first.
        http_client: Shared client used for probes.
        settings: Store for the last working mirror (optional).
        aliases: Extra hosts the adapter accepts without probing them
            (third-party player hosts, CDN domains).
        health_check_path: Relative path probed instead of the root.
        validator: Extra check on the probe response; the body is read
            before it is called.
        strategy: Probe candidates one by one or in batches of four.
        mirror_finder: Last-resort lookup of a new mirror, given the
            previous one.
        probe_timeout: Per-probe timeout in seconds.
        cache_ttl: Age after which a persisted mirror is ignored.
    """

    def __init__(
        self,
        site: Site,
        mirrors: Sequence[str],
        *,
        http_client: httpx.AsyncClient,
        settings: SettingStorePort | None = None,
        aliases: Sequence[str] = (),
        health_check_path: str | None = None,
        validator: ResponseValidator | None = None,
        strategy: ProbeStrategy = ProbeStrategy.SEQUENTIAL,
        mirror_finder: MirrorFinder | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        cache_ttl: float = DEFAULT_CACHE_TTL,
    ) -> None:
        if not mirrors:
            raise ValueError(f"{site}: at least one mirror is required")

        self.site = site
        self._mirrors = [_normalize_mirror(m) for m in mirrors]
        self._client = http_client
        self._settings = settings
        self._aliases = frozenset(root_domain(a) for a in aliases)
        self._health_check_path = health_check_path
        self._validator = validator
        self._strategy = strategy
        self._mirror_finder = mirror_finder
        self._probe_timeout = probe_timeout
        self._cache_ttl = cache_ttl

        self._lock = asyncio.Lock()
        self._state = MirrorState.UNPROBED
        self._mirror: str | None = None
        self._failed: set[str] = set()
        self._probe_generation = 0
        self.last_probe_result: bool | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def mirrors(self) -> list[str]:
        return list(self._mirrors)

    @property
    def primary(self) -> str:
        return self._mirrors[0]

    @property
    def state(self) -> MirrorState:
        return self._state

    @property
    def current(self) -> str | None:
        """Confirmed mirror, if any."""
        return self._mirror if self._state is MirrorState.AVAILABLE else None

    def matches(self, uri: str) -> bool:
        """Root-domain match against mirrors, the confirmed mirror and aliases."""
        root = root_domain(uri)
        if not root:
            return False
        if root in self._aliases:
            return True
        if self._mirror is not None and root == root_domain(self._mirror):
            return True
        return any(root == root_domain(m) for m in self._mirrors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_mirror(self) -> str:
        """Confirmed mirror; probes first when none is confirmed yet."""
        if self._state is MirrorState.AVAILABLE and self._mirror is not None:
            return self._mirror

        await self.check_availability()
        if self._mirror is not None:
            return self._mirror
        return self.primary

    async def check_availability(self) -> bool:
        """Probe candidates and remember the first reachable one.

        At most one probe runs per instance; callers arriving while a probe
        is in flight wait for it and reuse its outcome.
        """
        generation = self._probe_generation
        async with self._lock:
            if self._probe_generation != generation:
                return self._state is MirrorState.AVAILABLE

            previous = self._state
            self._state = MirrorState.PROBING
            try:
                found = await self._find_mirror()
            except asyncio.CancelledError:
                self._state = previous
                log.debug("mirror_probe_cancelled", site=str(self.site))
                raise

            self._probe_generation += 1
            self.last_probe_result = found is not None
            if found is None:
                self._mirror = None
                self._state = MirrorState.UNAVAILABLE
                log.warning(
                    "mirror_unavailable",
                    site=str(self.site),
                    fallback=self.primary,
                )
                return False

            self._mirror = found
            self._failed.discard(found)
            self._state = MirrorState.AVAILABLE
            await self._persist(found)
            log.info("mirror_selected", site=str(self.site), mirror=found)
            return True

    async def get_user_mirror(self) -> str | None:
        if self._settings is None:
            return None
        value = await self._settings.get_setting(
            MIRRORS_CONTAINER, f"{self.site.value}:user", None, SettingStrategy.LOCAL
        )
        return value if isinstance(value, str) and value else None

    async def set_user_mirror(self, mirror: str | None) -> None:
        """Pin a user-chosen mirror (``None`` removes the override)."""
        if self._settings is None:
            raise RuntimeError(f"{self.site}: no settings store to keep a user mirror")
        key = f"{self.site.value}:user"
        if mirror is None:
            await self._settings.delete_setting(MIRRORS_CONTAINER, key)
        else:
            if "://" not in mirror:
                raise ValueError("User mirror must be an absolute URL")
            await self._settings.set_setting(
                MIRRORS_CONTAINER, key, _normalize_mirror(mirror)
            )
        self.reset()

    def reset(self) -> None:
        """Forget the confirmed mirror (the persisted one is kept)."""
        self._mirror = None
        self._state = MirrorState.UNPROBED

    async def invalidate(self) -> None:
        """Forget the confirmed and the persisted mirror.

        Called when a real request to the confirmed mirror fails; that mirror
        is probed last on the next check.
        """
        if self._mirror is not None:
            self._failed.add(self._mirror)
            log.info("mirror_invalidated", site=str(self.site), mirror=self._mirror)
        self.reset()
        if self._settings is not None:
            await self._settings.delete_setting(MIRRORS_CONTAINER, self.site.value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _find_mirror(self) -> str | None:
        user_mirror = await self.get_user_mirror()
        if user_mirror is not None:
            return user_mirror

        # nothing to choose from and nothing to verify
        if (
            len(self._mirrors) == 1
            and self._health_check_path is None
            and self._validator is None
            and self._mirror_finder is None
        ):
            return self.primary

        cached = await self._load_cached()
        if cached is not None:
            reached = await self._probe(cached)
            if reached is not None:
                return reached

        # mirrors that failed real requests go last
        candidates = sorted(
            (m for m in self._mirrors if m != cached), key=lambda m: m in self._failed
        )
        if self._strategy is ProbeStrategy.PARALLEL:
            found = await self._probe_parallel(candidates)
        else:
            found = await self._probe_sequential(candidates)
        if found is not None:
            return found

        if self._mirror_finder is not None:
            discovered = await self._mirror_finder(cached or self.primary)
            if discovered:
                return await self._probe(_normalize_mirror(discovered))
        return None

    async def _probe_sequential(self, candidates: list[str]) -> str | None:
        for mirror in candidates:
            reached = await self._probe(mirror)
            if reached is not None:
                return reached
        return None

    async def _probe_parallel(self, candidates: list[str]) -> str | None:
        for start in range(0, len(candidates), PARALLEL_BATCH_SIZE):
            batch = candidates[start : start + PARALLEL_BATCH_SIZE]
            tasks = [asyncio.create_task(self._probe(m)) for m in batch]
            try:
                pending: set[asyncio.Task[str | None]] = set(tasks)
                while pending:
                    done, pending = await asyncio.wait(
                        pending, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in done:
                        reached = task.result()
                        if reached is not None:
                            return reached
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
        return None

    async def _probe(self, mirror: str) -> str | None:
        """Reachable base URL for *mirror* or ``None``.

        Follows at most one redirect, and only within the same root domain;
        the redirect target's origin becomes the mirror.
        """
        url = mirror + "/"
        if self._health_check_path:
            url = urljoin(url, self._health_check_path.lstrip("/"))

        try:
            async with self._client.stream(
                "GET", url, follow_redirects=False, timeout=self._probe_timeout
            ) as resp:
                if resp.status_code in _REDIRECT_STATUSES:
                    location = resp.headers.get("location")
                    if not location:
                        return None
                    target = urljoin(url, location)
                    if not same_root_domain(target, mirror):
                        log.debug(
                            "mirror_redirect_foreign",
                            site=str(self.site),
                            mirror=mirror,
                            location=target,
                        )
                        return None
                    return await self._probe_target(target)

                if await self._accept(resp):
                    return mirror
        except httpx.TimeoutException:
            log.debug("mirror_probe_timeout", site=str(self.site), mirror=mirror)
        except httpx.HTTPError as exc:
            log.debug(
                "mirror_probe_http_error",
                site=str(self.site),
                mirror=mirror,
                error=str(exc),
            )
        return None

    async def _probe_target(self, target: str) -> str | None:
        try:
            async with self._client.stream(
                "GET", target, follow_redirects=False, timeout=self._probe_timeout
            ) as resp:
                if await self._accept(resp):
                    return origin_of(target)
        except httpx.TimeoutException:
            log.debug("mirror_probe_timeout", site=str(self.site), mirror=target)
        except httpx.HTTPError as exc:
            log.debug(
                "mirror_probe_http_error",
                site=str(self.site),
                mirror=target,
                error=str(exc),
            )
        return None

    async def _accept(self, resp: httpx.Response) -> bool:
        if resp.status_code >= 400 or resp.status_code in _REDIRECT_STATUSES:
            return False
        if self._validator is None:
            return True
        await resp.aread()
        return self._validator(resp)

    async def _load_cached(self) -> str | None:
        if self._settings is None:
            return None
        raw = await self._settings.get_setting(MIRRORS_CONTAINER, self.site.value)
        if not isinstance(raw, dict):
            return None

        mirror = raw.get("mirror")
        saved_at = raw.get("saved_at")
        if not isinstance(mirror, str) or not isinstance(saved_at, (int, float)):
            return None
        if time.time() - saved_at > self._cache_ttl:
            log.debug("mirror_cache_expired", site=str(self.site), mirror=mirror)
            return None
        if not any(same_root_domain(mirror, m) for m in self._mirrors):
            return None
        return mirror

    async def _persist(self, mirror: str) -> None:
        if self._settings is None:
            return
        await self._settings.set_setting(
            MIRRORS_CONTAINER,
            self.site.value,
            {"mirror": mirror, "saved_at": time.time()},
        )
