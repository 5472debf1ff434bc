"""Composition root: builds the engine from an :class:`AppConfig`."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from mediasource.application.use_cases.resolution import ResolutionOrchestrator
from mediasource.domain.entities.tree import File
from mediasource.domain.exceptions import ConfigurationError
from mediasource.domain.ports.cache import CachePort
from mediasource.domain.ports.setting_store import SettingStorePort
from mediasource.infrastructure.adapters import (
    BUILTIN_ADAPTERS,
    HttpxAdapterBase,
    PlayerJsAdapter,
    TmdbTrailersAdapter,
)
from mediasource.infrastructure.adapters.playerjs import hosts_from_config
from mediasource.infrastructure.adapters.tmdb_trailers import TrailerResolver
from mediasource.infrastructure.cache.cache_factory import create_cache
from mediasource.infrastructure.cache.result_cache import ResultCache
from mediasource.infrastructure.circuit_breaker import AdapterCircuitBreaker
from mediasource.infrastructure.config.schema import AppConfig
from mediasource.infrastructure.extraction.headers import DEFAULT_USER_AGENT
from mediasource.infrastructure.fallback import DirectLinkResolver
from mediasource.infrastructure.persistence.setting_store import CacheSettingStore

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Engine:
    """Everything ``open_engine`` wires together."""

    orchestrator: ResolutionOrchestrator
    adapters: tuple[HttpxAdapterBase, ...]
    http_client: httpx.AsyncClient
    cache: CachePort
    settings: SettingStorePort
    result_cache: ResultCache
    breaker: AdapterCircuitBreaker


def build_adapters(
    config: AppConfig,
    *,
    http_client: httpx.AsyncClient,
    settings: SettingStorePort | None = None,
    result_cache: ResultCache | None = None,
    resolve_trailer: TrailerResolver | None = None,
) -> list[HttpxAdapterBase]:
    """Instantiate the enabled built-in adapters.

    Raises:
        ConfigurationError: an enabled name matches no built-in adapter.
    """
    enabled = config.adapters.enabled
    if enabled is not None:
        unknown = sorted(set(enabled) - set(BUILTIN_ADAPTERS))
        if unknown:
            raise ConfigurationError(f"Unknown adapters in adapters.enabled: {unknown}")
    names = list(BUILTIN_ADAPTERS) if enabled is None else list(enabled)

    adapters: list[HttpxAdapterBase] = []
    for name in names:
        cls = BUILTIN_ADAPTERS[name]
        common: dict[str, Any] = {
            "settings": settings,
            "result_cache": result_cache,
            "mirrors": config.mirrors.overrides.get(name),
            "probe_timeout": config.mirrors.probe_timeout_seconds,
            "mirror_cache_ttl": config.mirrors.cache_ttl_seconds,
        }

        if cls is TmdbTrailersAdapter:
            if not config.adapters.tmdb_api_key:
                log.info("adapter_skipped", site=name, reason="no_tmdb_api_key")
                continue
            adapter: HttpxAdapterBase = TmdbTrailersAdapter(
                http_client,
                api_key=config.adapters.tmdb_api_key,
                resolve_trailer=resolve_trailer,
                **common,
            )
        elif cls is PlayerJsAdapter:
            adapter = PlayerJsAdapter(
                http_client,
                hosts=hosts_from_config(config.adapters.player_hosts),
                **common,
            )
        else:
            adapter = cls(http_client, **common)

        adapters.append(adapter)
        log.debug("adapter_built", site=name)

    log.info("adapters_built", count=len(adapters), sites=[a.name for a in adapters])
    return adapters


def build_orchestrator(
    config: AppConfig,
    adapters: Sequence[HttpxAdapterBase],
    *,
    http_client: httpx.AsyncClient,
    breaker: AdapterCircuitBreaker | None = None,
) -> ResolutionOrchestrator:
    resolution = config.resolution
    max_age = resolution.result_max_age_seconds
    return ResolutionOrchestrator(
        adapters,
        granted=resolution.granted_requirements,
        default_timeout=resolution.default_timeout_seconds,
        max_concurrent=resolution.max_concurrent_adapters,
        fallback=DirectLinkResolver(
            http_client,
            timeout=config.http_timeout_seconds,
            user_agent=config.http_user_agent or DEFAULT_USER_AGENT,
        ),
        breaker=breaker,
        # listings hold lazy folders, so they stay in process memory
        result_cache=ResultCache(default_max_age=max_age or None),
        result_max_age=max_age or None,
    )


@asynccontextmanager
async def open_engine(config: AppConfig) -> AsyncIterator[Engine]:
    """Build the engine and release its resources on exit.

    Order matters:
        1. Cache (settings store and result cache sit on it)
        2. HTTP client (shared by every adapter)
        3. Adapters
        4. Orchestrator
    """
    # ========== 1) Cache ==========
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        ttl_seconds=config.cache.ttl_seconds,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    settings = CacheSettingStore(cache)
    result_cache = ResultCache(cache, default_max_age=config.cache.ttl_seconds or None)
    log.info("cache_initialized", backend=config.cache.backend)

    try:
        # ========== 2) HTTP client (shared resource) ==========
        headers = {"User-Agent": config.http_user_agent} if config.http_user_agent else {}
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.http_timeout_seconds),
            headers=headers,
            follow_redirects=config.http_follow_redirects,
        )
        log.info("http_client_initialized")

        try:
            # ========== 3) Adapters ==========
            orchestrator: ResolutionOrchestrator | None = None

            async def resolve_trailer(link: str) -> File | None:
                if orchestrator is None or not orchestrator.can_open(link):
                    return None
                return await orchestrator.resolve(link)

            adapters = build_adapters(
                config,
                http_client=http_client,
                settings=settings,
                result_cache=result_cache,
                resolve_trailer=resolve_trailer,
            )

            # ========== 4) Orchestrator ==========
            breaker = AdapterCircuitBreaker(
                failure_threshold=config.resolution.circuit_breaker_threshold,
                cooldown_seconds=config.resolution.circuit_breaker_cooldown_seconds,
            )
            orchestrator = build_orchestrator(
                config, adapters, http_client=http_client, breaker=breaker
            )
            log.info("engine_startup_complete", adapters=len(adapters))

            yield Engine(
                orchestrator=orchestrator,
                adapters=tuple(adapters),
                http_client=http_client,
                cache=cache,
                settings=settings,
                result_cache=result_cache,
                breaker=breaker,
            )
        finally:
            await http_client.aclose()
            log.info("http_client_closed")
    finally:
        await cache.aclose()
        log.info("cache_closed")
        log.info("engine_shutdown_complete")
