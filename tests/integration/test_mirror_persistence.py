"""Integration tests: mirror probing persisted through the real diskcache store."""

from __future__ import annotations

import httpx
import pytest
import respx

from mediasource.domain.entities.site import Site
from mediasource.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from mediasource.infrastructure.mirrors import MirrorManager
from mediasource.infrastructure.persistence import CacheSettingStore

pytestmark = pytest.mark.integration

SITE = Site("animedia", "Animedia")
MIRRORS = ["https://online.animedia.tv", "https://amedia.online"]


class TestMirrorPersistence:
    @pytest.mark.asyncio
    async def test_working_mirror_survives_restart(
        self, diskcache: DiskcacheAdapter, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://online.animedia.tv/").respond(502)
        second = respx_mock.get("https://amedia.online/").respond(200)
        settings = CacheSettingStore(diskcache)

        async with httpx.AsyncClient() as client:
            first_run = MirrorManager(SITE, MIRRORS, http_client=client, settings=settings)
            assert await first_run.get_mirror() == "https://amedia.online"

            restarted = MirrorManager(SITE, MIRRORS, http_client=client, settings=settings)
            assert await restarted.get_mirror() == "https://amedia.online"

        # the restarted manager only re-checks the remembered mirror
        assert second.call_count == 2

    @pytest.mark.asyncio
    async def test_user_mirror_survives_restart(
        self, diskcache: DiskcacheAdapter, respx_mock: respx.MockRouter
    ) -> None:
        settings = CacheSettingStore(diskcache)
        async with httpx.AsyncClient() as client:
            manager = MirrorManager(SITE, MIRRORS, http_client=client, settings=settings)
            await manager.set_user_mirror("https://my.animedia.tv")

            restarted = MirrorManager(SITE, MIRRORS, http_client=client, settings=settings)
            assert await restarted.get_mirror() == "https://my.animedia.tv"
