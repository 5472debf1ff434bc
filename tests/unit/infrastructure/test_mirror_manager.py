"""Tests for MirrorManager probing, persistence and state transitions."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import pytest
import respx

from mediasource.domain.entities.site import Site
from mediasource.domain.ports.setting_store import SettingStrategy
from mediasource.infrastructure.mirrors import MirrorManager, MirrorState, ProbeStrategy
from mediasource.infrastructure.mirrors.mirror_manager import MIRRORS_CONTAINER

SITE = Site("example", "Example")
A = "https://a.example"
B = "https://b.example"
C = "https://c.example"


class FakeSettings:
    """In-memory settings store that yields to the loop on every read."""

    def __init__(self, delay: float = 0.0) -> None:
        self.values: dict[tuple[str, str, SettingStrategy], Any] = {}
        self.delay = delay

    async def get_setting(
        self,
        container: str,
        key: str,
        default: Any = None,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> Any:
        await asyncio.sleep(self.delay)
        return self.values.get((container, key, strategy), default)

    async def set_setting(
        self,
        container: str,
        key: str,
        value: Any,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> None:
        self.values[(container, key, strategy)] = value

    async def delete_setting(
        self,
        container: str,
        key: str,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> bool:
        return self.values.pop((container, key, strategy), None) is not None


def _manager(
    http_client: httpx.AsyncClient,
    mirrors: list[str],
    settings: FakeSettings | None = None,
    **kwargs: Any,
) -> MirrorManager:
    return MirrorManager(SITE, mirrors, http_client=http_client, settings=settings, **kwargs)


class TestMatches:
    def test_root_domain_of_mirrors_and_aliases(self, http_client: httpx.AsyncClient) -> None:
        manager = _manager(http_client, [A], aliases=["cdn-host.net"])
        assert manager.matches("https://www.a.example/page")
        assert manager.matches("https://x.cdn-host.net/v.mp4")
        assert not manager.matches("https://other.example/page")
        assert not manager.matches("")

    def test_requires_a_mirror(self, http_client: httpx.AsyncClient) -> None:
        with pytest.raises(ValueError):
            _manager(http_client, [])

    def test_mirrors_normalised(self, http_client: httpx.AsyncClient) -> None:
        manager = _manager(http_client, ["a.example/", B])
        assert manager.mirrors == [A, B]
        assert manager.primary == A


class TestProbing:
    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_single_mirror_needs_no_probe(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        route = respx_mock.get(f"{A}/").respond(200)
        manager = _manager(http_client, [A])
        assert await manager.get_mirror() == A
        assert manager.state is MirrorState.AVAILABLE
        assert not route.called

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_first_reachable_mirror_wins_and_is_persisted(
        self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        respx_mock.get(f"{A}/").respond(503)
        respx_mock.get(f"{B}/").respond(200)
        settings = FakeSettings()
        manager = _manager(http_client, [A, B], settings)

        assert await manager.get_mirror() == B
        assert manager.current == B
        assert manager.last_probe_result is True
        saved = settings.values[(MIRRORS_CONTAINER, SITE.value, SettingStrategy.LOCAL)]
        assert saved["mirror"] == B

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_persisted_mirror_probed_first(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        route_a = respx_mock.get(f"{A}/").respond(200)
        respx_mock.get(f"{B}/").respond(200)
        settings = FakeSettings()
        await settings.set_setting(MIRRORS_CONTAINER, SITE.value, {"mirror": B, "saved_at": time.time()})

        manager = _manager(http_client, [A, B], settings)
        assert await manager.get_mirror() == B
        assert not route_a.called

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_expired_persisted_mirror_ignored(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(200)
        respx_mock.get(f"{B}/").respond(200)
        settings = FakeSettings()
        await settings.set_setting(MIRRORS_CONTAINER, SITE.value, {"mirror": B, "saved_at": 0})

        manager = _manager(http_client, [A, B], settings, cache_ttl=60)
        assert await manager.get_mirror() == A

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_repeated_checks_keep_the_same_mirror(
        self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        respx_mock.get(f"{A}/").respond(503)
        route_b = respx_mock.get(f"{B}/").respond(200)
        manager = _manager(http_client, [A, B], FakeSettings())

        assert await manager.check_availability() is True
        first = manager.current
        assert await manager.check_availability() is True
        assert manager.current == first == B
        assert manager.state is MirrorState.AVAILABLE
        # the second check re-probes the remembered mirror only
        assert route_b.call_count == 2

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_unavailable_falls_back_to_primary(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").mock(side_effect=httpx.ConnectTimeout("slow"))
        respx_mock.get(f"{B}/").mock(side_effect=httpx.ConnectError("refused"))
        manager = _manager(http_client, [A, B])

        assert await manager.check_availability() is False
        assert manager.state is MirrorState.UNAVAILABLE
        assert manager.current is None
        assert await manager.get_mirror() == A

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_parallel_strategy(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(500)
        respx_mock.get(f"{B}/").respond(404)
        respx_mock.get(f"{C}/").respond(200)
        manager = _manager(http_client, [A, B, C], strategy=ProbeStrategy.PARALLEL)
        assert await manager.get_mirror() == C

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_validator_reads_body(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(200, text="parked domain")
        respx_mock.get(f"{B}/").respond(200, text="<div id='player'></div>")
        manager = _manager(http_client, [A, B], validator=lambda r: "player" in r.text)
        assert await manager.get_mirror() == B

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_health_check_path(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        route = respx_mock.get(f"{A}/api/ping").respond(200)
        respx_mock.get(f"{B}/api/ping").respond(200)
        manager = _manager(http_client, [A, B], health_check_path="/api/ping")
        assert await manager.get_mirror() == A
        assert route.called

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_mirror_finder_last_resort(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(500)
        respx_mock.get(f"{C}/").respond(200)

        async def finder(previous: str) -> str | None:
            assert previous == A
            return "c.example"

        manager = _manager(http_client, [A], mirror_finder=finder)
        assert await manager.get_mirror() == C


class TestRedirects:
    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_same_root_redirect_becomes_mirror(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(301, headers={"Location": "https://www.a.example/home"})
        respx_mock.get("https://www.a.example/home").respond(200)
        manager = _manager(http_client, [A, B])
        assert await manager.get_mirror() == "https://www.a.example"

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_foreign_redirect_rejected(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(302, headers={"Location": "https://parking.example.net/"})
        respx_mock.get(f"{B}/").respond(200)
        manager = _manager(http_client, [A, B])
        assert await manager.get_mirror() == B


class TestConcurrency:
    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_concurrent_checks_share_one_probe(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        route_a = respx_mock.get(f"{A}/").respond(200)
        respx_mock.get(f"{B}/").respond(200)
        manager = _manager(http_client, [A, B], FakeSettings(delay=0.01))

        results = await asyncio.gather(*(manager.check_availability() for _ in range(3)))
        assert results == [True, True, True]
        assert route_a.call_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_restores_state(self, http_client: httpx.AsyncClient) -> None:
        manager = _manager(http_client, [A, B], FakeSettings(delay=5))
        task = asyncio.create_task(manager.check_availability())
        await asyncio.sleep(0.01)
        assert manager.state is MirrorState.PROBING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert manager.state is MirrorState.UNPROBED


class TestUserMirror:
    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_user_mirror_skips_probing(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        route = respx_mock.get(f"{A}/").respond(200)
        manager = _manager(http_client, [A, B], FakeSettings())
        await manager.set_user_mirror("https://mine.a.example/")

        assert await manager.get_mirror() == "https://mine.a.example"
        assert not route.called

    @pytest.mark.asyncio
    async def test_user_mirror_must_be_absolute(self, http_client: httpx.AsyncClient) -> None:
        manager = _manager(http_client, [A], FakeSettings())
        with pytest.raises(ValueError):
            await manager.set_user_mirror("mine.example")

    @pytest.mark.asyncio
    async def test_user_mirror_needs_settings(self, http_client: httpx.AsyncClient) -> None:
        manager = _manager(http_client, [A])
        with pytest.raises(RuntimeError):
            await manager.set_user_mirror(B)

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_invalidate_forgets_persisted_mirror(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(200)
        settings = FakeSettings()
        manager = _manager(http_client, [A, B], settings)
        await manager.get_mirror()

        await manager.invalidate()
        assert manager.state is MirrorState.UNPROBED
        assert (MIRRORS_CONTAINER, SITE.value, SettingStrategy.LOCAL) not in settings.values

    @pytest.mark.asyncio
    @pytest.mark.respx(assert_all_called=False)
    async def test_invalidated_mirror_probed_last(self, respx_mock: respx.MockRouter, http_client: httpx.AsyncClient) -> None:
        respx_mock.get(f"{A}/").respond(200)
        respx_mock.get(f"{B}/").respond(200)
        manager = _manager(http_client, [A, B], FakeSettings())
        assert await manager.get_mirror() == A

        await manager.invalidate()
        assert await manager.get_mirror() == B

        # both failed once: configured order again
        await manager.invalidate()
        assert await manager.get_mirror() == A
