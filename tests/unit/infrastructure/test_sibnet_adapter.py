"""Tests for SibnetAdapter."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from mediasource.application.use_cases import ResolutionOrchestrator
from mediasource.infrastructure.adapters.sibnet import SibnetAdapter
from mediasource.infrastructure.extraction.headers import MOBILE_USER_AGENT

SHELL_URL = "https://video.sibnet.ru/shell.php?videoid=4321"
STREAM_URL = "https://video.sibnet.ru/v/0123456789abcdef/4321.mp4"

PAGE = """<html><body><script>
var player = videojs('video_html5_wrapper');
player.src([{src: "/v/0123456789abcdef/4321.mp4", type: "video/mp4"}]);
</script></body></html>"""


@pytest.fixture()
def adapter(http_client: httpx.AsyncClient) -> SibnetAdapter:
    return SibnetAdapter(http_client)


class TestSibnetAdapter:
    def test_can_open(self, adapter: SibnetAdapter) -> None:
        assert adapter.can_open(SHELL_URL)
        assert not adapter.can_open("https://online.animedia.tv/embed/1")

    @pytest.mark.asyncio
    @respx.mock
    async def test_resolves_relative_source(self, adapter: SibnetAdapter) -> None:
        route = respx.get(SHELL_URL).respond(200, text=PAGE)

        file = await adapter.resolve(SHELL_URL)

        assert file is not None
        assert file.id == "sbnet4321"
        assert file.frame_link == SHELL_URL
        assert [v.uri for v in file.videos] == [STREAM_URL]
        assert file.videos[0].headers.to_dict() == {"Referer": SHELL_URL}
        assert route.calls.last.request.headers["User-Agent"] == MOBILE_USER_AGENT

    @pytest.mark.asyncio
    @respx.mock
    async def test_id_from_video_page_path(self, adapter: SibnetAdapter) -> None:
        url = "https://video.sibnet.ru/video4321-Some_title/"
        respx.get(url).respond(200, text=PAGE)

        file = await adapter.resolve(url)

        assert file is not None
        assert file.id == "sbnet4321"

    @pytest.mark.asyncio
    @respx.mock
    async def test_duplicate_links_collapse(self, adapter: SibnetAdapter) -> None:
        page = PAGE + f"<script>var cfg = {{'file': '{STREAM_URL}'}};</script>"
        respx.get(SHELL_URL).respond(200, text=page)

        file = await adapter.resolve(SHELL_URL)

        assert file is not None
        assert len(file.videos) == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_without_stream(self, adapter: SibnetAdapter) -> None:
        respx.get(SHELL_URL).respond(200, text="<html>Видео удалено</html>")
        assert await adapter.resolve(SHELL_URL) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_absent(self, adapter: SibnetAdapter) -> None:
        respx.get(SHELL_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        assert await adapter.resolve(SHELL_URL) is None


class TestCancellation:
    @pytest.mark.asyncio
    @respx.mock
    async def test_cancelled_resolve_unwinds_request(self, adapter: SibnetAdapter) -> None:
        started = asyncio.Event()
        unwound = asyncio.Event()

        async def slow_page(request: httpx.Request) -> httpx.Response:
            started.set()
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                unwound.set()
                raise
            return httpx.Response(200, text=PAGE)

        respx.get(SHELL_URL).mock(side_effect=slow_page)
        orchestrator = ResolutionOrchestrator([adapter])

        task = asyncio.create_task(orchestrator.resolve(SHELL_URL))
        await asyncio.wait_for(started.wait(), timeout=1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert unwound.is_set()
        assert [t for t in asyncio.all_tasks() if t is not asyncio.current_task()] == []
