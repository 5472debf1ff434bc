"""Tests for anti-hotlink header assembly."""

from __future__ import annotations

from mediasource.domain.entities.video import Video
from mediasource.infrastructure.extraction.headers import (
    DEFAULT_USER_AGENT,
    MOBILE_USER_AGENT,
    attach_headers,
    stream_headers,
)


class TestStreamHeaders:
    def test_only_given_values(self) -> None:
        headers = stream_headers(referer="https://player.example/e/1")
        assert list(headers) == ["Referer"]

    def test_fixed_order(self) -> None:
        headers = stream_headers(
            user_agent=MOBILE_USER_AGENT,
            referer="https://player.example/e/1",
            origin="https://player.example",
        )
        assert list(headers) == ["Origin", "Referer", "User-Agent"]
        assert headers["user-agent"] == MOBILE_USER_AGENT

    def test_empty(self) -> None:
        assert len(stream_headers(referer="", origin=None)) == 0

    def test_user_agents_differ(self) -> None:
        assert "Mobile" in MOBILE_USER_AGENT
        assert "Mobile" not in DEFAULT_USER_AGENT


class TestAttachHeaders:
    def test_merges_onto_every_video(self) -> None:
        videos = [
            Video("https://cdn.example/720.mp4", "720p", headers={"Referer": "https://old/"}),
            Video("https://cdn.example/480.mp4", "480p"),
        ]
        stamped = attach_headers(videos, {"referer": "https://new/", "Origin": "https://new"})

        assert [v.headers["Referer"] for v in stamped] == ["https://new/", "https://new/"]
        assert all(v.headers["Origin"] == "https://new" for v in stamped)
        # first-seen casing kept
        assert list(stamped[0].headers) == ["Referer", "Origin"]
        # originals untouched
        assert videos[0].headers["Referer"] == "https://old/"

    def test_no_headers_is_identity(self) -> None:
        videos = [Video("https://cdn.example/a.mp4")]
        assert attach_headers(videos, None) == videos
        assert attach_headers(iter(videos), {}) == videos
