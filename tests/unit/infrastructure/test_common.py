"""Tests for URL, id and conversion helpers."""

from __future__ import annotations

import pytest

from mediasource.infrastructure.common.converters import (
    first_int,
    parse_size_to_bytes,
    to_int,
)
from mediasource.infrastructure.common.ids import deterministic_hash, hashed_id
from mediasource.infrastructure.common.urls import (
    host_of,
    origin_of,
    root_domain,
    same_root_domain,
    to_absolute,
)


class TestRootDomain:
    @pytest.mark.parametrize(
        ("uri", "expected"),
        [
            ("https://www.voe.sx/e/1", "voe.sx"),
            ("https://video.sibnet.ru/shell.php?videoid=1", "sibnet.ru"),
            ("https://a.b.amazon.co.uk/x", "amazon.co.uk"),
            ("http://localhost:8080/", "localhost"),
            ("ashdi.vip/vod/1", "ashdi.vip"),
            ("", ""),
        ],
    )
    def test_root_domain(self, uri: str, expected: str) -> None:
        assert root_domain(uri) == expected

    def test_same_root_domain(self) -> None:
        assert same_root_domain("https://www.fsst.online/embed/1", "https://fsst.online")
        assert not same_root_domain("https://fsst.online", "https://csst.online")
        assert not same_root_domain("", "")

    def test_host_of_unparsable(self) -> None:
        assert host_of("http://[::1") == ""


class TestToAbsolute:
    def test_relative_against_base(self) -> None:
        assert to_absolute("../b.m3u8", "https://cdn.example/x/y/a.m3u8") == (
            "https://cdn.example/x/b.m3u8"
        )

    def test_protocol_relative_without_base(self) -> None:
        assert to_absolute("//cdn.example/a.mp4") == "https://cdn.example/a.mp4"

    def test_protocol_relative_inherits_base_scheme(self) -> None:
        assert to_absolute("//cdn.example/a.mp4", "http://site/") == "http://cdn.example/a.mp4"

    def test_rejects_non_http(self) -> None:
        assert to_absolute("javascript:void(0)") is None
        assert to_absolute("/relative") is None
        assert to_absolute("  ") is None
        assert to_absolute(None) is None


class TestOriginOf:
    def test_origin_of(self) -> None:
        assert origin_of("https://host.example:8443/a/b?c") == "https://host.example:8443"


class TestIds:
    def test_hash_is_deterministic(self) -> None:
        assert deterministic_hash("playlist") == deterministic_hash("playlist")
        assert deterministic_hash("a") != deterministic_hash("b")

    def test_hash_is_unsigned_32_bit(self) -> None:
        for text in ("", "x", "a much longer playlist string" * 10):
            assert 0 <= deterministic_hash(text) <= 0xFFFFFFFF

    def test_hashed_id_prefix(self) -> None:
        assert hashed_id("tl", "x") == f"tl{deterministic_hash('x')}"


class TestConverters:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1,234", 1234), ("1 234", 1234), (" 12 ", 12), (7, 7), (3.9, 3), ("", None), ("n/a", None), (None, None)],
    )
    def test_to_int(self, raw: object, expected: int | None) -> None:
        assert to_int(raw) == expected  # type: ignore[arg-type]

    def test_to_int_rejects_bool(self) -> None:
        assert to_int(True) is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("4.5 GB", int(4.5 * 1024**3)),
            ("700 MiB", 700 * 1024**2),
            ("1,5 GB", int(1.5 * 1024**3)),
            ("2048", 2048),
            (512, 512),
            ("", None),
            ("huge", None),
            (None, None),
        ],
    )
    def test_parse_size_to_bytes(self, raw: object, expected: int | None) -> None:
        assert parse_size_to_bytes(raw) == expected  # type: ignore[arg-type]

    def test_first_int(self) -> None:
        assert first_int("Season 3") == 3
        assert first_int("no digits") is None
        assert first_int(None) is None
