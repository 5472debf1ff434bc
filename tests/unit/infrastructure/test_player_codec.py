"""Tests for PlayerJS file value decoding."""

from __future__ import annotations

import base64

from mediasource.infrastructure.extraction.player_codec import (
    PlayerCodecKeys,
    codec_from_config,
    decode_file_value,
)

PLAIN = "[720p]https://cdn.example/720.mp4"


def _hex_encode(text: str) -> str:
    return "#" + "".join(f"{ord(ch):03x}" for ch in text)


def _keyed_encode(text: str, junk: str, separator: str = "//") -> str:
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")
    middle = len(encoded) // 2
    return "#2" + encoded[:middle] + separator + junk + encoded[middle:]


class TestDecodeFileValue:
    def test_plain_value_passes_through(self) -> None:
        assert decode_file_value(PLAIN) == PLAIN
        assert decode_file_value(None) is None

    def test_marker_three_passes_through(self) -> None:
        assert decode_file_value("#3abc") == "#3abc"

    def test_hex_code_points(self) -> None:
        encoded = _hex_encode("https://a")
        assert encoded.startswith("#0")
        assert decode_file_value(encoded) == "https://a"

    def test_hex_with_dot_is_rejected(self) -> None:
        assert decode_file_value("#068.74") is None

    def test_keyed_base64(self) -> None:
        codec = PlayerCodecKeys(("xyzzy",))
        assert decode_file_value(_keyed_encode(PLAIN, "xyzzy"), codec) == PLAIN

    def test_keyed_without_keys_fails(self) -> None:
        assert decode_file_value(_keyed_encode(PLAIN, "xyzzy")) is None

    def test_unknown_marker(self) -> None:
        assert decode_file_value("#9abc") is None


class TestCodecFromConfig:
    def test_builds_keys(self) -> None:
        codec = codec_from_config({"keys": ["a", "b"], "separator": "@@"})
        assert codec == PlayerCodecKeys(("a", "b"), "@@")

    def test_default_separator(self) -> None:
        codec = codec_from_config({"keys": ["a"]})
        assert codec is not None and codec.separator == "//"

    def test_no_keys_is_none(self) -> None:
        assert codec_from_config(None) is None
        assert codec_from_config({"keys": []}) is None
        assert codec_from_config({"keys": "abc"}) is None
