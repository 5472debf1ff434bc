"""Tests for quality label ranking."""

from __future__ import annotations

import pytest

from mediasource.domain.entities.quality import (
    QUALITY_ANY,
    QUALITY_UNKNOWN,
    is_hd,
    normalize_quality,
    quality_value,
)


class TestQualityValue:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("1080p", 1080),
            ("720", 720),
            ("4K UHD", 2160),
            ("2K", 1081),
            ("FullHD 1080", 1080),
            ("HD", 720),
            ("SD", 480),
        ],
    )
    def test_recognised_labels(self, label: str, expected: int) -> None:
        assert quality_value(label) == expected

    def test_empty_is_any(self) -> None:
        assert quality_value(None) == QUALITY_ANY
        assert quality_value("") == QUALITY_ANY

    def test_garbage_is_unknown(self) -> None:
        assert quality_value("Original") == QUALITY_UNKNOWN


class TestNormalizeQuality:
    def test_numeric_gets_suffix(self) -> None:
        assert normalize_quality(" 480 ") == "480p"
        assert normalize_quality("0720p") == "720p"

    def test_text_kept_trimmed(self) -> None:
        assert normalize_quality(" HD ") == "HD"

    def test_blank_is_none(self) -> None:
        assert normalize_quality("  ") is None
        assert normalize_quality(None) is None


def test_is_hd() -> None:
    assert is_hd("720p")
    assert not is_hd("480p")
