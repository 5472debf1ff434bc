"""Parser for player-script playlist strings.

Hosted HTML5 players embed their sources as a compact string such as::

    [360p]{Dub}https://a/360 or https://a/360_2;{Sub}https://a/360s,[720p]https://a/720

``[key]`` opens a quality key, ``{sub}`` opens a sub-key (usually an audio
track or translation) that applies until the next tag, values are separated
by ``,`` (and ``;`` inside sub-key blocks) and alternatives of one value are
joined by the literal ``" or "`` / ``" and "``.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import NamedTuple

from mediasource.domain.entities.video import HeaderMap, Video
from mediasource.infrastructure.common.urls import to_absolute

# file: "..." / 'file': '...' / "file":"..." inside inline JS object literals
_FILE_VALUE_RE = re.compile(
    r"""(?:"|')?file(?:"|')?\s*:\s*(?P<quote>["'])(?P<file>.*?)(?P=quote)""",
    re.DOTALL,
)


class ScriptPair(NamedTuple):
    key: str
    sub_key: str | None
    value: str


class PlayerScriptPairs:
    """Restartable lazy sequence of :class:`ScriptPair`.

    Every ``iter()`` re-scans the input from the start; nothing is cached,
    order is left-to-right and duplicates are kept.
    """

    __slots__ = ("_text",)

    def __init__(self, text: str) -> None:
        self._text = text

    def __iter__(self) -> Iterator[ScriptPair]:
        return _scan(self._text)

    def __repr__(self) -> str:
        return f"PlayerScriptPairs({self._text!r})"


def parse_player_script_pairs(text: str | None) -> PlayerScriptPairs:
    return PlayerScriptPairs(text or "")


def _is_separator_word(text: str, i: int) -> bool:
    """True when ``text[i]`` ends a `` or`` / `` and`` alternative marker."""
    char = text[i]
    if char == "r" and i >= 2:
        return text[i - 2 : i + 1] == " or"
    if char == "d" and i >= 3:
        return text[i - 3 : i + 1] == " and"
    return False


def _scan(text: str) -> Iterator[ScriptPair]:
    key = ""
    sub_key: str | None = None
    key_start = -1
    sub_start = -1
    value_start = -1
    last = len(text) - 1

    for i, char in enumerate(text):
        if char.isspace():
            continue

        if char == "[":
            key_start = i + 1
        elif char == "]" and key_start >= 0:
            key = text[key_start:i]
            # A new key closes the previous sub-key block.
            sub_key = None
            value_start = i + 1
            key_start = -1
        elif char == "{":
            sub_start = i + 1
        elif char == "}" and sub_start >= 0:
            sub_key = text[sub_start:i]
            value_start = i + 1
            sub_start = -1
        elif value_start >= 0 and _is_separator_word(text, i):
            # value ends before " or" / " and"; the next one starts after it
            end = i - 2 if char == "r" else i - 3
            yield ScriptPair(key, sub_key, text[value_start:end])
            value_start = i + 2
        elif value_start >= 0 and char in ",;":
            yield ScriptPair(key, sub_key, text[value_start:i])
            value_start = -1
        elif value_start >= 0 and i == last:
            yield ScriptPair(key, sub_key, text[value_start : i + 1])
            value_start = -1
        elif key_start < 0 and sub_start < 0 and value_start < 0:
            value_start = i

    # Unterminated trailing value (ends in whitespace or a single character).
    if value_start >= 0 and value_start <= last and key_start < 0 and sub_start < 0:
        yield ScriptPair(key, sub_key, text[value_start:])


def find_script_file_values(html: str) -> list[str]:
    """Every quoted ``file`` value of inline JS object literals, in order."""
    return [m.group("file") for m in _FILE_VALUE_RE.finditer(html or "")]


def parse_videos_from_player_script(
    text: str,
    base_uri: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> list[tuple[str | None, Video]]:
    """Turn a player-script string into videos grouped by quality and audio.

    Values are deduplicated, resolved against *base_uri* (unresolvable ones
    are dropped) and each ``(quality, sub_key)`` group becomes one
    :class:`Video` whose primary URI prefers progressive files over HLS.
    Returns ``(audio, video)`` tuples in first-seen group order.
    """
    seen: set[str] = set()
    groups: dict[tuple[str, str | None], list[str]] = {}

    for pair in parse_player_script_pairs(text):
        if pair.value in seen:
            continue
        seen.add(pair.value)

        link = to_absolute(pair.value, base_uri)
        if link is None:
            continue
        groups.setdefault((pair.key, pair.sub_key), []).append(link)

    result: list[tuple[str | None, Video]] = []
    for (quality, audio), links in groups.items():
        ordered = sorted(links, key=lambda link: ".m3u8" in link)
        video = Video(
            uri=ordered[0],
            quality=quality or None,
            headers=HeaderMap(headers or {}),
            alternate_uris=tuple(ordered[1:]),
        )
        result.append((audio, video))
    return result
