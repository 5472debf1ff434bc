"""Decoding of obfuscated PlayerJS ``file`` values.

PlayerJS embeds may hide the ``file`` value behind a ``#`` marker:

- ``#0`` followed by three-digit hex code points,
- ``#2`` followed by base64 padded with ``{separator}{key}`` junk blocks,
- ``#3`` which is passed through untouched.

Plain values (no ``#`` prefix) are returned as-is.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PlayerCodecKeys:
    """Junk blocks to strip from ``#2`` values."""

    keys: tuple[str, ...] = ()
    separator: str = "//"


def _decode_hex(body: str) -> str | None:
    if "." in body or len(body) % 3:
        return None
    try:
        return "".join(chr(int(body[i : i + 3], 16)) for i in range(0, len(body), 3))
    except ValueError:
        return None


def _decode_keyed(body: str, codec: PlayerCodecKeys) -> str | None:
    if not codec.keys:
        return None
    for key in codec.keys:
        body = body.replace(codec.separator + key, "")
    body += "=" * (-len(body) % 4)
    try:
        return base64.b64decode(body, validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def decode_file_value(
    value: str | None,
    codec: PlayerCodecKeys | None = None,
) -> str | None:
    """Plain player-script text for *value*, ``None`` when it can't be decoded."""
    if value is None or len(value) < 2 or value[0] != "#":
        return value

    marker, body = value[1], value[2:]
    if marker == "3":
        return value
    if marker == "0":
        return _decode_hex(value[1:])
    if marker == "2":
        return _decode_keyed(body, codec or PlayerCodecKeys())
    return None


def codec_from_config(raw: Mapping[str, Any] | None) -> PlayerCodecKeys | None:
    """Build codec keys from a config mapping (``keys`` + ``separator``)."""
    if not raw:
        return None
    keys = raw.get("keys") or ()
    separator = raw.get("separator") or "//"
    if not keys or not isinstance(keys, Sequence) or isinstance(keys, str):
        return None
    return PlayerCodecKeys(tuple(str(k) for k in keys), str(separator))
