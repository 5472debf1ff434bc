"""Deterministic ids derived from page content.

``deterministic_hash`` yields the same value for the same input across
processes (unlike the salted built-in ``hash``), so repeated parses of a page
produce the same file ids.  The value is NOT guaranteed stable across
releases: any change to this function or to the strings fed into it changes
the ids.  Callers persisting such ids must treat them as session-stable only.
"""

from __future__ import annotations

_MASK = 0xFFFFFFFF
_SEED = ((5381 << 16) + 5381) & _MASK
_MIX = 1566083941


def deterministic_hash(text: str) -> int:
    """Two-lane djb2 fold over the string, 32-bit unsigned."""
    hash1 = _SEED
    hash2 = _SEED
    length = len(text)
    for i in range(0, length, 2):
        hash1 = (((hash1 << 5) + hash1) ^ ord(text[i])) & _MASK
        if i == length - 1:
            break
        hash2 = (((hash2 << 5) + hash2) ^ ord(text[i + 1])) & _MASK
    return (hash1 + hash2 * _MIX) & _MASK


def hashed_id(prefix: str, text: str) -> str:
    return f"{prefix}{deterministic_hash(text)}"
