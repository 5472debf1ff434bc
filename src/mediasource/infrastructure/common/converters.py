"""Tolerant conversions for scraped values."""

from __future__ import annotations

import re

_SIZE_RE = re.compile(r"([\d.,]+)\s*([KMGT]I?B|B)\b")

_SIZE_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}


def to_int(raw: str | int | float | None) -> int | None:
    """Convert a scraped count to int.

    ``"1,234"`` / ``"1 234"`` → 1234, ``""`` / garbage → ``None``.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw)

    digits = "".join(ch for ch in raw if ch.isdigit())
    if not digits:
        return None
    return int(digits)


def parse_size_to_bytes(size: str | int | None) -> int | None:
    """Parse ``"4.5 GB"``, ``"700 MiB"`` or raw byte counts.

    Returns ``None`` for empty or unrecognised input.
    """
    if size is None:
        return None
    if isinstance(size, int):
        return size

    text = size.strip().upper()
    if not text:
        return None
    if text.isdigit():
        return int(text)

    match = _SIZE_RE.search(text)
    if not match:
        return None

    try:
        value = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    unit = match.group(2).replace("I", "")
    return int(value * _SIZE_MULTIPLIERS.get(unit, 1))


def first_int(text: str | None) -> int | None:
    """First run of digits in *text* (``"Season 3"`` → 3)."""
    if not text:
        return None
    match = re.search(r"\d+", text)
    return int(match.group(0)) if match else None
