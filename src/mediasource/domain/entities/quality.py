"""Quality label ranking.

Labels come from untrusted page markup ("720p", "1080", "HD", "4K UHD", ...),
so ranking is tolerant: anything recognisable maps to a vertical resolution,
anything else ranks as unknown.
"""

from __future__ import annotations

QUALITY_ANY = 0
QUALITY_UNKNOWN = 1

# Checked in order; the first marker found in the label wins.
_MARKERS: tuple[tuple[str, int], ...] = (
    ("4K", 2160),
    ("2K", 1081),
    ("1080", 1080),
    ("720", 720),
    ("480", 480),
    ("360", 360),
    ("HD", 720),
    ("HQ", 720),
    ("SD", 480),
    ("LQ", 360),
)


def quality_value(label: str | None) -> int:
    """Rank a quality label (higher = better).

    ``None``/empty → ``QUALITY_ANY``, unrecognised → ``QUALITY_UNKNOWN``.
    """
    if not label:
        return QUALITY_ANY

    stripped = label.strip().rstrip("p")
    if stripped.isdigit():
        return int(stripped)

    upper = label.upper()
    for marker, value in _MARKERS:
        if marker in upper:
            return value
    return QUALITY_UNKNOWN


def normalize_quality(label: str | None) -> str | None:
    """Normalize purely numeric labels to ``"<n>p"``; keep others trimmed."""
    if label is None:
        return None
    stripped = label.strip()
    if not stripped:
        return None
    if stripped.rstrip("p").isdigit():
        return f"{int(stripped.rstrip('p'))}p"
    return stripped


def is_hd(label: str | None) -> bool:
    return quality_value(label) >= 720
