"""Engine exceptions.

Absence ("nothing found") is never an exception; adapters return ``None``.
"""

from __future__ import annotations


class MediaSourceError(Exception):
    """Base class for all engine errors."""


class AdapterError(MediaSourceError):
    """Base class for adapter-related errors."""


class UnsupportedOperationError(AdapterError):
    """Raised when an adapter is asked for a capability it does not have.

    Distinct from absence: the caller can tell "this adapter can't do that"
    apart from "this adapter found nothing".
    """

    def __init__(self, site: str, operation: str) -> None:
        super().__init__(f"{site} does not support {operation}")
        self.site = site
        self.operation = operation


class ConfigurationError(MediaSourceError):
    """Raised when the engine cannot be composed from the given config."""
