"""Common infrastructure utilities."""

from __future__ import annotations

from .converters import first_int, parse_size_to_bytes, to_int
from .ids import deterministic_hash, hashed_id
from .urls import origin_of, root_domain, same_root_domain, to_absolute

__all__ = [
    "deterministic_hash",
    "first_int",
    "hashed_id",
    "origin_of",
    "parse_size_to_bytes",
    "root_domain",
    "same_root_domain",
    "to_absolute",
    "to_int",
]
