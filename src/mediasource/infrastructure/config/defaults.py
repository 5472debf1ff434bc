"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "mediasource",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
        "user_agent": None,  # adapters fall back to a desktop browser UA
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "memory",
        "dir": "./.cache/mediasource",
        "ttl_seconds": 3600,
        "max_concurrent": 10,
    },
    "mirrors": {
        "probe_timeout_seconds": 5.0,
        "cache_ttl_seconds": 7 * 24 * 3600,
        "overrides": {},
    },
    "resolution": {
        "default_timeout_seconds": 30.0,
        "max_concurrent_adapters": 8,
        "granted": [],
        "circuit_breaker_threshold": 5,
        "circuit_breaker_cooldown_seconds": 60.0,
        "result_max_age_seconds": 600,
    },
    "adapters": {
        "enabled": None,  # None = every built-in adapter
        "tmdb_api_key": None,
        "player_hosts": {},
    },
}
