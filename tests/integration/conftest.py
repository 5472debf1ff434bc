"""Shared fixtures for integration tests.

These tests use real infrastructure components (DiskcacheAdapter, the
composed Engine, the config loader) with mocked HTTP via respx.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import respx

from mediasource.infrastructure.cache.diskcache_adapter import DiskcacheAdapter


@pytest.fixture()
async def diskcache(tmp_path: Path) -> DiskcacheAdapter:
    """Real DiskcacheAdapter backed by tmp_path (auto-cleaned)."""
    adapter = DiskcacheAdapter(
        directory=tmp_path / "cache",
        ttl_seconds=3600,
        max_concurrent=5,
    )
    async with adapter:
        yield adapter


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer MEDIASOURCE_* variables out of the precedence tests."""
    for key in list(os.environ):
        if key.startswith("MEDIASOURCE_"):
            monkeypatch.delenv(key)
