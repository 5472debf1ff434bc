"""Settings store backed by CachePort (memory or diskcache)."""

from __future__ import annotations

from typing import Any

import structlog

from mediasource.domain.ports.cache import CachePort
from mediasource.domain.ports.setting_store import SettingStrategy

log = structlog.get_logger(__name__)


class CacheSettingStore:
    """Namespaced settings over a CachePort.

    Entries never expire.  Each strategy gets its own key space; secure
    values are kept apart from local ones but the underlying backend decides
    how they are protected.  Backend failures read as "not set".
    """

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache

    @staticmethod
    def _key(container: str, key: str, strategy: SettingStrategy) -> str:
        return f"setting:{strategy.value}:{container}:{key}"

    async def get_setting(
        self,
        container: str,
        key: str,
        default: Any = None,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> Any:
        try:
            value = await self.cache.get(self._key(container, key, strategy))
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "setting_read_failed",
                container=container,
                key=key,
                error=str(exc),
            )
            return default
        return default if value is None else value

    async def set_setting(
        self,
        container: str,
        key: str,
        value: Any,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> None:
        try:
            await self.cache.set(self._key(container, key, strategy), value, ttl=0)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "setting_write_failed",
                container=container,
                key=key,
                error=str(exc),
            )
            return
        log.debug("setting_saved", container=container, key=key)

    async def delete_setting(
        self,
        container: str,
        key: str,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> bool:
        try:
            return await self.cache.delete(self._key(container, key, strategy))
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "setting_delete_failed",
                container=container,
                key=key,
                error=str(exc),
            )
            return False
