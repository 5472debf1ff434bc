"""Settings/secret store port (owned by an external collaborator)."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol


class SettingStrategy(str, Enum):
    LOCAL = "local"
    ROAMING = "roaming"
    SECURE = "secure"


class SettingStorePort(Protocol):
    """Namespaced key/value settings.

    The engine is agnostic to how each strategy is persisted.
    """

    async def get_setting(
        self,
        container: str,
        key: str,
        default: Any = None,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> Any:
        ...

    async def set_setting(
        self,
        container: str,
        key: str,
        value: Any,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> None:
        ...

    async def delete_setting(
        self,
        container: str,
        key: str,
        strategy: SettingStrategy = SettingStrategy.LOCAL,
    ) -> bool:
        ...
