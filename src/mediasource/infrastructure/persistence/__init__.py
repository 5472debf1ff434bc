from .cache_repository import CacheRepository
from .setting_store import CacheSettingStore

__all__ = ["CacheRepository", "CacheSettingStore"]
