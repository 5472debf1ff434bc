from .cache import CachePort
from .repository import RepositoryPort
from .setting_store import SettingStorePort, SettingStrategy
from .site_adapter import FileProviderPort, SiteAdapterPort

__all__ = [
    "CachePort",
    "FileProviderPort",
    "RepositoryPort",
    "SettingStorePort",
    "SettingStrategy",
    "SiteAdapterPort",
]
