from .item import ItemQuery
from .quality import normalize_quality, quality_value
from .site import ANY_SITE, ProviderRequirements, Site
from .tree import (
    File,
    Folder,
    FolderType,
    PositionBehavior,
    TorrentFolder,
    TreeNode,
)
from .video import HeaderMap, StreamDescriptor, Track, Video

__all__ = [
    "ANY_SITE",
    "File",
    "Folder",
    "FolderType",
    "HeaderMap",
    "ItemQuery",
    "PositionBehavior",
    "ProviderRequirements",
    "Site",
    "StreamDescriptor",
    "TorrentFolder",
    "Track",
    "TreeNode",
    "Video",
    "normalize_quality",
    "quality_value",
]
