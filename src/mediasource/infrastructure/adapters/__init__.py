"""Site adapters.

Each module holds one adapter class; the composition root builds the
enabled ones from :data:`BUILTIN_ADAPTERS`.
"""

from __future__ import annotations

from .animedia import AnimediaAdapter
from .base import FileProviderBase, HttpxAdapterBase
from .playerjs import PlayerHost, PlayerJsAdapter
from .sibnet import SibnetAdapter
from .thepiratebay import ThePirateBayAdapter
from .tmdb_trailers import TmdbTrailersAdapter
from .torlook import TorLookAdapter

BUILTIN_ADAPTERS: dict[str, type[HttpxAdapterBase]] = {
    cls.site.value: cls
    for cls in (
        AnimediaAdapter,
        PlayerJsAdapter,
        SibnetAdapter,
        ThePirateBayAdapter,
        TorLookAdapter,
        TmdbTrailersAdapter,
    )
}

__all__ = [
    "BUILTIN_ADAPTERS",
    "AnimediaAdapter",
    "FileProviderBase",
    "HttpxAdapterBase",
    "PlayerHost",
    "PlayerJsAdapter",
    "SibnetAdapter",
    "ThePirateBayAdapter",
    "TmdbTrailersAdapter",
    "TorLookAdapter",
]
