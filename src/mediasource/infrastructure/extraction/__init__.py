"""Pure extraction helpers (no network I/O)."""

from __future__ import annotations

from .headers import (
    DEFAULT_USER_AGENT,
    MOBILE_USER_AGENT,
    attach_headers,
    stream_headers,
)
from .hls import is_master_playlist, parse_videos_from_m3u8
from .player_script import (
    PlayerScriptPairs,
    ScriptPair,
    find_script_file_values,
    parse_player_script_pairs,
    parse_videos_from_player_script,
)
from .playlist import build_playlist_tree

__all__ = [
    "DEFAULT_USER_AGENT",
    "MOBILE_USER_AGENT",
    "PlayerScriptPairs",
    "ScriptPair",
    "attach_headers",
    "build_playlist_tree",
    "find_script_file_values",
    "is_master_playlist",
    "parse_player_script_pairs",
    "parse_videos_from_m3u8",
    "parse_videos_from_player_script",
    "stream_headers",
]
