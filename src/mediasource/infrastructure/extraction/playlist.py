"""Build content trees from player playlists.

Hosted players deliver either a player-script string (one title, several
qualities/audio tracks), a single HLS link, or a JSON playlist nested as
translation → season → episode.  All three shapes are turned into tree
nodes here; folders get materialised children via :meth:`Folder.of`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from mediasource.domain.entities.site import Site
from mediasource.domain.entities.tree import (
    File,
    Folder,
    FolderType,
    PositionBehavior,
    TreeNode,
)
from mediasource.domain.entities.video import HeaderMap, Track, Video
from mediasource.infrastructure.common.converters import first_int
from mediasource.infrastructure.common.ids import deterministic_hash
from mediasource.infrastructure.common.urls import to_absolute

from .player_script import parse_player_script_pairs, parse_videos_from_player_script


def _load_playlist(text: str) -> list[Any] | None:
    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        data = json.loads(stripped)
    except ValueError:
        return None
    return data if isinstance(data, list) else None


def _is_single_hls_link(text: str) -> bool:
    return "[" not in text and ".m3u8" in text


def _title_of(node: Mapping[str, Any]) -> str | None:
    value = node.get("title") or node.get("comment")
    return str(value).strip() if value else None


def _normalize(playlist: list[Any]) -> list[dict[str, Any]]:
    """Wrap flat playlists so every shape reads translation → season → episode."""
    first = playlist[0] if playlist else None
    if isinstance(first, dict) and "file" in first:
        playlist = [{"playlist": playlist}]
        first = playlist[0]
    if isinstance(first, dict) and isinstance(first.get("playlist"), list):
        playlist = [{"folder": playlist}]
    return [node for node in playlist if isinstance(node, dict)]


def _subtitles(raw: str | None, default_language: str | None) -> tuple[Track, ...]:
    tracks: list[Track] = []
    for pair in parse_player_script_pairs(raw or ""):
        link = to_absolute(pair.value)
        if link is None:
            continue
        tracks.append(
            Track(uri=link, language=default_language, title=pair.key or None)
        )
    return tuple(tracks)


def _episode_files(
    site: Site,
    season_id: str,
    season_number: int,
    episode: Mapping[str, Any],
    position: int,
    *,
    frame_link: str,
    item_title: str | None,
    headers: Mapping[str, str],
    default_sub_language: str | None,
) -> list[tuple[str | None, File]]:
    raw_file = str(episode.get("file") or "")
    if not raw_file:
        return []

    episode_id = first_int(str(episode.get("id", ""))) or position
    title = _title_of(episode)
    episode_number = first_int(title)
    poster = to_absolute(str(episode.get("poster") or ""), frame_link)
    subtitles = _subtitles(episode.get("subtitle"), default_sub_language)

    if _is_single_hls_link(raw_file):
        link = to_absolute(raw_file, frame_link)
        groups: list[tuple[str | None, list[Video]]] = (
            [(None, [Video(uri=link, headers=HeaderMap(headers))])] if link else []
        )
    else:
        by_audio: dict[str | None, list[Video]] = {}
        for audio, video in parse_videos_from_player_script(
            raw_file, frame_link, headers
        ):
            by_audio.setdefault(audio, []).append(video)
        groups = list(by_audio.items())

    result: list[tuple[str | None, File]] = []
    for audio, videos in groups:
        file_id = f"{season_id}_{episode_id}"
        if audio is not None:
            file_id += f"_{deterministic_hash(audio)}"
        result.append(
            (
                audio,
                File(
                    site=site,
                    id=file_id,
                    title=None if episode_number is not None else title,
                    frame_link=frame_link,
                    placeholder_image=poster,
                    videos=tuple(videos),
                    subtitle_tracks=subtitles,
                    item_title=item_title,
                    season=season_number,
                    episode=episode_number,
                ),
            )
        )
    return result


def _build_seasons(
    site: Site,
    root_id: str,
    playlist: list[Any],
    *,
    frame_link: str,
    item_title: str | None,
    headers: Mapping[str, str],
    default_sub_language: str | None,
) -> list[TreeNode]:
    # season key -> translation key -> episodes
    seasons: dict[tuple[int, str], dict[tuple[str | None, str], list[File]]] = {}

    for translator in _normalize(playlist):
        translator_title = _title_of(translator)
        for index, season in enumerate(translator.get("folder") or []):
            if not isinstance(season, dict):
                continue
            season_title = _title_of(season)
            season_number = first_int(season_title) or index + 1
            season_title = season_title or f"Season {season_number}"
            season_id = f"{root_id}_{season_number}"
            episodes = season.get("playlist") or season.get("folder") or []

            translations = seasons.setdefault((season_number, season_title), {})
            for position, episode in enumerate(episodes, start=1):
                if not isinstance(episode, dict):
                    continue
                for audio, file in _episode_files(
                    site,
                    season_id,
                    season_number,
                    episode,
                    position,
                    frame_link=frame_link,
                    item_title=item_title,
                    headers=headers,
                    default_sub_language=default_sub_language,
                ):
                    label = audio or translator_title
                    translate_id = f"{root_id}_tran_{deterministic_hash(label or '')}"
                    translations.setdefault((label, translate_id), []).append(file)

    nodes: list[TreeNode] = []
    for (season_number, season_title), translations in seasons.items():
        folders = [
            Folder.of(
                files,
                site=site,
                id=f"{translate_id}_{season_number}",
                title=label,
                folder_type=FolderType.TRANSLATE,
                position_behavior=PositionBehavior.AVERAGE,
                season=season_number,
            )
            for (label, translate_id), files in translations.items()
            if files
        ]
        if not folders:
            continue
        if len(folders) == 1:
            children: list[TreeNode] = list(translations.values())[0]
        else:
            children = list(folders)
        nodes.append(
            Folder.of(
                children,
                site=site,
                id=f"{root_id}_{season_number}",
                title=season_title,
                folder_type=FolderType.SEASON,
                position_behavior=PositionBehavior.MAX,
                season=season_number,
            )
        )
    return nodes


def build_playlist_tree(
    site: Site,
    root_id: str,
    playlist_or_file: str,
    frame_link: str,
    *,
    translator: str | None = None,
    item_title: str | None = None,
    headers: Mapping[str, str] | None = None,
    default_sub_language: str | None = None,
) -> list[TreeNode]:
    """Turn a player ``file`` value into tree nodes.

    Returns season folders for JSON playlists, otherwise one file per audio
    track.  Unparsable input yields an empty list.
    """
    headers = headers or {}

    playlist = _load_playlist(playlist_or_file)
    if playlist is not None:
        return _build_seasons(
            site,
            root_id,
            playlist,
            frame_link=frame_link,
            item_title=item_title,
            headers=headers,
            default_sub_language=default_sub_language,
        )

    if _is_single_hls_link(playlist_or_file):
        link = to_absolute(playlist_or_file, frame_link)
        if link is None:
            return []
        return [
            File(
                site=site,
                id=root_id,
                title=translator or item_title,
                frame_link=frame_link,
                videos=(Video(uri=link, headers=HeaderMap(headers)),),
                item_title=item_title,
            )
        ]

    by_audio: dict[str | None, list[Video]] = {}
    for audio, video in parse_videos_from_player_script(
        playlist_or_file, frame_link, headers
    ):
        by_audio.setdefault(audio, []).append(video)

    files: list[TreeNode] = []
    for audio, videos in by_audio.items():
        file_id = root_id if audio is None else f"{root_id}_tran_{deterministic_hash(audio)}"
        files.append(
            File(
                site=site,
                id=file_id,
                title=audio or translator or item_title,
                frame_link=frame_link,
                videos=tuple(videos),
                item_title=item_title,
            )
        )
    return files
