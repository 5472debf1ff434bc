"""Tests for building content trees from player playlists."""

from __future__ import annotations

import json

import pytest

from mediasource.domain.entities import File, Folder, FolderType, PositionBehavior, Site
from mediasource.infrastructure.extraction.playlist import build_playlist_tree

SITE = Site("host", "Host")
FRAME = "https://player.example/embed/42/"


def _serial(*translators: dict) -> str:
    return json.dumps(list(translators))


def _translator(title: str, *episodes: dict) -> dict:
    return {"title": title, "folder": [{"title": "Season 1", "folder": list(episodes)}]}


class TestPlayerScriptInput:
    def test_one_file_per_audio_track(self) -> None:
        text = "[360p]{Dub}https://a/360.mp4,[720p]{Dub}https://a/720.mp4;{Sub}https://a/720s.mp4"
        nodes = build_playlist_tree(SITE, "root", text, FRAME)
        assert [n.title for n in nodes] == ["Dub", "Sub"]
        dub = nodes[0]
        assert isinstance(dub, File)
        assert [v.quality for v in dub.videos] == ["720p", "360p"]
        assert dub.id.startswith("root_tran_")
        assert dub.frame_link == FRAME

    def test_without_audio_uses_root_id(self) -> None:
        (node,) = build_playlist_tree(
            SITE, "root", "[720p]https://a/720.mp4", FRAME, item_title="Movie"
        )
        assert node.id == "root"
        assert node.title == "Movie"

    def test_ids_are_deterministic(self) -> None:
        text = "[360p]{Dub}https://a/360.mp4"
        first = build_playlist_tree(SITE, "root", text, FRAME)
        second = build_playlist_tree(SITE, "root", text, FRAME)
        assert first[0].id == second[0].id

    def test_headers_on_every_video(self) -> None:
        (node,) = build_playlist_tree(
            SITE, "root", "[720p]https://a/720.mp4", FRAME, headers={"Referer": FRAME}
        )
        assert isinstance(node, File)
        assert node.videos[0].headers["Referer"] == FRAME

    def test_garbage_yields_nothing(self) -> None:
        assert build_playlist_tree(SITE, "root", "garbage", FRAME) == []


class TestSingleHlsInput:
    def test_relative_link_resolved(self) -> None:
        (node,) = build_playlist_tree(SITE, "root", "/hls/master.m3u8", FRAME, translator="Original")
        assert isinstance(node, File)
        assert node.title == "Original"
        assert node.videos[0].uri == "https://player.example/hls/master.m3u8"


class TestJsonPlaylistInput:
    @pytest.mark.asyncio
    async def test_single_translation_flattens_into_season(self) -> None:
        text = _serial(
            _translator(
                "Dub A",
                {"title": "Episode 1", "id": "11", "file": "[720p]https://cdn/1.mp4"},
                {"title": "Episode 2", "file": "https://cdn/s1e2/index.m3u8"},
            )
        )
        (season,) = build_playlist_tree(SITE, "root", text, FRAME, item_title="Show")
        assert isinstance(season, Folder)
        assert season.folder_type is FolderType.SEASON
        assert season.position_behavior is PositionBehavior.MAX
        assert season.id == "root_1"
        assert season.title == "Season 1"

        episodes = await season.load_children()
        assert [e.id for e in episodes] == ["root_1_11", "root_1_2"]
        first = episodes[0]
        assert isinstance(first, File)
        assert first.episode == 1
        assert first.season == 1
        assert first.title is None
        assert first.item_title == "Show"

    @pytest.mark.asyncio
    async def test_several_translations_become_folders(self) -> None:
        text = _serial(
            _translator("Dub A", {"title": "Episode 1", "file": "https://cdn/a1.mp4"}),
            _translator("Dub B", {"title": "Episode 1", "file": "https://cdn/b1.mp4"}),
        )
        (season,) = build_playlist_tree(SITE, "root", text, FRAME)
        translations = await season.load_children()
        assert [t.title for t in translations] == ["Dub A", "Dub B"]
        assert all(
            isinstance(t, Folder) and t.folder_type is FolderType.TRANSLATE
            for t in translations
        )
        (episode,) = await translations[1].load_children()
        assert episode.videos[0].uri == "https://cdn/b1.mp4"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_flat_episode_list(self) -> None:
        text = json.dumps(
            [
                {"title": "Episode 1", "file": "https://cdn/1.mp4"},
                {"title": "Episode 2", "file": "https://cdn/2.mp4"},
            ]
        )
        (season,) = build_playlist_tree(SITE, "root", text, FRAME)
        assert season.title == "Season 1"
        assert len(await season.load_children()) == 2

    @pytest.mark.asyncio
    async def test_subtitles_attached(self) -> None:
        text = json.dumps(
            [
                {
                    "title": "Episode 1",
                    "file": "https://cdn/1.mp4",
                    "subtitle": "[English]https://cdn/en.vtt,[Russian]https://cdn/ru.vtt",
                }
            ]
        )
        (season,) = build_playlist_tree(SITE, "root", text, FRAME, default_sub_language="ru")
        (episode,) = await season.load_children()
        assert isinstance(episode, File)
        assert [t.title for t in episode.subtitle_tracks] == ["English", "Russian"]
        assert all(t.language == "ru" for t in episode.subtitle_tracks)

    def test_episodes_without_file_dropped(self) -> None:
        text = _serial(_translator("Dub", {"title": "Episode 1", "file": ""}))
        assert build_playlist_tree(SITE, "root", text, FRAME) == []
