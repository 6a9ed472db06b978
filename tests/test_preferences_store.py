"""Tests for favorites, playlists and play statistics."""

from __future__ import annotations

import json

import pytest

from beatshop.preferences_store import (
    PlayStats,
    UserPreferences,
    add_favorite,
    add_to_playlist,
    create_playlist,
    delete_playlist,
    increment_plays,
    load_preferences,
    load_preferences_with_notice,
    remove_favorite,
    remove_from_playlist,
    save_preferences,
    toggle_favorite,
    top_beats,
)


def test_add_favorite_is_idempotent() -> None:
    prefs = add_favorite(UserPreferences(), "beat-1")
    again = add_favorite(prefs, "beat-1")

    assert again is prefs
    assert again.favorites == ("beat-1",)


def test_toggle_favorite_adds_then_removes() -> None:
    prefs = toggle_favorite(UserPreferences(), "beat-1")
    assert prefs.is_favorite("beat-1")

    prefs = toggle_favorite(prefs, "beat-1")
    assert not prefs.is_favorite("beat-1")


def test_remove_missing_favorite_is_noop() -> None:
    prefs = UserPreferences(favorites=("a",))
    assert remove_favorite(prefs, "b") is prefs


def test_create_playlist_assigns_unique_ids() -> None:
    prefs, first = create_playlist(UserPreferences(), "Late night", now_ms=1000)
    prefs, second = create_playlist(prefs, "  Gym  ", now_ms=1000)

    assert first.id == "playlist_1000"
    assert second.id == "playlist_1001"
    assert second.name == "Gym"
    assert [pl.id for pl in prefs.playlists] == ["playlist_1000", "playlist_1001"]


def test_create_playlist_rejects_blank_name() -> None:
    with pytest.raises(ValueError):
        create_playlist(UserPreferences(), "   ")


def test_add_to_playlist_keeps_entries_unique_and_ordered() -> None:
    prefs, playlist = create_playlist(UserPreferences(), "Mix", now_ms=1)
    prefs = add_to_playlist(prefs, playlist.id, "b")
    prefs = add_to_playlist(prefs, playlist.id, "a")
    prefs = add_to_playlist(prefs, playlist.id, "b")

    stored = prefs.playlist(playlist.id)
    assert stored is not None
    assert stored.entry_ids == ("b", "a")

    prefs = remove_from_playlist(prefs, playlist.id, "b")
    stored = prefs.playlist(playlist.id)
    assert stored is not None
    assert stored.entry_ids == ("a",)


def test_playlist_updates_reject_unknown_playlist() -> None:
    with pytest.raises(KeyError):
        add_to_playlist(UserPreferences(), "playlist_404", "a")
    with pytest.raises(KeyError):
        remove_from_playlist(UserPreferences(), "playlist_404", "a")


def test_delete_playlist_removes_only_that_playlist() -> None:
    prefs, first = create_playlist(UserPreferences(), "One", now_ms=1)
    prefs, second = create_playlist(prefs, "Two", now_ms=2)

    prefs = delete_playlist(prefs, first.id)

    assert [pl.id for pl in prefs.playlists] == [second.id]


def test_increment_plays_and_top_beats_ranking() -> None:
    prefs = UserPreferences()
    prefs = increment_plays(prefs, "a", now_ms=10)
    prefs = increment_plays(prefs, "b", now_ms=20)
    prefs = increment_plays(prefs, "b", now_ms=30)
    prefs = increment_plays(prefs, "c", now_ms=40)

    assert prefs.stats_for("b") == PlayStats(plays=2, last_played_ms=30)
    assert [entry_id for entry_id, _ in top_beats(prefs)] == ["b", "c", "a"]
    assert len(top_beats(prefs, limit=1)) == 1
    assert top_beats(prefs, limit=-5) == []


def test_save_and_load_round_trip_uses_beats_key(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    prefs = add_favorite(UserPreferences(), "beat-2")
    prefs, playlist = create_playlist(prefs, "Mix", now_ms=5)
    prefs = add_to_playlist(prefs, playlist.id, "beat-2")
    prefs = increment_plays(prefs, "beat-2", now_ms=99)

    save_preferences(path, prefs)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["playlists"] == [
        {"id": "playlist_5", "name": "Mix", "beats": ["beat-2"]}
    ]
    assert load_preferences(path) == prefs


def test_malformed_rows_are_dropped_on_load(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    path.write_text(
        json.dumps(
            {
                "favorites": ["a", "a", 3, ""],
                "playlists": [
                    {"id": "p1", "name": "Ok", "beats": ["x", "x", None]},
                    {"id": "p1", "name": "Duplicate id"},
                    {"name": "No id"},
                    "junk",
                ],
                "stats": {
                    "a": {"plays": 2, "last_played_ms": 7},
                    "b": {"plays": -1},
                    "c": {"plays": True},
                },
            }
        ),
        encoding="utf-8",
    )

    prefs = load_preferences(path)

    assert prefs.favorites == ("a",)
    assert len(prefs.playlists) == 1
    assert prefs.playlists[0].entry_ids == ("x",)
    assert dict(prefs.stats) == {"a": PlayStats(plays=2, last_played_ms=7)}


def test_corrupt_file_returns_empty_preferences_with_notice(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    path.write_text("{oops", encoding="utf-8")

    prefs, notice = load_preferences_with_notice(path)

    assert prefs == UserPreferences()
    assert notice is not None
    assert "Favorites and playlists were reset." in notice
