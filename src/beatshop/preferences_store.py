"""Client-side favorites, playlists and play statistics.

State is an immutable value; every operation returns a new `UserPreferences`
and the app persists it with `save_preferences`. Loading tolerates missing or
corrupt files and drops malformed entries instead of failing startup.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .settings import write_json_atomic

logger = logging.getLogger(__name__)

DEFAULT_TOP_LIMIT = 10


@dataclass(frozen=True)
class Playlist:
    """Named ordered list of unique catalog entry ids."""

    id: str
    name: str
    entry_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlayStats:
    plays: int = 0
    last_played_ms: int = 0


@dataclass(frozen=True)
class UserPreferences:
    favorites: tuple[str, ...] = ()
    playlists: tuple[Playlist, ...] = ()
    stats: tuple[tuple[str, PlayStats], ...] = ()

    def is_favorite(self, entry_id: str) -> bool:
        return entry_id in self.favorites

    def playlist(self, playlist_id: str) -> Playlist | None:
        for playlist in self.playlists:
            if playlist.id == playlist_id:
                return playlist
        return None

    def stats_for(self, entry_id: str) -> PlayStats:
        return dict(self.stats).get(entry_id, PlayStats())


def add_favorite(prefs: UserPreferences, entry_id: str) -> UserPreferences:
    """Add a favorite; adding an existing id returns the state unchanged."""
    if entry_id in prefs.favorites:
        return prefs
    return replace(prefs, favorites=(*prefs.favorites, entry_id))


def remove_favorite(prefs: UserPreferences, entry_id: str) -> UserPreferences:
    if entry_id not in prefs.favorites:
        return prefs
    return replace(
        prefs, favorites=tuple(fid for fid in prefs.favorites if fid != entry_id)
    )


def toggle_favorite(prefs: UserPreferences, entry_id: str) -> UserPreferences:
    if prefs.is_favorite(entry_id):
        return remove_favorite(prefs, entry_id)
    return add_favorite(prefs, entry_id)


def create_playlist(
    prefs: UserPreferences,
    name: str,
    *,
    now_ms: int | None = None,
) -> tuple[UserPreferences, Playlist]:
    """Create an empty playlist with a `playlist_<ms>` id unique in `prefs`."""
    clean = name.strip()
    if not clean:
        raise ValueError("playlist name must be non-empty")
    stamp = _now_ms() if now_ms is None else int(now_ms)
    existing = {playlist.id for playlist in prefs.playlists}
    playlist_id = f"playlist_{stamp}"
    while playlist_id in existing:
        stamp += 1
        playlist_id = f"playlist_{stamp}"
    playlist = Playlist(id=playlist_id, name=clean)
    return replace(prefs, playlists=(*prefs.playlists, playlist)), playlist


def add_to_playlist(
    prefs: UserPreferences, playlist_id: str, entry_id: str
) -> UserPreferences:
    def _add(playlist: Playlist) -> Playlist:
        if entry_id in playlist.entry_ids:
            return playlist
        return replace(playlist, entry_ids=(*playlist.entry_ids, entry_id))

    return _update_playlist(prefs, playlist_id, _add)


def remove_from_playlist(
    prefs: UserPreferences, playlist_id: str, entry_id: str
) -> UserPreferences:
    def _remove(playlist: Playlist) -> Playlist:
        return replace(
            playlist,
            entry_ids=tuple(eid for eid in playlist.entry_ids if eid != entry_id),
        )

    return _update_playlist(prefs, playlist_id, _remove)


def delete_playlist(prefs: UserPreferences, playlist_id: str) -> UserPreferences:
    return replace(
        prefs,
        playlists=tuple(pl for pl in prefs.playlists if pl.id != playlist_id),
    )


def increment_plays(
    prefs: UserPreferences, entry_id: str, *, now_ms: int | None = None
) -> UserPreferences:
    stamp = _now_ms() if now_ms is None else int(now_ms)
    current = dict(prefs.stats)
    previous = current.get(entry_id, PlayStats())
    current[entry_id] = PlayStats(plays=previous.plays + 1, last_played_ms=stamp)
    return replace(prefs, stats=tuple(current.items()))


def top_beats(
    prefs: UserPreferences, limit: int = DEFAULT_TOP_LIMIT
) -> list[tuple[str, PlayStats]]:
    """Most played entries first; ties go to the most recently played."""
    ranked = sorted(
        prefs.stats,
        key=lambda item: (item[1].plays, item[1].last_played_ms),
        reverse=True,
    )
    return ranked[: max(0, int(limit))]


def _update_playlist(
    prefs: UserPreferences,
    playlist_id: str,
    update: Callable[[Playlist], Playlist],
) -> UserPreferences:
    if prefs.playlist(playlist_id) is None:
        raise KeyError(f"Unknown playlist {playlist_id}")
    return replace(
        prefs,
        playlists=tuple(
            update(pl) if pl.id == playlist_id else pl for pl in prefs.playlists
        ),
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


def _coerce_preferences(data: dict[str, Any]) -> UserPreferences:
    def _unique_str_tuple(value: Any) -> tuple[str, ...]:
        if not isinstance(value, list):
            return ()
        seen: list[str] = []
        for item in value:
            if isinstance(item, str) and item and item not in seen:
                seen.append(item)
        return tuple(seen)

    playlists: list[Playlist] = []
    raw_playlists = data.get("playlists")
    if isinstance(raw_playlists, list):
        seen_ids: set[str] = set()
        for row in raw_playlists:
            if not isinstance(row, dict):
                continue
            pid = row.get("id")
            name = row.get("name")
            if not isinstance(pid, str) or not isinstance(name, str):
                continue
            if pid in seen_ids:
                continue
            seen_ids.add(pid)
            playlists.append(
                Playlist(
                    id=pid, name=name, entry_ids=_unique_str_tuple(row.get("beats"))
                )
            )

    stats: list[tuple[str, PlayStats]] = []
    raw_stats = data.get("stats")
    if isinstance(raw_stats, dict):
        for entry_id, row in raw_stats.items():
            if not isinstance(row, dict):
                continue
            plays = row.get("plays")
            last = row.get("last_played_ms", 0)
            if isinstance(plays, bool) or not isinstance(plays, int) or plays < 0:
                continue
            if isinstance(last, bool) or not isinstance(last, int):
                last = 0
            stats.append((str(entry_id), PlayStats(plays=plays, last_played_ms=last)))

    return UserPreferences(
        favorites=_unique_str_tuple(data.get("favorites")),
        playlists=tuple(playlists),
        stats=tuple(stats),
    )


def preferences_to_dict(prefs: UserPreferences) -> dict[str, Any]:
    return {
        "favorites": list(prefs.favorites),
        "playlists": [
            {"id": pl.id, "name": pl.name, "beats": list(pl.entry_ids)}
            for pl in prefs.playlists
        ],
        "stats": {
            entry_id: {"plays": row.plays, "last_played_ms": row.last_played_ms}
            for entry_id, row in prefs.stats
        },
    }


def load_preferences_with_notice(path: Path) -> tuple[UserPreferences, str | None]:
    """Load preferences and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return UserPreferences(), None
    except OSError as exc:
        logger.warning("Failed to read preferences %s: %s", path, exc)
        return (
            UserPreferences(),
            "Favorites and playlists could not be loaded.\n"
            "Likely cause: preferences file is unreadable.\n"
            f"Next step: verify access to '{path}' and restart.",
        )
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Preferences file at %s is invalid JSON.", path)
        return (
            UserPreferences(),
            "Favorites and playlists were reset.\n"
            "Likely cause: preferences file is corrupt or partially written.\n"
            f"Next step: repair or remove '{path}'.",
        )
    if not isinstance(data, dict):
        logger.warning("Preferences file at %s is not a JSON object.", path)
        return UserPreferences(), None
    return _coerce_preferences(data), None


def load_preferences(path: Path) -> UserPreferences:
    prefs, _notice = load_preferences_with_notice(path)
    return prefs


def save_preferences(path: Path, prefs: UserPreferences) -> None:
    write_json_atomic(path, preferences_to_dict(prefs))
