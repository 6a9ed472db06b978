"""Favorites tab: favorite beats, named playlists and most played."""

from __future__ import annotations

from collections.abc import Sequence

from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Input, Static

from beatshop.catalog import CatalogEntry, find_entry
from beatshop.events import FavoriteToggleRequested
from beatshop.preferences_store import UserPreferences, top_beats
from beatshop.ui.control_button import ControlButton, ControlPressed

TOP_LIMIT = 5


class PlaylistCreateRequested(Message):
    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name


class PlaylistDeleteRequested(Message):
    def __init__(self, playlist_id: str) -> None:
        super().__init__()
        self.playlist_id = playlist_id


class PlaylistEntryRemoveRequested(Message):
    def __init__(self, playlist_id: str, entry_id: str) -> None:
        super().__init__()
        self.playlist_id = playlist_id
        self.entry_id = entry_id


def _title(entries: Sequence[CatalogEntry], entry_id: str) -> str:
    entry = find_entry(entries, entry_id)
    return entry.title if entry is not None else f"{entry_id} (unavailable)"


class FavoritesPane(Widget):
    DEFAULT_CSS = """
    FavoritesPane {
        layout: vertical;
    }

    #playlist-create {
        height: 3;
    }

    #playlist-name {
        width: 1fr;
    }

    #favorites-body {
        height: 1fr;
    }

    FavoritesPane .section-title {
        text-style: bold;
        margin-top: 1;
    }

    FavoritesPane .row {
        height: 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.preferences = UserPreferences()
        self.entries: tuple[CatalogEntry, ...] = ()

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Input(placeholder="New playlist name", id="playlist-name"),
            ControlButton("Create playlist", action="create_playlist"),
            id="playlist-create",
        )
        yield VerticalScroll(id="favorites-body")

    async def show(
        self, preferences: UserPreferences, entries: Sequence[CatalogEntry]
    ) -> None:
        self.preferences = preferences
        self.entries = tuple(entries)
        body = self.query_one("#favorites-body", VerticalScroll)
        await body.remove_children()
        await body.mount_all(self._build_rows())

    def _build_rows(self) -> list[Widget]:
        prefs = self.preferences
        rows: list[Widget] = [Static("Favorites", classes="section-title")]
        if not prefs.favorites:
            rows.append(Static("No favorites yet. Press ♡ on a beat to add it."))
        for entry_id in prefs.favorites:
            rows.append(
                Horizontal(
                    ControlButton("♥", action="unfavorite", target_id=entry_id),
                    Static(_title(self.entries, entry_id)),
                    classes="row",
                )
            )

        rows.append(Static("Playlists", classes="section-title"))
        if not prefs.playlists:
            rows.append(Static("No playlists yet."))
        for playlist in prefs.playlists:
            count = len(playlist.entry_ids)
            rows.append(
                Horizontal(
                    ControlButton(
                        "Delete", action="delete_playlist", target_id=playlist.id
                    ),
                    Static(f"{playlist.name} ({count})"),
                    classes="row",
                )
            )
            for entry_id in playlist.entry_ids:
                rows.append(
                    Horizontal(
                        Static("   "),
                        ControlButton(
                            "×",
                            action="remove_from_playlist",
                            target_id=f"{playlist.id}|{entry_id}",
                        ),
                        Static(_title(self.entries, entry_id)),
                        classes="row",
                    )
                )

        rows.append(Static("Most played", classes="section-title"))
        ranked = top_beats(prefs, TOP_LIMIT)
        if not ranked:
            rows.append(Static("Nothing played yet."))
        for entry_id, stats in ranked:
            plays = "play" if stats.plays == 1 else "plays"
            rows.append(
                Static(f"{_title(self.entries, entry_id)}: {stats.plays} {plays}")
            )
        return rows

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "playlist-name":
            event.stop()
            self._request_create()

    def on_control_pressed(self, event: ControlPressed) -> None:
        event.stop()
        target = event.target_id or ""
        if event.action == "create_playlist":
            self._request_create()
        elif event.action == "unfavorite" and target:
            self.post_message(FavoriteToggleRequested(target))
        elif event.action == "delete_playlist" and target:
            self.post_message(PlaylistDeleteRequested(target))
        elif event.action == "remove_from_playlist" and "|" in target:
            playlist_id, entry_id = target.split("|", 1)
            self.post_message(PlaylistEntryRemoveRequested(playlist_id, entry_id))

    def _request_create(self) -> None:
        field = self.query_one("#playlist-name", Input)
        name = field.value.strip()
        if not name:
            return
        field.value = ""
        self.post_message(PlaylistCreateRequested(name))
