"""Pick which playlist an entry should be added to."""

from __future__ import annotations

from collections.abc import Sequence

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, OptionList
from textual.widgets.option_list import Option

from beatshop.preferences_store import Playlist


class PlaylistPickerModal(ModalScreen["str | None"]):
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, playlists: Sequence[Playlist]) -> None:
        super().__init__()
        self._title = title
        self._playlists = tuple(playlists)

    def compose(self) -> ComposeResult:
        options = [
            Option(f"{playlist.name} ({len(playlist.entry_ids)})", id=playlist.id)
            for playlist in self._playlists
        ]
        yield Vertical(
            Label(f"Add '{self._title}' to playlist", classes="modal-title"),
            OptionList(*options, id="playlist-options"),
            Button("Cancel", id="cancel"),
            id="modal-body",
        )

    def on_mount(self) -> None:
        self.query_one("#playlist-options", OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self.dismiss(event.option.id)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.action_cancel()

    def action_cancel(self) -> None:
        self.dismiss(None)
