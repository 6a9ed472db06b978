"""Beats tab: search, filter and sort controls over the card list."""

from __future__ import annotations

from collections.abc import Sequence

from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.widget import Widget
from textual.widgets import Input, Select, Static

from beatshop.catalog import (
    FILTER_OPTIONS,
    SORT_OPTIONS,
    CatalogEntry,
    SortOption,
    browse,
)
from beatshop.ui.beat_card import BeatCard, CardServices


class CatalogPane(Widget):
    DEFAULT_CSS = """
    CatalogPane {
        layout: vertical;
    }

    #catalog-controls {
        height: 3;
    }

    #catalog-search {
        width: 1fr;
    }

    #catalog-filter, #catalog-sort {
        width: 28;
    }

    #catalog-count {
        height: 1;
        color: $text-muted;
    }

    #catalog-cards {
        height: 1fr;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entries: tuple[CatalogEntry, ...] = ()
        self.filter_id = "all"
        self.query_text = ""
        self.sort: SortOption = "date-desc"
        self.visible_ids: list[str] = []
        self._cards: dict[str, BeatCard] = {}

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Input(placeholder="Search title, genre or BPM", id="catalog-search"),
            Select(
                [(label, value) for value, label in FILTER_OPTIONS],
                value="all",
                allow_blank=False,
                id="catalog-filter",
            ),
            Select(
                [(label, value) for value, label in SORT_OPTIONS],
                value="date-desc",
                allow_blank=False,
                id="catalog-sort",
            ),
            id="catalog-controls",
        )
        yield Static("", id="catalog-count")
        yield VerticalScroll(id="catalog-cards")

    async def configure(
        self,
        entries: Sequence[CatalogEntry],
        services: CardServices,
        *,
        favorites: Sequence[str] = (),
    ) -> None:
        """Mount one card per entry; cards persist while filters change."""
        container = self.query_one("#catalog-cards", VerticalScroll)
        await container.remove_children()
        self.entries = tuple(entries)
        self._cards = {
            entry.id: BeatCard(entry, services, favorite=entry.id in favorites)
            for entry in self.entries
        }
        await container.mount_all(list(self._cards.values()))
        self.apply_view()

    def card(self, entry_id: str) -> BeatCard | None:
        return self._cards.get(entry_id)

    def set_favorite(self, entry_id: str, favorite: bool) -> None:
        card = self._cards.get(entry_id)
        if card is not None:
            card.set_favorite(favorite)

    def apply_view(self) -> None:
        visible = browse(
            self.entries,
            filter_id=self.filter_id,
            query=self.query_text,
            sort=self.sort,
        )
        self.visible_ids = [entry.id for entry in visible]
        if self._cards:
            container = self.query_one("#catalog-cards", VerticalScroll)
            for index, entry in enumerate(visible):
                card = self._cards[entry.id]
                card.display = True
                current = list(container.children)
                if current[index] is not card:
                    container.move_child(card, before=current[index])
            shown = set(self.visible_ids)
            for entry_id, card in self._cards.items():
                if entry_id not in shown:
                    card.display = False
        count = len(self.visible_ids)
        label = "beat" if count == 1 else "beats"
        self.query_one("#catalog-count", Static).update(f"{count} {label}")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "catalog-search":
            return
        self.query_text = event.value
        self.apply_view()

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.value is Select.BLANK:
            return
        if event.select.id == "catalog-filter":
            self.filter_id = str(event.value)
        elif event.select.id == "catalog-sort":
            self.sort = event.value  # type: ignore[assignment]
        else:
            return
        self.apply_view()
