"""License choice modal for a beat purchase."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from beatshop.catalog import CatalogEntry
from beatshop.commerce import LicenseType, available_licenses, license_price

LICENSE_BLURBS: dict[LicenseType, str] = {
    "commercial": "Release and monetize; the beat stays on the store.",
    "exclusive": "Full ownership; the beat is removed from the store.",
}


def license_label(
    entry: CatalogEntry, license_type: LicenseType, discount_percent: int
) -> str:
    price = license_price(entry, license_type, discount_percent=discount_percent)
    label = f"{license_type.capitalize()} · ${price:.2f}"
    if discount_percent:
        label = f"{label} ({discount_percent}% off)"
    return label


class LicenseModal(ModalScreen["LicenseType | None"]):
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, entry: CatalogEntry, *, discount_percent: int = 0) -> None:
        super().__init__()
        self.entry = entry
        self.discount_percent = discount_percent
        self.licenses = available_licenses(entry)

    def compose(self) -> ComposeResult:
        rows: list[Vertical] = [
            Vertical(
                Button(
                    license_label(self.entry, license_type, self.discount_percent),
                    id=f"license-{license_type}",
                    variant="primary" if license_type == "commercial" else "warning",
                ),
                Label(LICENSE_BLURBS[license_type]),
                classes="license-row",
            )
            for license_type in self.licenses
        ]
        yield Vertical(
            Label(f"Choose a license for '{self.entry.title}'", classes="modal-title"),
            *rows,
            Horizontal(Button("Cancel", id="cancel")),
            id="modal-body",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button_id = event.button.id or ""
        if button_id == "cancel":
            self.action_cancel()
            return
        for license_type in self.licenses:
            if button_id == f"license-{license_type}":
                self.dismiss(license_type)
                return

    def action_cancel(self) -> None:
        self.dismiss(None)
