"""Buyer details form shown before a checkout or registration."""

from __future__ import annotations

from collections.abc import Mapping

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from beatshop.services.checkout_service import BuyerInfo, CheckoutError

FIELDS = (
    ("first_name", "First name"),
    ("last_name", "Last name"),
    ("email", "Email"),
)


class BuyerInfoModal(ModalScreen["BuyerInfo | None"]):
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(
        self,
        heading: str,
        *,
        prefill: Mapping[str, str] | None = None,
        submit_label: str = "Continue to checkout",
    ) -> None:
        super().__init__()
        self.heading = heading
        self.prefill = dict(prefill or {})
        self.submit_label = submit_label

    def compose(self) -> ComposeResult:
        inputs = [
            Input(
                value=self.prefill.get(key, ""),
                placeholder=label,
                id=f"buyer-{key}",
            )
            for key, label in FIELDS
        ]
        yield Vertical(
            Label(self.heading, classes="modal-title"),
            *inputs,
            Label("", id="buyer-error"),
            Horizontal(
                Button(self.submit_label, id="submit", variant="primary"),
                Button("Cancel", id="cancel"),
            ),
            id="modal-body",
        )

    def on_mount(self) -> None:
        self.query_one("#buyer-first_name", Input).focus()

    def collect(self) -> BuyerInfo:
        values = {
            key: self.query_one(f"#buyer-{key}", Input).value.strip()
            for key, _label in FIELDS
        }
        return BuyerInfo(**values)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "submit":
            self.action_submit()
        elif event.button.id == "cancel":
            self.action_cancel()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.action_submit()

    def action_submit(self) -> None:
        buyer = self.collect()
        try:
            buyer.validate()
        except CheckoutError as exc:
            self.query_one("#buyer-error", Label).update(str(exc))
            return
        self.dismiss(buyer)

    def action_cancel(self) -> None:
        self.dismiss(None)
