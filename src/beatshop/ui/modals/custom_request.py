"""Custom beat request form."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, TextArea

from beatshop.services.checkout_service import CheckoutError, CustomBeatRequest


class CustomRequestModal(ModalScreen["CustomBeatRequest | None"]):
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, *, name: str = "", email: str = "") -> None:
        super().__init__()
        self._name = name
        self._email = email

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label("Request a custom beat", classes="modal-title"),
            Input(value=self._name, placeholder="Name", id="custom-name"),
            Input(value=self._email, placeholder="Email", id="custom-email"),
            Label("Describe the beat (mood, tempo, genre)"),
            TextArea(id="custom-details"),
            Input(placeholder="Reference links", id="custom-links"),
            Input(placeholder="Budget", id="custom-budget"),
            Input(placeholder="Anything else?", id="custom-message"),
            Label("", id="custom-error"),
            Horizontal(
                Button("Send request", id="submit", variant="primary"),
                Button("Cancel", id="cancel"),
            ),
            id="modal-body",
        )

    def collect(self) -> CustomBeatRequest:
        def _value(widget_id: str) -> str:
            return self.query_one(f"#{widget_id}", Input).value.strip()

        details = self.query_one("#custom-details", TextArea).text.strip()
        return CustomBeatRequest(
            name=_value("custom-name"),
            email=_value("custom-email"),
            custom_beat_details=details,
            reference_links=_value("custom-links"),
            budget=_value("custom-budget"),
            additional_message=_value("custom-message"),
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "submit":
            form = self.collect()
            try:
                form.validate()
            except CheckoutError as exc:
                self.query_one("#custom-error", Label).update(str(exc))
                return
            self.dismiss(form)
        elif event.button.id == "cancel":
            self.action_cancel()

    def action_cancel(self) -> None:
        self.dismiss(None)
