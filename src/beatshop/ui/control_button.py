"""Single-line focusable controls used inside beat cards and plan rows."""

from __future__ import annotations

from textual.events import Click, Key
from textual.message import Message
from textual.widgets import Static

ACTIVATE_KEYS = frozenset({"enter", "space"})


class ControlPressed(Message):
    """Posted when a control is clicked or activated from the keyboard."""

    def __init__(self, action: str, target_id: str | None) -> None:
        super().__init__()
        self.action = action
        self.target_id = target_id


class ControlButton(Static):
    DEFAULT_CSS = """
    ControlButton {
        background: $panel;
        color: $text;
        height: 1;
        width: auto;
        padding: 0 1;
        margin-right: 1;
    }

    ControlButton:focus {
        background: $boost;
    }

    ControlButton.-on {
        color: $warning;
        text-style: bold;
    }
    """

    def __init__(
        self,
        label: str,
        *,
        action: str,
        target_id: str | None = None,
        **kwargs,
    ) -> None:
        if not action.strip():
            raise ValueError("action must be non-empty")
        super().__init__(label, **kwargs)
        self.action = action
        self.target_id = target_id
        self.can_focus = True

    def set_label(self, label: str, *, on: bool | None = None) -> None:
        self.update(label)
        if on is not None:
            self.set_class(on, "-on")

    def press(self) -> None:
        self.post_message(ControlPressed(self.action, self.target_id))

    def on_click(self, event: Click) -> None:
        event.stop()
        self.press()

    def on_key(self, event: Key) -> None:
        if event.key in ACTIVATE_KEYS:
            event.stop()
            self.press()
