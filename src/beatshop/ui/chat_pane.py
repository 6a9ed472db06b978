"""Chat tab: transcript view and message input."""

from __future__ import annotations

import time
from collections.abc import Sequence

from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Input, Static

from beatshop.services.chat_service import BOT_NAME, ChatMessage


class ChatSubmitted(Message):
    def __init__(self, text: str) -> None:
        super().__init__()
        self.text = text


def format_message(message: ChatMessage) -> str:
    sender = "You" if message.is_user else BOT_NAME
    stamp = time.strftime("%H:%M", time.localtime(message.timestamp_ms / 1000))
    return f"{sender} · {stamp}\n{message.text}"


class ChatPane(Widget):
    DEFAULT_CSS = """
    ChatPane {
        layout: vertical;
    }

    #chat-log {
        height: 1fr;
    }

    #chat-status {
        height: 1;
        color: $warning;
    }

    ChatPane .chat-user {
        margin: 0 0 1 8;
        padding: 0 1;
        background: $primary-darken-2;
    }

    ChatPane .chat-bot {
        margin: 0 8 1 0;
        padding: 0 1;
        background: $panel;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.busy = False

    def compose(self) -> ComposeResult:
        yield VerticalScroll(id="chat-log")
        yield Static("", id="chat-status")
        yield Input(
            placeholder="Ask about beats, licenses, pricing…", id="chat-input"
        )

    async def show(self, messages: Sequence[ChatMessage]) -> None:
        log = self.query_one("#chat-log", VerticalScroll)
        await log.remove_children()
        await self.append(messages)

    async def append(self, messages: Sequence[ChatMessage]) -> None:
        if not messages:
            return
        log = self.query_one("#chat-log", VerticalScroll)
        await log.mount_all(
            [
                Static(
                    format_message(message),
                    classes="chat-user" if message.is_user else "chat-bot",
                )
                for message in messages
            ]
        )
        log.scroll_end(animate=False)

    def set_status(self, *, typing: bool, offline: bool) -> None:
        self.busy = typing
        if typing:
            text = f"{BOT_NAME} is typing…"
        elif offline:
            text = "Offline mode: answers come from the built-in FAQ."
        else:
            text = ""
        self.query_one("#chat-status", Static).update(text)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "chat-input":
            return
        event.stop()
        text = event.value.strip()
        if not text or self.busy:
            return
        event.input.value = ""
        self.post_message(ChatSubmitted(text))
