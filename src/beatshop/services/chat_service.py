"""Chat widget backend: webhook round trip with keyword fallback replies."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .webhook_client import WebhookError

logger = logging.getLogger(__name__)

BOT_NAME = "Maxy Electa Bot"
WELCOME_MESSAGE = (
    "Hi! 👋 Welcome to Maxy Electa Studio! "
    "How can I help you find the perfect beat today?"
)
OFFLINE_NOTICE = (
    "⚠️ Our assistant is running in offline mode right now. "
    "I'll answer with what I know; for anything else, please try again later."
)

GREETING_FALLBACK = (
    "Hey there! 👋 Thanks for stopping by. Ask me about beats, licenses, "
    "pricing, custom work or subscriptions."
)
_FALLBACK_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("hello", "hi", "hey"), GREETING_FALLBACK),
    (
        ("price", "pricing", "cost", "how much"),
        "Commercial licenses start at the listed beat price and exclusive "
        "licenses cost twice that. Subscribers save 20-40% on every purchase.",
    ),
    (
        ("license", "licence", "rights", "exclusive", "commercial"),
        "A commercial license lets you release and monetize your song while the "
        "beat stays available. An exclusive license takes the beat off the store "
        "for good.",
    ),
    (
        ("custom", "request", "made for me"),
        "Custom beats are available! Open the custom beat request form with your "
        "references and budget and we'll get back to you by email.",
    ),
    (
        ("genre", "drill", "trap", "afro", "r&b", "dancehall", "reggae"),
        "The catalog covers Drill, Trap, R&B, Afro Trap, Afro Drill, Dancehall and "
        "Reggae. Use the filters on the Beats tab to narrow it down.",
    ),
    (
        ("subscription", "subscribe", "plan", "membership", "premium"),
        "Plans: BASIC $9.99/mo (20% off), PRO $19.99/mo (30% off) and PREMIUM "
        "$29.99/mo (40% off). See the Plans tab for details.",
    ),
    (
        ("contact", "email", "support", "help"),
        "You can reach the studio through the custom request form or by email; "
        "we usually reply within 24 hours.",
    ),
)
DEFAULT_FALLBACK = (
    "I'm not sure about that one while I'm offline. Try asking about pricing, "
    "licenses, genres, custom beats or subscriptions."
)


@dataclass(frozen=True)
class ChatMessage:
    id: str
    text: str
    is_user: bool
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "is_user": self.is_user,
            "timestamp_ms": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessage | None:
        if not isinstance(data, dict):
            return None
        text = data.get("text")
        is_user = data.get("is_user")
        timestamp = data.get("timestamp_ms")
        if not isinstance(text, str) or not isinstance(is_user, bool):
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            return None
        return cls(
            id=str(data.get("id") or timestamp),
            text=text,
            is_user=is_user,
            timestamp_ms=timestamp,
        )


class ChatTransport(Protocol):
    async def post_json(self, url: str, payload: dict[str, Any]) -> Any: ...


class MalformedReplyError(ValueError):
    """Webhook answered with something that is not a chat reply."""


def fallback_reply(text: str) -> str:
    """Pick the canned reply for the first keyword category that matches."""
    lowered = text.lower()
    words = set(_tokens(lowered))
    for keywords, reply in _FALLBACK_RULES:
        for keyword in keywords:
            if " " in keyword or not keyword.isalpha():
                if keyword in lowered:
                    return reply
            elif keyword in words:
                return reply
    return DEFAULT_FALLBACK


def parse_reply(body: Any) -> str:
    """Accept `{"message": str}` or a bare string; anything else is malformed."""
    if isinstance(body, str) and body.strip():
        return body.strip()
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if isinstance(body, list) and len(body) == 1:
        return parse_reply(body[0])
    raise MalformedReplyError("Chat webhook returned an unexpected payload")


class ChatService:
    """Owns the transcript and the online/offline state of the chat widget."""

    def __init__(
        self,
        *,
        transport: ChatTransport,
        webhook_url: str,
        session_id: str,
        transcript: list[ChatMessage] | None = None,
        offline_notice_shown: bool = False,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._transport = transport
        self._webhook_url = webhook_url
        self.session_id = session_id
        self._clock_ms = clock_ms or _now_ms
        self._counter = 0
        self.offline_notice_shown = offline_notice_shown
        self.offline = False
        self.messages: list[ChatMessage] = list(transcript or [])
        if not self.messages:
            self.messages.append(self._message(WELCOME_MESSAGE, is_user=False))

    async def send(self, text: str) -> list[ChatMessage]:
        """Send `text`; return the messages appended by this call."""
        clean = text.strip()
        if not clean:
            return []
        appended = [self._append(clean, is_user=True)]
        try:
            body = await self._transport.post_json(
                self._webhook_url,
                {"message": clean, "session_id": self.session_id},
            )
            reply = parse_reply(body)
        except (WebhookError, MalformedReplyError) as exc:
            logger.warning(
                "Chat webhook unavailable; using fallback reply: %s",
                exc,
                extra={"event": "chat_offline", "session_id": self.session_id},
            )
            self.offline = True
            if not self.offline_notice_shown:
                self.offline_notice_shown = True
                appended.append(self._append(OFFLINE_NOTICE, is_user=False))
            appended.append(self._append(fallback_reply(clean), is_user=False))
            return appended
        self.offline = False
        appended.append(self._append(reply, is_user=False))
        return appended

    def reset(self, session_id: str) -> None:
        self.session_id = session_id
        self.offline = False
        self.offline_notice_shown = False
        self.messages = [self._message(WELCOME_MESSAGE, is_user=False)]

    def _append(self, text: str, *, is_user: bool) -> ChatMessage:
        message = self._message(text, is_user=is_user)
        self.messages.append(message)
        return message

    def _message(self, text: str, *, is_user: bool) -> ChatMessage:
        stamp = self._clock_ms()
        self._counter += 1
        return ChatMessage(
            id=f"{stamp}-{self._counter}",
            text=text,
            is_user=is_user,
            timestamp_ms=stamp,
        )


def _tokens(text: str) -> list[str]:
    return "".join(ch if ch.isalnum() else " " for ch in text).split()


def _now_ms() -> int:
    return int(time.time() * 1000)
