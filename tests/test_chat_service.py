"""Tests for the chat widget service and its offline fallback."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from beatshop.services.chat_service import (
    DEFAULT_FALLBACK,
    GREETING_FALLBACK,
    OFFLINE_NOTICE,
    WELCOME_MESSAGE,
    ChatMessage,
    ChatService,
    MalformedReplyError,
    fallback_reply,
    parse_reply,
)
from beatshop.services.webhook_client import WebhookError


def _run(coro):
    return asyncio.run(coro)


class _Transport:
    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        self.calls.append((url, payload))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _clock():
    ticks = iter(range(1_000, 100_000, 10))
    return lambda: next(ticks)


def _service(transport: _Transport, **kwargs) -> ChatService:
    return ChatService(
        transport=transport,
        webhook_url="https://hooks.example.com/chat",
        session_id="session_1_abc",
        clock_ms=_clock(),
        **kwargs,
    )


def test_new_service_starts_with_welcome_message() -> None:
    service = _service(_Transport([]))
    assert [m.text for m in service.messages] == [WELCOME_MESSAGE]
    assert not service.messages[0].is_user


def test_online_reply_is_appended() -> None:
    transport = _Transport([{"message": "We have drill beats!"}])
    service = _service(transport)

    appended = _run(service.send("  what genres?  "))

    assert [(m.text, m.is_user) for m in appended] == [
        ("what genres?", True),
        ("We have drill beats!", False),
    ]
    assert transport.calls == [
        (
            "https://hooks.example.com/chat",
            {"message": "what genres?", "session_id": "session_1_abc"},
        )
    ]
    assert not service.offline
    assert len(service.messages) == 3


def test_offline_notice_is_shown_once() -> None:
    transport = _Transport(
        [WebhookError("Network error."), WebhookError("Network error.")]
    )
    service = _service(transport)

    first = _run(service.send("hello"))
    second = _run(service.send("hello again"))

    assert [m.text for m in first] == ["hello", OFFLINE_NOTICE, GREETING_FALLBACK]
    assert [m.text for m in second] == ["hello again", GREETING_FALLBACK]
    assert service.offline
    assert service.offline_notice_shown


def test_malformed_reply_uses_fallback_and_recovery_clears_offline() -> None:
    transport = _Transport([{"unexpected": True}, "Back online."])
    service = _service(transport, offline_notice_shown=True)

    first = _run(service.send("how much is a beat?"))
    assert [m.text for m in first][1:] == [fallback_reply("how much")]
    assert service.offline

    second = _run(service.send("thanks"))
    assert second[-1].text == "Back online."
    assert not service.offline


def test_blank_message_is_ignored() -> None:
    transport = _Transport([])
    service = _service(transport)
    assert _run(service.send("   ")) == []
    assert transport.calls == []


def test_restored_transcript_and_reset() -> None:
    saved = [ChatMessage("1", "old", True, 5)]
    service = _service(_Transport([]), transcript=saved, offline_notice_shown=True)
    assert service.messages == saved

    service.reset("session_2_xyz")
    assert service.session_id == "session_2_xyz"
    assert not service.offline_notice_shown
    assert [m.text for m in service.messages] == [WELCOME_MESSAGE]


@pytest.mark.parametrize(
    ("text", "expected_fragment"),
    [
        ("Hey!", "Thanks for stopping by"),
        ("How much is an exclusive?", "twice that"),
        ("what rights do I get with a license", "commercial license"),
        ("can you make a custom beat", "Custom beats are available"),
        ("any R&B?", "The catalog covers"),
        ("tell me about the premium plan", "Plans:"),
        ("I need support", "reach the studio"),
    ],
)
def test_fallback_keyword_categories(text: str, expected_fragment: str) -> None:
    assert expected_fragment in fallback_reply(text)


def test_fallback_matches_whole_words_only() -> None:
    assert fallback_reply("this is wild") == DEFAULT_FALLBACK
    assert fallback_reply("") == DEFAULT_FALLBACK


def test_parse_reply_shapes() -> None:
    assert parse_reply({"message": " hi "}) == "hi"
    assert parse_reply("plain") == "plain"
    assert parse_reply([{"message": "listed"}]) == "listed"
    for bad in (None, {}, {"message": ""}, [], ["a", "b"], 42):
        with pytest.raises(MalformedReplyError):
            parse_reply(bad)


def test_chat_message_dict_validation() -> None:
    message = ChatMessage("m1", "hi", False, 123)
    assert ChatMessage.from_dict(message.to_dict()) == message
    bad_flag = {"text": "x", "is_user": "yes", "timestamp_ms": 1}
    bad_stamp = {"text": "x", "is_user": True, "timestamp_ms": True}
    assert ChatMessage.from_dict(bad_flag) is None
    assert ChatMessage.from_dict(bad_stamp) is None
    assert ChatMessage.from_dict("nope") is None
