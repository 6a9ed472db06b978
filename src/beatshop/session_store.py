"""Ephemeral per-session state kept in the cache directory.

Holds what a browser would keep in session storage: the chat session id and
transcript, the payment tracking id of an unfinished checkout, and buyer form
fields so they are prefilled next time. `--reset-session` deletes the file.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .services.chat_service import ChatMessage
from .settings import write_json_atomic

logger = logging.getLogger(__name__)

FORM_FIELDS = ("first_name", "last_name", "email")


@dataclass(frozen=True)
class SessionState:
    chat_session_id: str | None = None
    transcript: tuple[ChatMessage, ...] = ()
    offline_notice_shown: bool = False
    payment_session_id: str | None = None
    form_fields: dict[str, str] = field(default_factory=dict)


def _coerce_session(data: dict[str, Any]) -> SessionState:
    def _str_or_none(value: Any) -> str | None:
        return value if isinstance(value, str) and value else None

    raw_transcript = data.get("transcript")
    transcript = tuple(
        message
        for message in (
            ChatMessage.from_dict(row)
            for row in (raw_transcript if isinstance(raw_transcript, list) else [])
        )
        if message is not None
    )
    raw_fields = data.get("form_fields")
    form_fields = (
        {
            key: value
            for key, value in raw_fields.items()
            if key in FORM_FIELDS and isinstance(value, str)
        }
        if isinstance(raw_fields, dict)
        else {}
    )
    notice = data.get("offline_notice_shown")
    return SessionState(
        chat_session_id=_str_or_none(data.get("chat_session_id")),
        transcript=transcript,
        offline_notice_shown=notice if isinstance(notice, bool) else False,
        payment_session_id=_str_or_none(data.get("payment_session_id")),
        form_fields=form_fields,
    )


def load_session(path: Path) -> SessionState:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return SessionState()
    except (OSError, ValueError) as exc:
        logger.warning("Discarding unreadable session file %s: %s", path, exc)
        return SessionState()
    if not isinstance(data, dict):
        return SessionState()
    return _coerce_session(data)


def save_session(path: Path, state: SessionState) -> None:
    write_json_atomic(
        path,
        {
            "chat_session_id": state.chat_session_id,
            "transcript": [message.to_dict() for message in state.transcript],
            "offline_notice_shown": state.offline_notice_shown,
            "payment_session_id": state.payment_session_id,
            "form_fields": dict(state.form_fields),
        },
    )


def clear_session(path: Path) -> bool:
    """Delete the session file; return whether one existed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.info("Session state cleared", extra={"event": "session_reset"})
    return True
