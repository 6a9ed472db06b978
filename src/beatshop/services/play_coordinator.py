"""Single-active-player coordination shared by every catalog card."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PauseCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class PlayStateChanged:
    """Published whenever a card starts or stops being the active player."""

    entry_id: str
    playing: bool


Listener = Callable[[PlayStateChanged], Awaitable[None]]


class ActivePlayerStore:
    """Observable store holding the id of the one card allowed to play.

    Cards register a pause callback on mount. `request_play` pauses the
    current holder and publishes its paused event before the new card is
    published as playing, so listeners never see two players at once.
    """

    def __init__(self) -> None:
        self._active_id: str | None = None
        self._pause_callbacks: dict[str, PauseCallback] = {}
        self._listeners: list[Listener] = []
        self._lock = asyncio.Lock()

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def is_active(self, entry_id: str) -> bool:
        return self._active_id == entry_id

    def register(self, entry_id: str, pause: PauseCallback) -> None:
        self._pause_callbacks[entry_id] = pause

    def unregister(self, entry_id: str) -> None:
        self._pause_callbacks.pop(entry_id, None)
        if self._active_id == entry_id:
            self._active_id = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add a listener; the returned callable removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def request_play(self, entry_id: str) -> None:
        async with self._lock:
            previous = self._active_id
            if previous == entry_id:
                return
            if previous is not None:
                pause = self._pause_callbacks.get(previous)
                if pause is not None:
                    try:
                        await pause()
                    except Exception:
                        logger.exception(
                            "Failed to pause previous player %s",
                            previous,
                            extra={"event": "player_pause_failed"},
                        )
                self._active_id = None
                await self._publish(PlayStateChanged(previous, False))
            self._active_id = entry_id
            logger.debug(
                "Active player changed",
                extra={"event": "active_player", "entry_id": entry_id},
            )
            await self._publish(PlayStateChanged(entry_id, True))

    async def release(self, entry_id: str) -> None:
        """Clear the active id when `entry_id` pauses, stops or unmounts."""
        async with self._lock:
            if self._active_id != entry_id:
                return
            self._active_id = None
            await self._publish(PlayStateChanged(entry_id, False))

    async def _publish(self, event: PlayStateChanged) -> None:
        for listener in list(self._listeners):
            await listener(event)
